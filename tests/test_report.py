"""Tests for report building and rendering."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from autobench.config import AutobenchConfig
from autobench.models import BenchmarkResult, ClusterStats
from autobench.report import Overview, Report, build_rundown, extract_build, print_report
from autobench.util import format_bytes, format_duration


@pytest.fixture
def results() -> list[BenchmarkResult]:
    return [
        BenchmarkResult(duration=10.0, ads=1024 * 1024, ain=500_000),
        BenchmarkResult(duration=20.0, ads=3 * 1024 * 1024, ain=500_000),
    ]


class TestFormatting:
    @pytest.mark.parametrize(
        "size,expected",
        [(0, "0B"), (1023, "1023B"), (1024, "1.00KiB"), (1536, "1.50KiB"), (5 * 1024**3, "5.00GiB")],
    )
    def test_format_bytes(self, size, expected):
        assert format_bytes(size) == expected

    @pytest.mark.parametrize(
        "seconds,expected",
        [(1.5, "1.50s"), (123.0, "2m3.00s"), (3723.45, "1h2m3.45s"), (-1, "0.00s")],
    )
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected


class TestOverview:
    def test_averages(self, config, results):
        overview = Overview.from_results(results, config.blueprint.cluster.bucket.data)

        assert overview.avg_duration == 15.0
        assert overview.avg_ads == 2 * 1024 * 1024
        assert overview.avg_gds == 500_000 * 1024
        # (104857 + 157286) // 2
        assert overview.avg_transfer_rate_ads == 131_071

    def test_no_results(self, config):
        assert Overview.from_results([], config.blueprint.cluster.bucket.data) is None


def test_rundown_has_one_row_per_iteration(config, results):
    rows = build_rundown(results, config.blueprint.cluster.bucket.data)

    assert [row.iteration for row in rows] == [1, 2]
    assert rows[0].duration == "10.00s"
    assert rows[0].ads == "1.00MiB"
    assert rows[1].transfer_rate_ads == "153.60KiB/s"


class TestReport:
    def test_to_dict_omits_empty_components(self, config):
        report = Report(config=config, results=[])
        document = report.to_dict()

        assert set(document) == {"cluster", "backup_client", "cbbackupmgr"}

    def test_to_dict_includes_everything_available(self, config, results):
        report = Report(
            config=config,
            results=results,
            stats=ClusterStats(item_count=100, vb_active_num_non_resident=25),
            cluster_logs=[Path("/logs/collectinfo-a.zip")],
            backup_logs=Path("/logs/cbbackupmgr.zip"),
        )
        document = report.to_dict()

        assert document["bucket_stats"]["residency_ratio"] == 75
        assert len(document["rundown"]) == 2
        assert document["overview"]["avg_duration"] == "15.00s"
        assert document["logs"] == {
            "cluster": ["/logs/collectinfo-a.zip"],
            "backup": "/logs/cbbackupmgr.zip",
        }

    def test_secrets_are_not_reported(self, raw_config):
        raw_config["benchmark"]["cbbackupmgr_config"].update(
            {"encrypted": True, "passphrase": "hunter2", "obj_secret_access_key": "shh"}
        )
        document = Report(config=AutobenchConfig(**raw_config), results=[]).to_dict()

        assert "passphrase" not in document["cbbackupmgr"]
        assert "hunter2" not in json.dumps(document)


class TestPrintReport:
    def test_json_output_is_a_single_document(self, config, results, capsys):
        print_report(Report(config=config, results=results), json_output=True)

        out = capsys.readouterr().out
        assert len(out.strip().splitlines()) == 1
        assert json.loads(out)["rundown"][1]["iteration"] == 2

    def test_human_output(self, config, results, capsys):
        report = Report(
            config=config,
            results=results,
            stats=ClusterStats(item_count=10),
            backup_logs=Path("/logs/cbbackupmgr.zip"),
        )
        print_report(report)

        out = capsys.readouterr().out
        assert "Overview" in out
        assert "Rundown" in out
        assert "Bucket Stats" in out
        assert "cbbackupmgr.zip" in out

    def test_human_output_without_results(self, config, capsys):
        print_report(Report(config=config, results=[]))

        out = capsys.readouterr().out
        assert "Cluster" in out
        assert "Rundown" not in out


class TestExtractBuild:
    @pytest.mark.parametrize(
        "package_path,expected",
        [
            ("/tmp/couchbase-server-enterprise_7.0.0-4259-ubuntu20.04_amd64.deb", "7.0.0-4259"),
            ("couchbase-server-enterprise-6.6.2-9588-centos7.x86_64.rpm", "6.6.2-9588"),
            ("/tmp/couchbase-server.deb", "unknown"),
            (None, "unknown"),
        ],
    )
    def test_extract_build(self, package_path, expected):
        assert extract_build(package_path) == expected

    def test_versions_are_reported(self, raw_config, capsys):
        raw_config["blueprint"]["cluster"]["package_path"] = "/tmp/couchbase-server_7.0.0-4259.deb"
        raw_config["blueprint"]["backup_client"]["package_path"] = "/tmp/couchbase-server_7.1.0-1000.deb"
        report = Report(config=AutobenchConfig(**raw_config), results=[])

        document = report.to_dict()
        assert document["cluster"]["version"] == "7.0.0-4259"
        assert document["backup_client"]["version"] == "7.1.0-1000"

        print_report(report)
        out = capsys.readouterr().out
        assert "Version" in out
        assert "7.0.0-4259" in out
        assert "7.1.0-1000" in out
