"""Report generation modules."""

from .model import Overview, Report, RundownRow, build_rundown, extract_build
from .render import print_report

__all__ = [
    "Overview",
    "Report",
    "RundownRow",
    "build_rundown",
    "extract_build",
    "print_report",
]
