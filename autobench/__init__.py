"""Automated backup/restore benchmarking for Couchbase Server clusters."""

__version__ = "0.1.0"
