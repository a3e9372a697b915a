"""Nexra dashboard data orchestration core."""

__version__ = "0.1.0"
