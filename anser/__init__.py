"""Dependency-aware MongoDB migrations run as queued jobs."""

__version__ = "0.1.0"