"""Core components for log storage and recovery."""

from persistlog.core import log

__all__ = ["log"]
