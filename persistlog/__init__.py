"""
persistlog - a minimal append-only persistent log.

Callers append opaque byte records, each framed with a length and a checksum.
On open the log validates its own content and discards any trailing partial or
corrupted record left behind by a crash.
"""

__version__ = "0.1.0"

from persistlog.core.log import (
    IOReadError,
    LogClosedError,
    LogReader,
    LogRecord,
    OpenError,
    PayloadTooLargeError,
    PersistentLog,
    PersistentLogError,
    RecoveryResult,
    RecoveryScanner,
    SyncError,
    TruncateError,
    WriteError,
)

__all__ = [
    "IOReadError",
    "LogClosedError",
    "LogReader",
    "LogRecord",
    "OpenError",
    "PayloadTooLargeError",
    "PersistentLog",
    "PersistentLogError",
    "RecoveryResult",
    "RecoveryScanner",
    "SyncError",
    "TruncateError",
    "WriteError",
]
