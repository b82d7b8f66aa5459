"""
Core log storage implementation.

This package provides a single-file append-only log with:
- Binary record framing with XXH64 checksums
- fsync on every append
- Crash recovery that truncates a damaged tail on open
- Sequential replay of valid records
"""

from persistlog.core.log.errors import (
    IOReadError,
    LogClosedError,
    OpenError,
    PayloadTooLargeError,
    PersistentLogError,
    SyncError,
    TruncateError,
    WriteError,
)
from persistlog.core.log.format import (
    ChecksumMismatchError,
    FrameDecodeError,
    IncompleteFrameError,
    LogRecord,
    decode_frame,
    encode_frame,
)
from persistlog.core.log.log import PersistentLog
from persistlog.core.log.reader import LogReader, iter_records
from persistlog.core.log.recovery import RecoveryResult, RecoveryScanner

__all__ = [
    "ChecksumMismatchError",
    "FrameDecodeError",
    "IncompleteFrameError",
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
    "decode_frame",
    "encode_frame",
    "iter_records",
]
