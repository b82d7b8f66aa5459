"""
Error taxonomy for the persistent log.

Corruption found while scanning is not represented here: it is the normal
signal for recovery to stop and truncate, and never reaches callers.
"""


class PersistentLogError(Exception):
    """Base class for all errors raised by the persistent log."""
    pass


class OpenError(PersistentLogError):
    """Raised when the log file cannot be created or opened."""
    pass


class IOReadError(PersistentLogError):
    """Raised when the log file cannot be stat'd or read during recovery."""
    pass


class TruncateError(PersistentLogError):
    """Raised when the log cannot be shrunk to its last valid boundary."""
    pass


class WriteError(PersistentLogError):
    """Raised when appending a frame to the log file fails."""
    pass


class SyncError(PersistentLogError):
    """Raised when the durability barrier after an append fails."""
    pass


class PayloadTooLargeError(PersistentLogError, ValueError):
    """Raised when a payload does not fit the 32-bit length field."""
    pass


class LogClosedError(PersistentLogError):
    """Raised when operating on a closed log handle."""
    pass
