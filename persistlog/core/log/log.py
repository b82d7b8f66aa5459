"""
Persistent, append-only log handle.

A PersistentLog owns one log file. Opening it runs the recovery scan, which
truncates any trailing partial or corrupted frame left by an earlier crash.
Every store is written with a single append and made durable with fsync
before it is counted.

The handle is not thread-safe. Callers must serialize access, and must not
open the same file through two handles at once.
"""

import os
from pathlib import Path
from typing import Optional, Union

from persistlog.core.log.errors import (
    LogClosedError,
    OpenError,
    SyncError,
    WriteError,
)
from persistlog.core.log.format import BytesLike, encode_frame
from persistlog.core.log.recovery import (
    DEFAULT_CHUNK_SIZE,
    RecoveryResult,
    RecoveryScanner,
)
from persistlog.utils.config import Config
from persistlog.utils.logging import get_logger

logger = get_logger(__name__)


class PersistentLog:
    """
    Append-only log of opaque byte records.

    Attributes:
        path: Path to the log file
        recovery: Result of the recovery scan run at open
    """

    FILE_MODE = 0o644

    def __init__(
        self,
        path: Union[str, Path],
        streaming_recovery: bool = False,
        recovery_chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """
        Open a log, creating the file if it doesn't exist.

        Args:
            path: Path to the log file
            streaming_recovery: Scan frame by frame instead of loading the file
            recovery_chunk_size: Read size when loading the file for recovery

        Raises:
            OpenError: If the file cannot be created or opened
            IOReadError: If the file cannot be read during recovery
            TruncateError: If an invalid tail cannot be removed
        """
        self.path = Path(path)
        self._fd: Optional[int] = None
        self._record_count = 0
        self._size = 0
        self._failed = False

        scanner = RecoveryScanner(
            streaming=streaming_recovery,
            chunk_size=recovery_chunk_size,
        )

        self._open()

        try:
            self.recovery: RecoveryResult = scanner.recover(self._fd)
        except Exception:
            self._close_fd()
            raise

        self._record_count = self.recovery.valid_records
        self._size = self.recovery.valid_bytes

        logger.info(
            "Opened log",
            path=str(self.path),
            records=self._record_count,
            size=self._size,
            truncated_bytes=self.recovery.truncated_bytes,
        )

    @classmethod
    def open(
        cls,
        path: Optional[Union[str, Path]] = None,
        config: Optional[Config] = None,
    ) -> "PersistentLog":
        """
        Open a log using configuration values for unset arguments.

        Args:
            path: Path to the log file (default: ``log.path`` from config)
            config: Configuration to read from (default: a fresh Config)

        Returns:
            Open log handle
        """
        config = config if config is not None else Config()

        return cls(
            path=path if path is not None else config.get("log.path", "log.dat"),
            streaming_recovery=bool(config.get("recovery.streaming", False)),
            recovery_chunk_size=int(
                config.get("recovery.chunk_size", DEFAULT_CHUNK_SIZE)
            ),
        )

    def _open(self) -> None:
        """Open the log file for appending and positional reads."""
        flags = os.O_RDWR | os.O_CREAT | os.O_APPEND
        created = not self.path.exists()

        try:
            self._fd = os.open(self.path, flags, self.FILE_MODE)
        except OSError as e:
            raise OpenError(f"Cannot open log {self.path}: {e}") from e

        if created:
            try:
                self._sync_directory()
            except OSError as e:
                self._close_fd()
                raise OpenError(
                    f"Cannot persist creation of log {self.path}: {e}"
                ) from e

            logger.info("Created log file", path=str(self.path))

    def _sync_directory(self) -> None:
        """Make the directory entry of a newly created file durable."""
        dir_fd = os.open(self.path.parent, os.O_RDONLY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)

    def store(self, payload: Union[BytesLike, str]) -> int:
        """
        Append a record and make it durable.

        The record is counted only once fsync has succeeded. If the write or
        fsync fails, the file is cut back to the last valid record so that a
        later store is never appended behind a torn frame. If the process dies
        instead, the next open discards the partial frame.

        Args:
            payload: Record bytes; a str is stored as UTF-8

        Returns:
            The record count after this store

        Raises:
            LogClosedError: If the log is closed
            PayloadTooLargeError: If payload does not fit the length field
            WriteError: If the append write fails, or the log could not be
                rolled back after an earlier failure
            SyncError: If fsync fails
        """
        if self._fd is None:
            raise LogClosedError(f"Cannot store to closed log {self.path}")

        if self._failed:
            raise WriteError(
                f"Log {self.path} is unusable: an earlier failed append "
                f"could not be rolled back"
            )

        if isinstance(payload, str):
            payload = payload.encode("utf-8")

        data = encode_frame(payload)

        try:
            self._write_all(data)
            self._sync()
        except (WriteError, SyncError):
            self._rollback()
            raise

        self._record_count += 1
        self._size += len(data)

        logger.debug(
            "Stored record",
            index=self._record_count,
            size=len(data),
            total_size=self._size,
        )

        return self._record_count

    def _sync(self) -> None:
        """
        Flush appended bytes to stable storage.

        Raises:
            SyncError: If fsync fails
        """
        try:
            os.fsync(self._fd)
        except OSError as e:
            logger.error("Failed to sync log", path=str(self.path), error=str(e))
            raise SyncError(f"Cannot sync log {self.path}: {e}") from e

    def _rollback(self) -> None:
        """Drop the bytes of a failed append, keeping only valid records."""
        try:
            os.ftruncate(self._fd, self._size)
        except OSError as e:
            self._failed = True
            logger.error(
                "Failed to roll back append, log is unusable",
                path=str(self.path),
                size=self._size,
                error=str(e),
            )
            return

        logger.warning("Rolled back failed append", path=str(self.path), size=self._size)

    def _write_all(self, data: bytes) -> None:
        """
        Write a whole frame, continuing after short writes.

        Raises:
            WriteError: If a write fails or makes no progress
        """
        view = memoryview(data)
        written = 0

        while written < len(data):
            try:
                bytes_written = os.write(self._fd, view[written:])
            except OSError as e:
                logger.error(
                    "Failed to append record",
                    path=str(self.path),
                    written=written,
                    expected=len(data),
                    error=str(e),
                )
                raise WriteError(f"Cannot append to log {self.path}: {e}") from e

            if bytes_written == 0:
                raise WriteError(
                    f"Partial write: expected {len(data)} bytes, wrote {written} bytes"
                )

            written += bytes_written

    def record_count(self) -> int:
        """
        Get the number of valid, durable records.

        Returns:
            Record count
        """
        return self._record_count

    def size(self) -> int:
        """
        Get the size of the valid log content in bytes.

        Returns:
            Size in bytes
        """
        return self._size

    @property
    def closed(self) -> bool:
        """Whether the handle has been closed."""
        return self._fd is None

    def close(self) -> None:
        """Close the log. Safe to call more than once."""
        if self._fd is None:
            return

        self._close_fd()

        logger.info(
            "Closed log",
            path=str(self.path),
            records=self._record_count,
            size=self._size,
        )

    def _close_fd(self) -> None:
        fd, self._fd = self._fd, None
        try:
            os.close(fd)
        except OSError as e:
            logger.warning("Error closing log file", path=str(self.path), error=str(e))

    def __enter__(self) -> "PersistentLog":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"PersistentLog(path={str(self.path)!r}, "
            f"records={self._record_count}, "
            f"size={self._size})"
        )
