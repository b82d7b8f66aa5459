"""
Crash recovery for the persistent log.

On open, the log file is scanned frame by frame from offset 0. Scanning stops
at the first frame that is incomplete or fails its checksum, and every byte
from that frame onward is truncated away.

The scanner cannot tell a crash in the middle of the last append apart from a
corrupted record followed by unrelated bytes. Both are truncated identically
and there is no attempt to resynchronize past a bad frame.
"""

import os
from dataclasses import dataclass

from persistlog.core.log.errors import IOReadError, TruncateError
from persistlog.core.log.format import (
    HEADER_SIZE,
    FrameDecodeError,
    IncompleteFrameError,
    decode_frame,
    decode_header,
    verify_frame,
)
from persistlog.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class RecoveryResult:
    """
    Outcome of a recovery scan.

    Attributes:
        valid_records: Number of leading frames that validated
        valid_bytes: Offset just past the last valid frame
        file_size: Size of the file when the scan started
    """

    valid_records: int
    valid_bytes: int
    file_size: int

    @property
    def truncated_bytes(self) -> int:
        """Number of trailing bytes that are not part of the log."""
        return self.file_size - self.valid_bytes

    @property
    def needs_truncation(self) -> bool:
        """Whether the file holds bytes past the last valid frame."""
        return self.valid_bytes < self.file_size


class RecoveryScanner:
    """
    Validates a log file and finds the boundary of its last valid record.

    Two scanning modes produce identical results:
    - In-memory (default): reads the whole file, then decodes from the buffer.
      Uses O(file size) memory.
    - Streaming: reads one header and one payload at a time. Memory is bounded
      by the largest single payload.

    Attributes:
        streaming: Whether to scan without loading the whole file
        chunk_size: Read size used when loading the file into memory
    """

    def __init__(self, streaming: bool = False, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Initialize a recovery scanner.

        Args:
            streaming: Scan frame by frame instead of loading the file
            chunk_size: Bytes per read call when loading the file

        Raises:
            ValueError: If chunk_size is not positive
        """
        if chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {chunk_size}")

        self.streaming = streaming
        self.chunk_size = chunk_size

    def scan(self, fd: int) -> RecoveryResult:
        """
        Scan an open log file without modifying it.

        Args:
            fd: File descriptor open for reading

        Returns:
            Scan result

        Raises:
            IOReadError: If the file cannot be stat'd or read
        """
        try:
            file_size = os.fstat(fd).st_size
        except OSError as e:
            raise IOReadError(f"Cannot stat log file: {e}") from e

        if self.streaming:
            return self._scan_streaming(fd, file_size)

        return self._scan_buffer(self._read_fully(fd, file_size), file_size)

    def recover(self, fd: int) -> RecoveryResult:
        """
        Scan an open log file and truncate any invalid tail.

        Args:
            fd: File descriptor open for reading and writing

        Returns:
            Scan result describing the file before truncation

        Raises:
            IOReadError: If the file cannot be stat'd or read
            TruncateError: If the invalid tail cannot be removed
        """
        result = self.scan(fd)

        if result.needs_truncation:
            logger.warning(
                "Truncating invalid log tail",
                valid_bytes=result.valid_bytes,
                file_size=result.file_size,
                truncated_bytes=result.truncated_bytes,
            )
            truncate_to(fd, result.valid_bytes)

        return result

    def _read_fully(self, fd: int, file_size: int) -> bytes:
        """
        Read the whole file into memory.

        Args:
            fd: File descriptor
            file_size: Expected file size

        Returns:
            File contents (may be shorter than file_size if the file shrank)
        """
        chunks = []
        position = 0

        while position < file_size:
            try:
                chunk = os.pread(fd, min(self.chunk_size, file_size - position), position)
            except OSError as e:
                raise IOReadError(f"Cannot read log file at offset {position}: {e}") from e

            if not chunk:
                break

            chunks.append(chunk)
            position += len(chunk)

        return b"".join(chunks)

    def _scan_buffer(self, data: bytes, file_size: int) -> RecoveryResult:
        """Decode frames from an in-memory copy of the file."""
        position = 0
        valid_records = 0

        while position < len(data):
            try:
                _, position_after = decode_frame(data, position)
            except FrameDecodeError as e:
                self._log_stop(e, valid_records)
                break

            valid_records += 1
            position = position_after

        return RecoveryResult(
            valid_records=valid_records,
            valid_bytes=position,
            file_size=file_size,
        )

    def _scan_streaming(self, fd: int, file_size: int) -> RecoveryResult:
        """Decode frames by reading each one directly from the file."""
        position = 0
        valid_records = 0

        while position < file_size:
            try:
                position_after = self._read_frame(fd, position, file_size)
            except FrameDecodeError as e:
                self._log_stop(e, valid_records)
                break

            valid_records += 1
            position = position_after

        return RecoveryResult(
            valid_records=valid_records,
            valid_bytes=position,
            file_size=file_size,
        )

    def _read_frame(self, fd: int, position: int, file_size: int) -> int:
        """
        Read and validate the frame at ``position``.

        Returns:
            Offset immediately after the frame

        Raises:
            FrameDecodeError: If the frame is incomplete or corrupted
            IOReadError: If a read fails
        """
        header = read_at(fd, HEADER_SIZE, position)

        if len(header) < HEADER_SIZE:
            raise IncompleteFrameError(
                f"Incomplete header at offset {position}: "
                f"need {HEADER_SIZE} bytes, {len(header)} available",
                position,
            )

        checksum, length_bytes, length = decode_header(header)
        payload_start = position + HEADER_SIZE

        # A garbage length must not trigger a huge read.
        if payload_start + length > file_size:
            raise IncompleteFrameError(
                f"Incomplete payload at offset {position}: "
                f"need {length} bytes, {file_size - payload_start} available",
                position,
            )

        payload = read_at(fd, length, payload_start) if length else b""

        if len(payload) < length:
            raise IncompleteFrameError(
                f"Incomplete payload at offset {position}: "
                f"need {length} bytes, {len(payload)} available",
                position,
            )

        verify_frame(checksum, length_bytes, payload, position)

        return payload_start + length

    @staticmethod
    def _log_stop(error: FrameDecodeError, valid_records: int) -> None:
        logger.warning(
            "Stopped scan at invalid frame",
            offset=error.offset,
            reason=error.reason,
            valid_records=valid_records,
            error=str(error),
        )


def truncate_to(fd: int, size: int) -> None:
    """
    Shrink a file to ``size`` bytes and make the change durable.

    Args:
        fd: File descriptor open for writing
        size: New file size

    Raises:
        TruncateError: If truncation or the following fsync fails
    """
    try:
        os.ftruncate(fd, size)
        os.fsync(fd)
    except OSError as e:
        logger.error("Failed to truncate log", size=size, error=str(e))
        raise TruncateError(f"Cannot truncate log to {size} bytes: {e}") from e


def scan_file(path: os.PathLike, streaming: bool = False) -> RecoveryResult:
    """
    Scan a log file by path without modifying it.

    Args:
        path: Log file path
        streaming: Use the streaming scanner

    Returns:
        Scan result

    Raises:
        IOReadError: If the file cannot be opened, stat'd or read
    """
    try:
        fd = os.open(path, os.O_RDONLY)
    except OSError as e:
        raise IOReadError(f"Cannot open log file {path}: {e}") from e

    try:
        return RecoveryScanner(streaming=streaming).scan(fd)
    finally:
        os.close(fd)


def read_at(fd: int, size: int, position: int) -> bytes:
    """
    Read up to ``size`` bytes at ``position``, retrying short reads.

    Returns fewer than ``size`` bytes only at end of file.

    Raises:
        IOReadError: If a read fails
    """
    chunks = []
    remaining = size

    while remaining > 0:
        try:
            chunk = os.pread(fd, remaining, position)
        except OSError as e:
            raise IOReadError(f"Cannot read log file at offset {position}: {e}") from e

        if not chunk:
            break

        chunks.append(chunk)
        position += len(chunk)
        remaining -= len(chunk)

    return b"".join(chunks)
