"""
Sequential reader for replaying a log file.

Yields the valid prefix of a log file in append order without modifying it.
Reading stops silently at the first incomplete or corrupted frame, the same
boundary the recovery scan would truncate to.
"""

import os
from pathlib import Path
from typing import Iterator, Optional, Union

from persistlog.core.log.errors import IOReadError
from persistlog.core.log.format import (
    HEADER_SIZE,
    FrameDecodeError,
    IncompleteFrameError,
    LogRecord,
    decode_header,
    verify_frame,
)
from persistlog.core.log.recovery import read_at
from persistlog.utils.logging import get_logger

logger = get_logger(__name__)


class LogReader:
    """
    Read-only, sequential view of a log file.

    Reads one frame at a time, so memory use is bounded by the largest
    payload. There is no positional lookup by record index.
    """

    def __init__(self, path: Union[str, Path]):
        """
        Initialize a log reader.

        Args:
            path: Path to the log file

        Raises:
            FileNotFoundError: If the log file doesn't exist
        """
        self.path = Path(path)

        if not self.path.exists():
            raise FileNotFoundError(f"Log file not found: {self.path}")

        self._fd: Optional[int] = None

    def open(self) -> None:
        """Open the log file for reading."""
        if self._fd is None:
            try:
                self._fd = os.open(self.path, os.O_RDONLY)
            except OSError as e:
                raise IOReadError(f"Cannot open log file {self.path}: {e}") from e

    def close(self) -> None:
        """Close the log file."""
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None

    def __iter__(self) -> Iterator[LogRecord]:
        """
        Iterate over valid records in append order.

        Yields:
            Records up to the first invalid frame

        Raises:
            IOReadError: If the file cannot be stat'd or read
        """
        self.open()

        try:
            file_size = os.fstat(self._fd).st_size
        except OSError as e:
            raise IOReadError(f"Cannot stat log file {self.path}: {e}") from e

        position = 0
        index = 0

        while position < file_size:
            try:
                record = self._read_record(position, file_size)
            except FrameDecodeError as e:
                logger.debug(
                    "Reader stopped at invalid frame",
                    path=str(self.path),
                    offset=position,
                    records=index,
                    reason=e.reason,
                )
                break

            yield record

            position += record.frame_size
            index += 1

    def _read_record(self, position: int, file_size: int) -> LogRecord:
        header = read_at(self._fd, HEADER_SIZE, position)

        if len(header) < HEADER_SIZE:
            raise IncompleteFrameError(f"Incomplete header at offset {position}", position)

        checksum, length_bytes, length = decode_header(header)

        if position + HEADER_SIZE + length > file_size:
            raise IncompleteFrameError(f"Incomplete payload at offset {position}", position)

        payload = read_at(self._fd, length, position + HEADER_SIZE) if length else b""

        if len(payload) < length:
            raise IncompleteFrameError(f"Incomplete payload at offset {position}", position)

        return verify_frame(checksum, length_bytes, payload, position)

    def __enter__(self) -> "LogReader":
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()


def iter_records(path: Union[str, Path]) -> Iterator[LogRecord]:
    """
    Iterate over the valid records of a log file.

    Args:
        path: Path to the log file

    Yields:
        Records in append order
    """
    with LogReader(path) as reader:
        yield from reader
