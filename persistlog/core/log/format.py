"""
Record frame format for the persistent log.

This module defines the binary layout of a single record on disk and the
codec used to build and validate it. A log file is a flat concatenation of
frames with no header, footer or version marker.

Frame layout:
    Checksum (8 bytes) - XXH64 (seed 0) digest of length + payload, big-endian
    Length (4 bytes) - Payload length, unsigned, big-endian
    Payload (variable) - Exactly ``length`` raw bytes
"""

import struct
from dataclasses import dataclass
from typing import Tuple, Union

import xxhash

from persistlog.core.log.errors import PayloadTooLargeError

BytesLike = Union[bytes, bytearray, memoryview]

CHECKSUM_SIZE = 8
LENGTH_SIZE = 4
HEADER_SIZE = CHECKSUM_SIZE + LENGTH_SIZE
MAX_PAYLOAD_SIZE = 2**32 - 1

_LENGTH_STRUCT = struct.Struct(">I")


class FrameDecodeError(ValueError):
    """Base class for frames that do not decode to a valid record."""

    reason = "invalid"

    def __init__(self, message: str, offset: int):
        super().__init__(message)
        self.offset = offset


class IncompleteFrameError(FrameDecodeError):
    """The buffer ends before the frame does."""

    reason = "incomplete"


class ChecksumMismatchError(FrameDecodeError):
    """The stored checksum does not match the frame contents."""

    reason = "checksum_mismatch"


@dataclass(frozen=True)
class LogRecord:
    """
    A single validated record.

    Attributes:
        payload: Raw record bytes
        checksum: 8-byte checksum stored with the record
    """

    payload: bytes
    checksum: bytes

    @property
    def length(self) -> int:
        """Payload length in bytes."""
        return len(self.payload)

    @property
    def frame_size(self) -> int:
        """Size of the serialized frame in bytes."""
        return HEADER_SIZE + len(self.payload)


def compute_checksum(length_bytes: BytesLike, payload: BytesLike) -> bytes:
    """
    Compute the frame checksum over ``length_bytes || payload``.

    Args:
        length_bytes: 4-byte big-endian payload length
        payload: Payload bytes

    Returns:
        8-byte big-endian XXH64 digest
    """
    hasher = xxhash.xxh64()
    hasher.update(length_bytes)
    hasher.update(payload)
    return hasher.digest()


def encode_length(length: int) -> bytes:
    """
    Encode a payload length as a 4-byte big-endian field.

    Raises:
        PayloadTooLargeError: If length exceeds the 32-bit range
    """
    if length > MAX_PAYLOAD_SIZE:
        raise PayloadTooLargeError(
            f"Payload of {length} bytes exceeds maximum of {MAX_PAYLOAD_SIZE} bytes"
        )
    return _LENGTH_STRUCT.pack(length)


def encode_frame(payload: BytesLike) -> bytes:
    """
    Serialize a payload into a frame.

    Zero-length payloads are valid and produce a 12-byte frame.

    Args:
        payload: Record bytes

    Returns:
        checksum || length || payload

    Raises:
        TypeError: If payload is not bytes-like
        PayloadTooLargeError: If payload does not fit the length field
    """
    if not isinstance(payload, (bytes, bytearray, memoryview)):
        raise TypeError(f"Payload must be bytes-like, got {type(payload)}")

    payload = bytes(payload)
    length_bytes = encode_length(len(payload))
    checksum = compute_checksum(length_bytes, payload)

    return checksum + length_bytes + payload


def decode_header(header: BytesLike) -> Tuple[bytes, bytes, int]:
    """
    Split a frame header into its fields.

    Args:
        header: Exactly HEADER_SIZE bytes

    Returns:
        Tuple of (checksum, raw length bytes, length)
    """
    if len(header) != HEADER_SIZE:
        raise ValueError(f"Header must be {HEADER_SIZE} bytes, got {len(header)}")

    checksum = bytes(header[:CHECKSUM_SIZE])
    length_bytes = bytes(header[CHECKSUM_SIZE:HEADER_SIZE])
    (length,) = _LENGTH_STRUCT.unpack(length_bytes)

    return checksum, length_bytes, length


def verify_frame(
    checksum: bytes,
    length_bytes: bytes,
    payload: bytes,
    offset: int,
) -> LogRecord:
    """
    Check a frame's stored checksum against its contents.

    Args:
        checksum: Stored checksum
        length_bytes: Raw length field
        payload: Payload bytes
        offset: Byte offset of the frame, for error reporting

    Returns:
        The validated record

    Raises:
        ChecksumMismatchError: If the checksum does not match
    """
    computed = compute_checksum(length_bytes, payload)
    if computed != checksum:
        raise ChecksumMismatchError(
            f"Checksum mismatch at offset {offset}: "
            f"stored {checksum.hex()}, computed {computed.hex()}",
            offset,
        )
    return LogRecord(payload=payload, checksum=checksum)


def decode_frame(buffer: BytesLike, offset: int = 0) -> Tuple[LogRecord, int]:
    """
    Decode the frame starting at ``offset`` within ``buffer``.

    Args:
        buffer: Bytes containing one or more frames
        offset: Byte offset of the frame to decode

    Returns:
        Tuple of (record, offset immediately after the frame)

    Raises:
        IncompleteFrameError: If the buffer ends inside the frame
        ChecksumMismatchError: If the frame fails validation
        ValueError: If offset is negative
    """
    if offset < 0:
        raise ValueError(f"Offset must be non-negative, got {offset}")

    buffer_size = len(buffer)

    if offset + HEADER_SIZE > buffer_size:
        raise IncompleteFrameError(
            f"Incomplete header at offset {offset}: "
            f"need {HEADER_SIZE} bytes, {max(buffer_size - offset, 0)} available",
            offset,
        )

    checksum, length_bytes, length = decode_header(
        buffer[offset : offset + HEADER_SIZE]
    )

    payload_start = offset + HEADER_SIZE
    payload_end = payload_start + length

    if payload_end > buffer_size:
        raise IncompleteFrameError(
            f"Incomplete payload at offset {offset}: "
            f"need {length} bytes, {buffer_size - payload_start} available",
            offset,
        )

    payload = bytes(buffer[payload_start:payload_end])
    record = verify_frame(checksum, length_bytes, payload, offset)

    return record, payload_end
