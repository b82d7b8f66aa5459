"""Tests for sequential log replay."""

import os
from unittest import mock

import pytest

from persistlog.core.log.format import encode_frame
from persistlog.core.log.log import PersistentLog
from persistlog.core.log.reader import LogReader, iter_records


class TestLogReader:
    """Test LogReader."""
    
    def test_read_all_records(self, log_path):
        """Test reading back every stored record in order."""
        values = [f"value-{i}".encode() for i in range(10)]
        with PersistentLog(log_path) as log:
            for value in values:
                log.store(value)
        
        with LogReader(log_path) as reader:
            records = list(reader)
        
        assert [r.payload for r in records] == values
    
    def test_read_empty_log(self, log_path):
        """Test reading a log with no records."""
        PersistentLog(log_path).close()
        
        assert list(iter_records(log_path)) == []
    
    def test_reader_stops_at_corruption(self, log_path):
        """Test that reading stops at the first bad frame without repairing it."""
        data = encode_frame(b"one") + encode_frame(b"two") + encode_frame(b"three")[:-1]
        log_path.write_bytes(data)
        
        payloads = [r.payload for r in iter_records(log_path)]
        
        assert payloads == [b"one", b"two"]
        assert log_path.read_bytes() == data
    
    def test_reader_ignores_huge_garbage_length(self, log_path):
        """Test that a garbage length field ends the read."""
        log_path.write_bytes(encode_frame(b"one") + b"\x00" * 8 + b"\xff\xff\xff\xf0")
        
        assert [r.payload for r in iter_records(log_path)] == [b"one"]
    
    def test_iterate_twice(self, log_path):
        """Test that a reader can be iterated more than once."""
        log_path.write_bytes(encode_frame(b"a") + encode_frame(b"b"))
        
        with LogReader(log_path) as reader:
            first = [r.payload for r in reader]
            second = [r.payload for r in reader]
        
        assert first == second == [b"a", b"b"]
    
    def test_missing_file(self, log_path):
        """Test that reading a missing log raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Log file not found"):
            LogReader(log_path)
    
    def test_short_reads_are_retried(self, log_path):
        """Test that records are read whole even when reads come back short."""
        values = [b"x" * 40, b"", b"tail record"]
        log_path.write_bytes(b"".join(encode_frame(v) for v in values))
        real_pread = os.pread
        
        def short_pread(fd, size, position):
            return real_pread(fd, min(size, 3), position)
        
        with mock.patch("persistlog.core.log.recovery.os.pread", side_effect=short_pread):
            payloads = [r.payload for r in iter_records(log_path)]
        
        assert payloads == values
