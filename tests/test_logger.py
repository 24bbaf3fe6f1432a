"""Tests for AuditLogger."""

import json
import time

import pytest

from shopfront_lite.logging.logger import AuditLogger


class TestAuditLogger:
    def test_log_writes_valid_jsonl(self, audit, tmp_config):
        """Log entry produces valid JSONL in log file."""
        audit.log("cart.add", {"product_id": "1"})
        log_files = list(tmp_config.log_dir.glob("shopfront-*.jsonl"))
        assert len(log_files) == 1
        lines = log_files[0].read_text().splitlines()
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["event_type"] == "cart.add"
        assert entry["data"]["product_id"] == "1"

    def test_log_writes_to_sqlite(self, audit, store):
        """Log entry also writes to SQLite event_log."""
        audit.log("search.completed", {"query": "coat"}, session_id="sess-1")
        events = store.query_events(event_type="search.completed")
        assert len(events) == 1
        assert events[0].session_id == "sess-1"

    def test_timed_captures_duration(self, audit, tmp_config):
        """timed() context manager records duration_ms."""
        with audit.timed("checkout.created"):
            time.sleep(0.05)
        log_files = list(tmp_config.log_dir.glob("*.jsonl"))
        entry = json.loads(log_files[0].read_text().splitlines()[-1])
        assert entry["duration_ms"] >= 40
        assert entry["data"]["status"] == "success"

    def test_timed_captures_error_status(self, audit, tmp_config):
        """timed() records error status on exception."""
        with pytest.raises(ValueError, match="declined"), audit.timed("checkout.failed"):
            raise ValueError("declined")  # noqa: EM101
        log_files = list(tmp_config.log_dir.glob("*.jsonl"))
        entry = json.loads(log_files[0].read_text().splitlines()[-1])
        assert entry["data"]["status"] == "error"
        assert "declined" in entry["data"]["error"]

    def test_file_only_mode(self, tmp_config):
        """Logger works without a store (file-only mode)."""
        file_logger = AuditLogger(tmp_config.log_dir)
        file_logger.log("catalog.loaded", {"origin": "seed"})
        assert list(tmp_config.log_dir.glob("*.jsonl"))

    def test_unwritable_log_dir_does_not_raise(self, tmp_config, store, monkeypatch):
        audit = AuditLogger(tmp_config.log_dir, store)
        monkeypatch.setattr(AuditLogger, "_log_file", property(lambda self: self.log_dir))
        audit.log("cart.clear", {})
        assert len(store.query_events(event_type="cart.clear")) == 1
