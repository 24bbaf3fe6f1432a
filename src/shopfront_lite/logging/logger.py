"""JSONL + SQLite dual-write audit logger."""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from shopfront_lite.storage.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)


class AuditLogger:
    """Fire-and-forget record of search, cart, discount and checkout events.

    Writes the JSONL file first, then the SQLite event_log. Neither write may
    block the user-facing flow, so both failures are reported and dropped.
    """

    def __init__(self, log_dir: Path, store: SQLiteStore | None = None) -> None:
        self.log_dir = log_dir
        self.store = store
        self.log_dir.mkdir(parents=True, exist_ok=True)

    @property
    def _log_file(self) -> Path:
        """Current log file (one per day)."""
        today = datetime.now(UTC).strftime("%Y-%m-%d")
        return self.log_dir / f"shopfront-{today}.jsonl"

    def log(
        self,
        event_type: str,
        data: dict,
        *,
        session_id: str | None = None,
        duration_ms: int | None = None,
    ) -> None:
        entry = {
            "event_type": event_type,
            "data": data,
            "session_id": session_id,
            "duration_ms": duration_ms,
            "timestamp": datetime.now(UTC).isoformat(),
        }

        try:
            with self._log_file.open("a") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError:
            logger.warning("Failed to append %s to audit log", event_type, exc_info=True)

        if self.store is not None:
            self.store.log_event(
                event_type, data, session_id=session_id, duration_ms=duration_ms
            )

    @contextmanager
    def timed(self, event_type: str, **kwargs):
        """Context manager that auto-captures duration and status."""
        context = {"status": "started"}
        start = time.monotonic()
        try:
            yield context
            context["status"] = "success"
        except Exception as e:
            context["status"] = "error"
            context["error"] = str(e)
            raise
        finally:
            duration_ms = int((time.monotonic() - start) * 1000)
            self.log(event_type, context, duration_ms=duration_ms, **kwargs)
