from __future__ import annotations

import json
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, TextIO

from .retry import RetryEvent


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _truncate(text: str, *, limit: int) -> str:
    s = str(text or "")
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 1)] + "…"


class RunLogger:
    """
    JSONL logger for verification runs.

    Each line is one JSON object (ts, level, event, session_id, optional
    run_id/url, data). Writes are serialized so the search fan-out threads
    can log concurrently.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        *,
        path: str | Path | None = None,
        session_id: str | None = None,
    ) -> None:
        self._stream = stream
        self._path = Path(path) if path is not None else None
        self._owns_stream = False
        self._session_id = (session_id or "").strip() or uuid.uuid4().hex
        self._run_id: str | None = None
        self._lock = Lock()

    @classmethod
    def open(cls, path: str | Path, *, session_id: str | None = None) -> "RunLogger":
        logger = cls(path=path, session_id=session_id)
        logger._ensure_open()
        return logger

    def close(self) -> None:
        with self._lock:
            if self._stream is None:
                return
            self._stream.flush()
            if self._owns_stream:
                self._stream.close()
                self._stream = None

    def __enter__(self) -> "RunLogger":
        self._ensure_open()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    @property
    def session_id(self) -> str:
        return self._session_id

    def set_run_id(self, run_id: str | None) -> None:
        self._run_id = (run_id or "").strip() or None

    def info(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("INFO", event, url=url, **data)

    def warning(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("WARN", event, url=url, **data)

    def error(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("ERROR", event, url=url, **data)

    def exception(
        self,
        event: str,
        *,
        exc: BaseException,
        url: str | None = None,
        **data: Any,
    ) -> None:
        err = {
            "type": type(exc).__name__,
            "message": _truncate(str(exc), limit=2000),
            "traceback": _truncate(
                "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                limit=12000,
            ),
        }
        self.log("ERROR", event, url=url, error=err, **data)

    def retry_event(self, event: RetryEvent) -> None:
        """Adapter usable as an on_retry callback."""
        self.warning(
            "transport_retry",
            operation=event.operation,
            attempt=event.failure_attempt,
            max_attempts=event.max_attempts,
            delay_seconds=round(event.delay_seconds, 3),
            reason=event.reason,
            error_type=event.error_type,
            error_message=_truncate(event.error_message, limit=500),
            context=event.context,
        )

    def log(self, level: str, event: str, *, url: str | None = None, **data: Any) -> None:
        record: dict[str, Any] = {
            "ts": utc_now_iso(),
            "level": (level or "").strip().upper() or "INFO",
            "event": (event or "").strip() or "event",
            "session_id": self._session_id,
        }
        if self._run_id:
            record["run_id"] = self._run_id

        u = (url or "").strip()
        if u:
            record["url"] = u

        if data:
            record["data"] = data

        self._write(record)

    def _ensure_open(self) -> None:
        if self._stream is not None or self._path is None:
            return
        with self._lock:
            if self._stream is not None:
                return
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._stream = self._path.open("w", encoding="utf-8", newline="\n")
            self._owns_stream = True

    def _write(self, record: dict[str, Any]) -> None:
        self._ensure_open()
        payload = json.dumps(
            record,
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
        with self._lock:
            if self._stream is None:
                return
            self._stream.write(payload + "\n")
            self._stream.flush()


class NullRunLogger(RunLogger):
    """Drops every record; the default when a component is built without a logger."""

    def __init__(self) -> None:
        super().__init__(session_id="null")

    def _write(self, record: dict[str, Any]) -> None:
        return None
