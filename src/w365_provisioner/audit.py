from __future__ import annotations

import json
import logging
import sys
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, TextIO

CONTEXT_KEYS = ("tenant_id", "correlation_id")


@dataclass
class AuditEvent:
    timestamp: str
    level: str
    message: str
    tenant_id: Optional[str] = None
    correlation_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        payload: Dict[str, Any] = {"timestamp": self.timestamp, "level": self.level, "message": self.message}
        for key in CONTEXT_KEYS:
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        payload.update(self.extra)
        return json.dumps(payload, default=str)


class InMemoryAuditStore:
    """Event buffer for the current run, read back to build the run summary."""

    def __init__(self, max_events: int = 5000):
        self._events: Deque[AuditEvent] = deque(maxlen=max_events)

    def append(self, event: AuditEvent) -> None:
        self._events.append(event)

    def list(self, level: Optional[str] = None) -> List[AuditEvent]:
        if level is None:
            return list(self._events)
        return [event for event in self._events if event.level == level]

    def count(self, level: str) -> int:
        return self.levels()[level]

    def levels(self) -> Counter:
        return Counter(event.level for event in self._events)


class JsonAuditLogger:
    """Structured logger for provisioning events.

    Every call builds one AuditEvent, which is written as a JSON line and, when
    a store is attached, kept for the end-of-run summary. Passing ``stream``
    replaces any handler already installed on the named logger, so the CLI can
    move the event log off stdout.
    """

    def __init__(
        self,
        name: str = "w365_provisioner",
        level: int = logging.INFO,
        store: Optional[InMemoryAuditStore] = None,
        stream: Optional[TextIO] = None,
    ):
        self.logger = logging.getLogger(name)
        if stream is not None:
            for handler in list(self.logger.handlers):
                self.logger.removeHandler(handler)
        if not self.logger.handlers:
            handler = logging.StreamHandler(stream or sys.stdout)
            handler.setFormatter(_EventFormatter())
            self.logger.addHandler(handler)
        self.logger.setLevel(level)
        self.logger.propagate = False
        self.store = store

    def _log(self, level: int, message: str, **kwargs: Any) -> None:
        event = AuditEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=logging.getLevelName(level),
            message=message,
            tenant_id=kwargs.pop("tenant_id", None),
            correlation_id=kwargs.pop("correlation_id", None),
            extra=kwargs,
        )
        if self.store is not None:
            self.store.append(event)
        self.logger.log(level, message, extra={"audit_event": event})

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, **kwargs)


class _EventFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        event: Optional[AuditEvent] = getattr(record, "audit_event", None)
        if event is None:
            event = AuditEvent(
                timestamp=datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
                level=record.levelname,
                message=record.getMessage(),
            )
        return event.to_json()
