"""In-process pub/sub for store changes and pipeline progress.

Patterns:
- ``"storage.changed"`` matches that event type only
- ``"tier.*"`` matches ``tier.failed`` and ``tier.succeeded``
- ``subscribe_all`` sees everything

Handlers run synchronously inside ``publish``. A failing handler is logged
and the remaining handlers still run.
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple, Union

from pagelens.types import now_ms

logger = logging.getLogger(__name__)

CATCH_ALL = "*"


class EventType(Enum):
    """Event types published by pagelens components."""

    STORAGE_CHANGED = "storage.changed"      # {"key", "old", "new"}
    TIER_FAILED = "tier.failed"              # {"task", "tier", "error"}
    TIER_SUCCEEDED = "tier.succeeded"        # {"task", "tier"}
    SUMMARY_COMPLETED = "summary.completed"  # {"url", "source", "bullets"}
    ANSWER_COMPLETED = "answer.completed"    # {"url", "source"}


@dataclass
class Event:
    event_type: str
    data: Dict[str, Any]
    source: str = "pagelens"
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.event_type,
            "data": self.data,
            "source": self.source,
            "at": self.timestamp,
        }


EventHandler = Callable[[Event], None]


def pattern_matches(pattern: str, event_type: str) -> bool:
    if pattern == CATCH_ALL or pattern == event_type:
        return True
    return pattern.endswith(".*") and event_type.startswith(pattern[:-1])


class EventBus:
    """Synchronous event bus with a bounded history."""

    def __init__(self, history_size: int = 100) -> None:
        self._handlers: List[Tuple[str, EventHandler]] = []
        self._history: Deque[Event] = deque(maxlen=history_size)
        self._lock = threading.Lock()

    def subscribe(self, pattern: Union[str, EventType], handler: EventHandler) -> None:
        if isinstance(pattern, EventType):
            pattern = pattern.value
        with self._lock:
            self._handlers.append((pattern, handler))

    def subscribe_all(self, handler: EventHandler) -> None:
        self.subscribe(CATCH_ALL, handler)

    def unsubscribe(self, pattern: Union[str, EventType], handler: EventHandler) -> None:
        """Drop one registration of ``handler``; unknown pairs are ignored."""
        if isinstance(pattern, EventType):
            pattern = pattern.value
        with self._lock:
            if (pattern, handler) in self._handlers:
                self._handlers.remove((pattern, handler))

    def publish(
        self,
        event_type: Union[str, EventType],
        data: Optional[Dict[str, Any]] = None,
        source: str = "pagelens",
    ) -> Event:
        if isinstance(event_type, EventType):
            event_type = event_type.value
        event = Event(event_type=event_type, data=dict(data or {}), source=source)

        with self._lock:
            self._history.append(event)
            handlers = [h for p, h in self._handlers if pattern_matches(p, event_type)]

        for handler in handlers:
            try:
                handler(event)
            except Exception as exc:
                logger.error(
                    "[Events] Handler %s failed on %s: %s",
                    getattr(handler, "__qualname__", repr(handler)),
                    event_type,
                    exc,
                )
        return event

    def get_history(self, pattern: Optional[str] = None, limit: int = 20) -> List[Event]:
        """Most recent events, oldest first; ``pattern`` may use ``.*``."""
        with self._lock:
            events = [
                e for e in self._history
                if pattern is None or pattern_matches(pattern, e.event_type)
            ]
        return events[-limit:] if limit > 0 else []

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()
