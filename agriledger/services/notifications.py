# Overview: Change-event boundary between ledger commands and their subscribers.

"""
Agri Ledger change events (authoritative)

- Published only after the command's transaction has committed.
- Fire-and-forget: publish() queues one delivery per subscriber on a thread
  pool and returns immediately. A slow or failing subscriber never blocks or
  fails the originating command.
- Subscriber exceptions are logged and dropped.
- No ordering guarantee between subscribers; consumers that need the latest
  value should treat new_value as a hint and re-read.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Union

from agriledger.time_utils import utcnow, to_utc_z


ENTITY_ITEM = "item"
ENTITY_ASSET = "asset"
ENTITY_RETURN = "item_return"
ENTITY_REQUEST = "item_request"


@dataclass(frozen=True)
class ChangeEvent:
    """{entity_type, entity_id, new value, timestamp} for dashboard refresh."""
    entity_type: str
    entity_id: int
    new_value: Union[int, bool, str, None]
    event_type: str
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "new_value": self.new_value,
            "event_type": self.event_type,
            "timestamp": to_utc_z(self.timestamp),
        }


Handler = Callable[[ChangeEvent], None]


class EventBus:
    def __init__(self, max_workers: int = 4):
        self._max_workers = max_workers
        self._handlers: list[Handler] = []
        self._pending = set()
        self._lock = threading.RLock()
        self._executor: ThreadPoolExecutor | None = None
        self.logger = logging.getLogger("agriledger.events")

    def init_app(self, app) -> None:
        self._max_workers = app.config.get("EVENT_WORKERS", self._max_workers)
        self.logger = app.logger
        app.extensions["agriledger.events"] = self

    def subscribe(self, handler: Handler) -> Handler:
        """Register a handler. Returns it so this can be used as a decorator."""
        with self._lock:
            if handler not in self._handlers:
                self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: Handler) -> None:
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            handlers = list(self._handlers)
            if not handlers:
                return
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="agriledger-events",
                )
            for handler in handlers:
                future = self._executor.submit(self._deliver, handler, event)
                self._pending.add(future)
                future.add_done_callback(self._forget)

    def publish_all(self, events) -> None:
        for event in events:
            self.publish(event)

    def flush(self, timeout: float | None = None) -> bool:
        """Wait for queued deliveries. Returns False if the timeout expired."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def _forget(self, future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _deliver(self, handler: Handler, event: ChangeEvent) -> None:
        try:
            handler(event)
        except Exception:
            self.logger.exception(
                "Change event subscriber %r failed for %s %s",
                handler, event.entity_type, event.entity_id,
            )
