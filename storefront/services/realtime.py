"""In-process change feed for table inserts.

Writers call :func:`publish` after a successful commit; readers open a
:class:`Subscription` scoped to one table (and optionally a predicate) and
drain it from their own queue. Subscriptions are per-view: the chat stream
opens one when it starts and closes it when the client disconnects.
"""
from __future__ import annotations

import itertools
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from storefront.utils.logging import get_logger

LOG = get_logger("realtime")

INSERT = "INSERT"
_MAX_PENDING = 500

Predicate = Callable[[Dict[str, Any]], bool]


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event: str
    record: Dict[str, Any]

    def to_payload(self) -> Dict[str, Any]:
        return {"table": self.table, "event": self.event, "new": dict(self.record)}


@dataclass
class Subscription:
    id: int
    table: str
    event: str
    predicate: Optional[Predicate]
    _feed: "ChangeFeed" = field(repr=False)
    _queue: "queue.Queue[ChangeEvent]" = field(default_factory=lambda: queue.Queue(maxsize=_MAX_PENDING), repr=False)
    closed: bool = False

    def matches(self, change: ChangeEvent) -> bool:
        if self.closed or change.table != self.table or change.event != self.event:
            return False
        if self.predicate is None:
            return True
        return bool(self.predicate(change.record))

    def offer(self, change: ChangeEvent) -> None:
        try:
            self._queue.put_nowait(change)
        except queue.Full:
            LOG.warning("subscription %s backlog full; dropping %s event", self.id, change.table)

    def get(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        """Next matching event, or None when ``timeout`` elapses first."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[ChangeEvent]:
        items = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except queue.Empty:
                return items

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._feed.unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *_exc) -> None:
        self.close()


class ChangeFeed:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subs: Dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    def subscribe(self, table: str, *, event: str = INSERT, predicate: Optional[Predicate] = None) -> Subscription:
        with self._lock:
            sub = Subscription(id=next(self._ids), table=table, event=event, predicate=predicate, _feed=self)
            self._subs[sub.id] = sub
        LOG.debug("subscription opened id=%s table=%s", sub.id, table)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            self._subs.pop(sub.id, None)
        sub.closed = True
        LOG.debug("subscription closed id=%s", sub.id)

    def publish(self, table: str, record: Dict[str, Any], *, event: str = INSERT) -> int:
        """Fan the change out to matching subscribers; return how many received it."""
        change = ChangeEvent(table=table, event=event, record=dict(record))
        with self._lock:
            targets = list(self._subs.values())
        delivered = 0
        for sub in targets:
            if sub.matches(change):
                sub.offer(change)
                delivered += 1
        return delivered

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subs)


_FEED = ChangeFeed()


def get_feed() -> ChangeFeed:
    return _FEED


def subscribe(table: str, *, event: str = INSERT, predicate: Optional[Predicate] = None) -> Subscription:
    return _FEED.subscribe(table, event=event, predicate=predicate)


def publish(table: str, record: Dict[str, Any], *, event: str = INSERT) -> int:
    return _FEED.publish(table, record, event=event)


__all__ = [
    "INSERT",
    "ChangeEvent",
    "ChangeFeed",
    "Subscription",
    "get_feed",
    "subscribe",
    "publish",
]
