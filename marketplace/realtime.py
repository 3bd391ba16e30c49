"""
Realtime change feed for database rows.

The database clients publish a ChangeEvent after every committed write; screens
subscribe to a table (optionally narrowed to one event type and one
``column=eq.value`` filter) and get called back with each matching change.
Delivery order and guarantees are whatever the transport provides.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from marketplace.types import ChangeEventType

logger = logging.getLogger(__name__)


@dataclass
class ChangeEvent:
    table: str
    event_type: ChangeEventType
    new: dict = field(default_factory=dict)
    old: dict = field(default_factory=dict)
    commit_timestamp: float = field(default_factory=lambda: time.time())

    @property
    def record(self) -> dict:
        """The row the event is about (``old`` for deletes)."""
        if self.event_type == ChangeEventType.DELETE:
            return self.old
        return self.new

    def as_dict(self) -> dict:
        return {
            "table": self.table,
            "event_type": self.event_type.value,
            "new": self.new,
            "old": self.old,
            "commit_timestamp": self.commit_timestamp,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "ChangeEvent":
        return cls(
            table=payload["table"],
            event_type=ChangeEventType(payload["event_type"]),
            new=payload.get("new") or {},
            old=payload.get("old") or {},
            commit_timestamp=payload.get("commit_timestamp") or time.time(),
        )


ChangeCallback = Callable[[ChangeEvent], Any]


def parse_filter(expression: Optional[str]) -> Optional[tuple[str, str]]:
    """
    Parse a ``column=eq.value`` filter. Only equality is supported.
    """
    if not expression:
        return None
    column, sep, rest = expression.partition("=")
    op, dot, value = rest.partition(".")
    if not sep or not dot or op != "eq" or not column:
        raise ValueError(f"Unsupported realtime filter: {expression!r}")
    return column.strip(), value


def matches(
    change: ChangeEvent,
    table: str,
    event: ChangeEventType = ChangeEventType.ALL,
    filter: Optional[str] = None,
) -> bool:
    if change.table != table:
        return False
    if event != ChangeEventType.ALL and change.event_type != event:
        return False
    parsed = parse_filter(filter)
    if parsed is None:
        return True
    column, value = parsed
    return str(change.record.get(column)) == value


class Subscription(Protocol):
    def unsubscribe(self) -> None:
        ...


class RealtimeClient(Protocol):
    """Interface for the table change feed."""

    def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        *,
        event: ChangeEventType = ChangeEventType.ALL,
        filter: Optional[str] = None,
    ) -> Subscription:
        ...

    def publish(self, change: ChangeEvent) -> None:
        ...


@dataclass
class InMemorySubscription:
    client: "InMemoryRealtimeClient"
    table: str
    callback: ChangeCallback
    event: ChangeEventType = ChangeEventType.ALL
    filter: Optional[str] = None
    active: bool = True

    def unsubscribe(self) -> None:
        self.active = False
        if self in self.client.subscriptions:
            self.client.subscriptions.remove(self)


class InMemoryRealtimeClient:
    """Delivers changes synchronously to subscribers in the same process."""

    def __init__(self):
        self.subscriptions: list[InMemorySubscription] = []
        self.published: list[ChangeEvent] = []

    def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        *,
        event: ChangeEventType = ChangeEventType.ALL,
        filter: Optional[str] = None,
    ) -> InMemorySubscription:
        parse_filter(filter)
        subscription = InMemorySubscription(
            client=self, table=table, callback=callback, event=event, filter=filter
        )
        self.subscriptions.append(subscription)
        return subscription

    def publish(self, change: ChangeEvent) -> None:
        self.published.append(change)
        for subscription in list(self.subscriptions):
            if subscription.active and matches(
                change, subscription.table, subscription.event, subscription.filter
            ):
                subscription.callback(change)

    def reset(self) -> None:
        """Drop subscribers and history (useful in tests)."""
        self.subscriptions.clear()
        self.published.clear()


@dataclass
class RedisSubscription:
    pubsub: Any
    thread: Any

    def unsubscribe(self) -> None:
        # The worker thread closes the pubsub once it notices the stop.
        self.thread.stop()
        self.thread.join(timeout=1)


@dataclass
class RedisRealtimeClient:
    """Redis pub/sub transport, one channel per table."""

    url: str
    channel_prefix: str = "marketplace:realtime"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def _channel(self, table: str) -> str:
        return f"{self.channel_prefix}:{table}"

    def publish(self, change: ChangeEvent) -> None:
        # The row is already committed; a lost change is logged, not raised.
        channel = self._channel(change.table)
        payload = json.dumps(change.as_dict(), default=str)
        try:
            try:
                self.client.publish(channel, payload)
            except redis_exceptions.ConnectionError:
                # Managed Redis drops idle connections; reconnect and resend once.
                logger.warning("Realtime publish lost its connection, reconnecting")
                self.client = redis.Redis.from_url(self.url)
                self.client.publish(channel, payload)
        except redis_exceptions.RedisError as exc:
            logger.error(
                "Realtime publish to %s failed (%s %s): %s",
                channel,
                change.table,
                change.event_type,
                exc,
            )

    def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        *,
        event: ChangeEventType = ChangeEventType.ALL,
        filter: Optional[str] = None,
    ) -> RedisSubscription:
        parse_filter(filter)

        def handle(message: dict) -> None:
            change = ChangeEvent.from_dict(json.loads(message["data"]))
            if matches(change, table, event, filter):
                callback(change)

        pubsub = self.client.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(**{self._channel(table): handle})
        thread = pubsub.run_in_thread(sleep_time=0.05, daemon=True)
        logger.info("Subscribed to %s (event=%s, filter=%s)", table, event, filter)
        return RedisSubscription(pubsub=pubsub, thread=thread)
