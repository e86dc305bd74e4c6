"""In-process change feed used to tell open views that they should re-read.

Notifications are a refresh hint only. Correctness never depends on them:
every slot derivation and booking re-reads the database.
"""

import logging
from threading import Lock
from typing import Any, Callable

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[dict[str, Any]], None]


def parse_filter(expression: str | None) -> tuple[str, str] | None:
    """Parse an equality filter such as ``doctor_id=eq.42``."""
    if not expression:
        return None

    column, separator, condition = expression.partition('=')
    if not separator or not condition.startswith('eq.') or not column.strip():
        raise ValueError(f'Unsupported change filter: {expression!r}')

    return column.strip(), condition[len('eq.'):]


def as_record(instance) -> dict[str, Any]:
    return {column.name: getattr(instance, column.name) for column in instance.__table__.columns}


class Subscription:
    """Handle for one listener; closing it (or leaving its ``with`` block) detaches it."""

    def __init__(self, feed: 'ChangeFeed', table: str, predicate: tuple[str, str] | None, callback: ChangeCallback):
        self._feed = feed
        self.table = table
        self.predicate = predicate
        self.callback = callback
        self.closed = False

    def matches(self, table: str, record: dict[str, Any]) -> bool:
        if table != self.table:
            return False
        if self.predicate is None:
            return True

        column, expected = self.predicate
        return column in record and str(record[column]) == expected

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._feed._remove(self)

    def __enter__(self) -> 'Subscription':
        return self

    def __exit__(self, exc_type, exc, traceback) -> None:
        self.close()


class ChangeFeed:
    def __init__(self):
        self._lock = Lock()
        self._subscriptions: list[Subscription] = []

    def subscribe(self, table: str, filter_expression: str | None, callback: ChangeCallback) -> Subscription:
        subscription = Subscription(self, table, parse_filter(filter_expression), callback)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def publish(self, table: str, event: str, record: dict[str, Any]) -> int:
        with self._lock:
            targets = [subscription for subscription in self._subscriptions if subscription.matches(table, record)]

        payload = {'table': table, 'event': event, 'record': record}
        for subscription in targets:
            try:
                subscription.callback(payload)
            except Exception:
                logger.exception('Change listener for %s failed', table)

        return len(targets)

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)


change_feed = ChangeFeed()
