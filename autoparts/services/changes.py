"""In-process publish/subscribe for ledger changes.

One ``ChangeFeed`` is built by the application factory and handed to request
handlers through ``deps.feed.get_change_feed``. Ledger helpers publish only
after their transaction has committed, so a listener never sees a change that
was later rolled back.

Every message is a ``Change``: the action taken and the primary keys it touched.
Ids always belong to the topic's own table: part ids on ``inventory``, invoice
ids on ``invoices``, payment ids on ``payments`` and audit entry ids on
``transactions``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, NamedTuple

logger = logging.getLogger(__name__)

TOPICS = ("inventory", "invoices", "payments", "transactions")

Listener = Callable[[Any], None]


class Change(NamedTuple):
    action: str
    ids: tuple[int, ...]


def change(action: str, *ids: int | None) -> Change:
    """Build a ``Change``, dropping ``None`` and repeated ids but keeping order."""

    unique: dict[int, None] = {}
    for value in ids:
        if value is not None:
            unique.setdefault(int(value), None)
    return Change(action, tuple(unique))


class ChangeFeed:
    def __init__(self, topics: tuple[str, ...] = TOPICS) -> None:
        self._listeners: dict[str, list[Listener]] = {topic: [] for topic in topics}

    def subscribe(self, topic: str, callback: Listener) -> Callable[[], None]:
        """Register ``callback`` and return a function that removes it again."""

        listeners = self._listeners.get(topic)
        if listeners is None:
            return lambda: None
        listeners.append(callback)

        def unsubscribe() -> None:
            if callback in listeners:
                listeners.remove(callback)

        return unsubscribe

    def publish(self, topic: str, payload: Any = None) -> None:
        for callback in list(self._listeners.get(topic, ())):
            try:
                callback(payload)
            except Exception:
                logger.exception("change_feed.listener_failed", extra={"extra_data": {"topic": topic}})

    def listener_count(self, topic: str) -> int:
        return len(self._listeners.get(topic, ()))


def publish(feed: ChangeFeed | None, *events: tuple[str, Change]) -> None:
    """Publish a batch of ``(topic, change)`` pairs when a feed is wired in.

    A change that touched no ids is not sent.
    """

    if feed is None:
        return
    for topic, payload in events:
        if payload.ids:
            feed.publish(topic, payload)
