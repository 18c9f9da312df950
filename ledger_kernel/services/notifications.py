"""
ChangeNotifier -- publish/subscribe channel for ledger changes.

Views subscribe to topics instead of polling the store.  Publishing is
fire-and-forget: a subscriber that raises is logged and skipped, and the
ledger operation that published is not affected.
"""

from collections import defaultdict
from collections.abc import Callable, Mapping
from typing import Any

from ledger_kernel.logging_config import get_logger

logger = get_logger("services.notifications")

STOCK_CHANGED = "stock_changed"
BALANCE_CHANGED = "balance_changed"

Subscriber = Callable[[Mapping[str, Any]], None]


class ChangeNotifier:
    """In-process topic bus."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for ``topic``; returns an unsubscribe function."""
        self._subscribers[topic].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[topic]:
                self._subscribers[topic].remove(callback)

        return unsubscribe

    def publish(self, topic: str, payload: Mapping[str, Any]) -> None:
        logger.debug("change_published", extra={"topic": topic, "payload": dict(payload)})
        for callback in list(self._subscribers.get(topic, ())):
            try:
                callback(dict(payload))
            except Exception:
                logger.exception(
                    "change_subscriber_failed",
                    extra={"topic": topic, "subscriber": getattr(callback, "__qualname__", repr(callback))},
                )

    def stock_changed(self, product_id: str) -> None:
        self.publish(STOCK_CHANGED, {"product_id": product_id})

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, ()))
