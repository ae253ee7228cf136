"""Minimal publish/subscribe primitive for status and platform signals."""

from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]
Unsubscribe = Callable[[], None]


class Signal(Generic[T]):
    """Fan-out of values to subscribed callbacks.

    Subscribers are notified in no particular order. A subscriber that raises
    is logged and skipped; the remaining subscribers still run and the
    exception never reaches the emitter.
    """

    def __init__(self, name: str):
        self.name = name
        self._listeners: dict[object, Listener[T]] = {}

    def subscribe(self, listener: Listener[T]) -> Unsubscribe:
        """Register ``listener`` and return a handle that removes it again."""
        token = object()
        self._listeners[token] = listener

        def unsubscribe() -> None:
            self._listeners.pop(token, None)

        return unsubscribe

    def emit(self, value: T) -> None:
        for listener in list(self._listeners.values()):
            try:
                listener(value)
            except Exception:
                logger.exception("Subscriber %r of signal '%s' failed", listener, self.name)

    def __len__(self) -> int:
        return len(self._listeners)
