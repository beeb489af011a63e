"""Observable value holder for consumers of the sync engine."""

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

_logger = logging.getLogger(__name__)

ValueT = TypeVar("ValueT")


class Observable(Generic[ValueT]):
    """Holds a value and notifies subscribers whenever it is replaced.

    Subscribers are called synchronously in subscription order. A subscriber
    that raises is logged and the remaining subscribers still run.
    """

    def __init__(self, value: ValueT) -> None:
        self._value = value
        self._subscribers: list[Callable[[ValueT], None]] = []

    @property
    def value(self) -> ValueT:
        return self._value

    def set(self, value: ValueT) -> None:
        self._value = value
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception:
                _logger.exception("Observable subscriber failed")

    def subscribe(self, callback: Callable[[ValueT], None]) -> Callable[[], None]:
        """Register ``callback`` and return a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe
