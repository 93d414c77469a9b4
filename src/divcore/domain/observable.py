"""Observable cell with replay-on-subscribe and explicit unsubscribe handles.

Contract:
- ``subscribe`` calls the callback immediately with the current value
  (late-subscriber resync) unless ``replay=False``.
- Every mutation that structurally changes the value notifies all current
  subscribers once, in subscription order. No-op sets notify nobody.
- Callbacks run synchronously and may mutate the same observable. The
  nested round finishes first; the outer round then stops, since its value
  is stale.
- A subscription removed during a round is not called again.
"""

from __future__ import annotations

import itertools
import operator
from collections.abc import Callable
from types import TracebackType
from typing import Generic, TypeAlias, TypeVar

T = TypeVar("T")

Subscriber: TypeAlias = Callable[[T], None]


class Subscription:
    """Handle returned by ``subscribe``. Releasing it twice is harmless."""

    __slots__ = ("_cancel",)

    def __init__(self, cancel: Callable[[], None] | None = None) -> None:
        self._cancel = cancel

    @property
    def active(self) -> bool:
        return self._cancel is not None

    def unsubscribe(self) -> None:
        cancel, self._cancel = self._cancel, None
        if cancel is not None:
            cancel()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.unsubscribe()


class Observable(Generic[T]):
    """A single mutable value with synchronous change notification."""

    def __init__(self, initial: T, *, equals: Callable[[T, T], bool] = operator.eq) -> None:
        self._value = initial
        self._equals = equals
        self._subscribers: dict[int, Subscriber[T]] = {}
        self._tokens = itertools.count()
        self._version = 0

    @property
    def value(self) -> T:
        return self._value

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def get(self) -> T:
        return self._value

    def subscribe(self, callback: Subscriber[T], *, replay: bool = True) -> Subscription:
        token = next(self._tokens)
        self._subscribers[token] = callback

        def cancel() -> None:
            self._subscribers.pop(token, None)

        subscription = Subscription(cancel)
        if replay:
            callback(self._value)
        return subscription

    def set(self, new_value: T) -> bool:
        """Store *new_value* and notify. Returns False for a no-op set."""
        if self._equals(self._value, new_value):
            return False
        self._value = new_value
        self._version += 1
        version = self._version
        for token, callback in list(self._subscribers.items()):
            if self._version != version:
                break
            if token not in self._subscribers:
                continue
            callback(new_value)
        return True
