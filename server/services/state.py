"""Observable state holder.

A value plus a listener list. ``set`` updates the value synchronously and then
notifies every listener in subscription order. Listener errors are logged and
never propagate to the writer.
"""

from typing import Callable, Generic, List, TypeVar

from core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]


class ObservableValue(Generic[T]):
    """Shared value with publish/subscribe notification."""

    def __init__(self, initial: T, name: str = "value"):
        self._value = initial
        self._name = name
        self._listeners: List[Listener] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        """Store ``value`` and notify listeners."""
        self._value = value
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception as e:
                logger.warning("State listener failed", state=self._name, error=str(e))

    def subscribe(self, listener: Listener, *, immediate: bool = False) -> Callable[[], None]:
        """Register ``listener``; returns an unsubscribe handle."""
        self._listeners.append(listener)
        if immediate:
            listener(self._value)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
