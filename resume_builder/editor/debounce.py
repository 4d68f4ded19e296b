import asyncio
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class Debouncer(Generic[T]):
    """
    Delay a changing value until it has been stable for ``delay`` seconds.

    Every ``push`` re-arms the timer, so a burst of pushes inside the window
    collapses into one ``callback`` call with the last value. Must be used
    from inside a running event loop.
    """

    def __init__(self, delay: float, callback: Callable[[T], None], initial: Optional[T] = None):
        self.delay = delay
        self.value: Optional[T] = initial
        self._callback = callback
        self._pending: Optional[T] = None
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def push(self, value: T) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._pending = value
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def flush(self) -> bool:
        """Settle a pending value right away. Returns False if nothing was pending."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._fire()
        return True

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._pending = None

    def _fire(self) -> None:
        value = self._pending
        self._handle = None
        self._pending = None
        self.value = value
        self._callback(value)
