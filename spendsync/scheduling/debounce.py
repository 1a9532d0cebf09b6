"""
Debounce Scheduler

Holds a "stable" value that only follows its input once the input has
stopped changing for delay_ms. Used to throttle search-driven reads: the
search box writes every keystroke with set(), the query reads value.

Each set() restarts the timer. close() cancels the pending timer; nothing
fires afterwards.

DESIGN DECISION: Timers come from an injectable call_later(delay_seconds,
callback) function returning a handle with cancel(). The default is the
running asyncio loop's call_later, and tests pass a manual clock instead
of sleeping.
"""

import asyncio
from typing import Any, Callable, Generic, Optional, Protocol, TypeVar

import structlog


T = TypeVar("T")

DEFAULT_DEBOUNCE_MS = 300

logger = structlog.get_logger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> Any: ...


CallLater = Callable[[float, Callable[[], None]], TimerHandle]


def _loop_call_later(delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay_seconds, callback)


class DebouncerClosedError(RuntimeError):
    """set() was called after close()."""
    pass


class Debouncer(Generic[T]):
    """
    Latest-stable-value holder.

    Example:
        search = Debouncer("")
        search.subscribe(lambda term: observer.set_params({"search": term}))
        search.set("cof")
        search.set("coffee")   # restarts the 300 ms timer
    """

    def __init__(
        self,
        initial: T,
        delay_ms: Optional[int] = None,
        call_later: Optional[CallLater] = None,
    ):
        self._value = initial
        self._pending: Optional[T] = None
        self._has_pending = False
        self._delay_ms = DEFAULT_DEBOUNCE_MS if delay_ms is None else delay_ms
        self._call_later = call_later or _loop_call_later
        self._handle: Optional[TimerHandle] = None
        self._listeners: list[Callable[[T], None]] = []
        self._closed = False

        if self._delay_ms < 0:
            raise ValueError("Debounce delay cannot be negative")

    @property
    def value(self) -> T:
        """The last value that survived a full delay without being replaced."""
        return self._value

    @property
    def delay_ms(self) -> int:
        return self._delay_ms

    @property
    def is_pending(self) -> bool:
        return self._handle is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def set(self, value: T) -> None:
        """Record a new input and restart the timer."""
        if self._closed:
            raise DebouncerClosedError("Debouncer is closed")
        self._cancel_timer()
        self._pending = value
        self._has_pending = True
        self._handle = self._call_later(self._delay_ms / 1000, self._fire)

    def flush(self) -> None:
        """Emit the pending value now (e.g. the user pressed enter)."""
        if self._has_pending and not self._closed:
            self._cancel_timer()
            self._fire()

    def subscribe(self, listener: Callable[[T], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Cancel any pending timer and drop listeners."""
        self._cancel_timer()
        self._has_pending = False
        self._pending = None
        self._listeners.clear()
        self._closed = True

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        if self._closed or not self._has_pending:
            return
        value = self._pending
        self._pending = None
        self._has_pending = False
        self._value = value
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("debounce_listener_failed")
