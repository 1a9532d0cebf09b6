"""Input throttling."""

from spendsync.scheduling.debounce import (
    DEFAULT_DEBOUNCE_MS,
    CallLater,
    Debouncer,
    DebouncerClosedError,
    TimerHandle,
)

__all__ = ["DEFAULT_DEBOUNCE_MS", "CallLater", "Debouncer", "DebouncerClosedError", "TimerHandle"]
