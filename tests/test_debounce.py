"""
Tests for the debounce scheduler.

Timers come from the ManualScheduler fixture; nothing sleeps.
"""

import asyncio

import pytest

from spendsync.scheduling import DEFAULT_DEBOUNCE_MS, Debouncer, DebouncerClosedError


class TestDebouncer:
    """Latest-stable-value semantics."""

    def test_rapid_changes_emit_only_the_last_value(self, scheduler):
        """Inputs at +100, +100, +100 each reset the 300 ms timer."""
        debouncer = Debouncer("", delay_ms=300, call_later=scheduler)
        emitted = []
        debouncer.subscribe(emitted.append)

        debouncer.set("c")
        scheduler.advance(100)
        debouncer.set("co")
        scheduler.advance(100)
        debouncer.set("cof")
        scheduler.advance(100)
        debouncer.set("coffee")
        assert emitted == []
        assert debouncer.value == ""

        scheduler.advance(299)
        assert emitted == []

        scheduler.advance(1)
        assert emitted == ["coffee"]
        assert debouncer.value == "coffee"
        assert scheduler.pending == 0

    def test_default_delay(self, scheduler):
        debouncer = Debouncer(0, call_later=scheduler)
        assert debouncer.delay_ms == DEFAULT_DEBOUNCE_MS == 300

        debouncer.set(5)
        scheduler.advance(299)
        assert debouncer.value == 0
        scheduler.advance(1)
        assert debouncer.value == 5

    def test_close_cancels_pending_timer(self, scheduler):
        debouncer = Debouncer("", delay_ms=300, call_later=scheduler)
        emitted = []
        debouncer.subscribe(emitted.append)

        debouncer.set("late")
        debouncer.close()
        scheduler.advance(1_000)

        assert emitted == []
        assert debouncer.value == ""
        assert debouncer.closed is True

    def test_set_after_close_raises(self, scheduler):
        debouncer = Debouncer("", call_later=scheduler)
        debouncer.close()
        with pytest.raises(DebouncerClosedError):
            debouncer.set("x")

    def test_flush_emits_immediately(self, scheduler):
        debouncer = Debouncer("", call_later=scheduler)
        emitted = []
        debouncer.subscribe(emitted.append)

        debouncer.set("now")
        assert debouncer.is_pending
        debouncer.flush()

        assert emitted == ["now"]
        assert not debouncer.is_pending
        scheduler.advance(1_000)
        assert emitted == ["now"]

    def test_flush_without_pending_value_is_noop(self, scheduler):
        debouncer = Debouncer("start", call_later=scheduler)
        emitted = []
        debouncer.subscribe(emitted.append)
        debouncer.flush()
        assert emitted == []

    def test_unsubscribe(self, scheduler):
        debouncer = Debouncer("", call_later=scheduler)
        emitted = []
        unsubscribe = debouncer.subscribe(emitted.append)
        unsubscribe()

        debouncer.set("x")
        scheduler.advance(300)
        assert emitted == []
        assert debouncer.value == "x"

    def test_failing_listener_does_not_stop_others(self, scheduler):
        debouncer = Debouncer("", call_later=scheduler)
        emitted = []

        def broken(value):
            raise RuntimeError("boom")

        debouncer.subscribe(broken)
        debouncer.subscribe(emitted.append)
        debouncer.set("x")
        scheduler.advance(300)
        assert emitted == ["x"]

    def test_negative_delay_rejected(self, scheduler):
        with pytest.raises(ValueError):
            Debouncer("", delay_ms=-1, call_later=scheduler)

    async def test_default_timer_uses_running_loop(self):
        debouncer = Debouncer("", delay_ms=10)
        fired = asyncio.Event()
        debouncer.subscribe(lambda value: fired.set())

        debouncer.set("loop")
        await asyncio.wait_for(fired.wait(), timeout=1)

        assert debouncer.value == "loop"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
