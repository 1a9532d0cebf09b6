"""
Reactive Cache

Holds fetched data keyed by QueryKey, tracks freshness and notifies
subscribers on every state change.

GUARANTEES:
- At most one in-flight fetch per key. Concurrent fetch() calls for the
  same key share one loader call and one result.
- Fresh entries are served without calling the loader. Stale entries with
  data are served immediately while a background refresh runs
  (stale-while-revalidate).
- A failed refresh never drops the last good data.
- Every entry carries a generation drawn from one cache-wide counter.
  patch() and invalidate() advance it and evict() drops it with the
  entry, so a re-created entry never shares a generation with an old
  fetch. A response that belongs to an older generation is discarded
  instead of being written.
- Unsubscribing or cancelling one waiter never cancels a shared fetch.

All mutation of cache state goes through fetch, patch, evict, invalidate,
remove and garbage_collect.
"""

import asyncio
import itertools
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import structlog
from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_exponential

from spendsync.audit import AuditLogger
from spendsync.cache.keys import KeyPrefix, QueryKey
from spendsync.config import CacheSettings, get_settings
from spendsync.models.audit import AuditEventType
from spendsync.models.query import CacheEntry, CacheStatus, Domain


Loader = Callable[[], Awaitable[Any]]
Listener = Callable[[CacheEntry], None]
Clock = Callable[[], float]

logger = structlog.get_logger(__name__)


class CacheError(Exception):
    """Misuse of the cache API (e.g. refreshing a key with no loader)."""
    pass


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


def default_stale_after_ms(key: QueryKey, settings: CacheSettings) -> int:
    """
    Freshness window for a key.

    Home summaries and statistics: summary window (5 min).
    Statistics presets: preset window (1 h).
    Category icons and colors: reference window (24 h).
    Everything else: default window (5 min).
    """
    if key.domain == Domain.STATISTICS.value:
        if key.operation == "presets":
            return settings.preset_stale_after_ms
        return settings.summary_stale_after_ms
    if key.domain == Domain.HOME.value:
        return settings.summary_stale_after_ms
    if key.domain == Domain.CATEGORIES.value and key.operation in ("icons", "colors"):
        return settings.reference_stale_after_ms
    return settings.default_stale_after_ms


@dataclass
class _Inflight:
    generation: int
    task: "asyncio.Task[Any]"


class ReactiveCache:
    """
    Keyed store of CacheEntry objects with coalesced async loading.
    """

    def __init__(
        self,
        settings: Optional[CacheSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Clock] = None,
        stale_policy: Optional[Callable[[QueryKey, CacheSettings], int]] = None,
    ):
        self._settings = settings or get_settings().cache
        self._audit = audit_logger or AuditLogger()
        self._clock = clock or _monotonic_ms
        self._stale_policy = stale_policy or default_stale_after_ms

        self._entries: dict[QueryKey, CacheEntry] = {}
        self._generations: dict[QueryKey, int] = {}
        self._generation_counter = itertools.count(1)
        self._inflight: dict[QueryKey, _Inflight] = {}
        self._loaders: dict[QueryKey, Loader] = {}
        self._listeners: dict[QueryKey, list[Listener]] = {}
        self._background: set[asyncio.Task] = set()

    # -- inspection ---------------------------------------------------------

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[QueryKey]:
        return list(self._entries)

    def get(self, key: QueryKey) -> CacheEntry:
        """Snapshot of the entry for key, creating an idle one on first access."""
        entry = self._ensure_entry(key)
        entry.last_accessed_at = self._clock()
        return entry.model_copy()

    def get_data(self, key: QueryKey, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None or not entry.has_data:
            return default
        return entry.data

    def is_fetching(self, key: QueryKey) -> bool:
        inflight = self._inflight.get(key)
        return inflight is not None and not inflight.task.done()

    def is_stale(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        return entry is None or entry.is_stale(self._clock())

    def has_listeners(self, key: QueryKey) -> bool:
        return bool(self._listeners.get(key))

    def generation(self, key: QueryKey) -> int:
        return self._generations.get(key, 0)

    # -- reads --------------------------------------------------------------

    async def fetch(
        self,
        key: QueryKey,
        loader: Loader,
        *,
        stale_after_ms: Optional[int] = None,
        force: bool = False,
    ) -> Any:
        """
        Return data for key, loading it if needed.

        Args:
            key: Query key
            loader: Zero-argument coroutine function performing the request
            stale_after_ms: Override of the domain freshness window
            force: Ignore freshness and wait for a new response

        Returns:
            Cached or freshly loaded data

        Raises:
            SpendSyncError (or whatever the loader raises) once retries are
            exhausted and there is no data to fall back to
        """
        entry = self._ensure_entry(key, stale_after_ms)
        self._loaders[key] = loader
        now = self._clock()
        entry.last_accessed_at = now

        if entry.has_data and not force:
            if entry.is_stale(now):
                self._start_fetch(key)
            return entry.data

        task = self._start_fetch(key)
        return await asyncio.shield(task)

    def refresh(self, key: QueryKey) -> "asyncio.Task[Any]":
        """Start (or join) a background refetch using the last known loader."""
        if key not in self._loaders:
            raise CacheError(f"No loader registered for {key.label}")
        self._ensure_entry(key)
        return self._start_fetch(key)

    async def drain(self) -> None:
        """Wait until every in-flight and background fetch has settled."""
        while True:
            pending = {i.task for i in self._inflight.values() if not i.task.done()}
            pending |= {t for t in self._background if not t.done()}
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # -- writes -------------------------------------------------------------

    def patch(self, key: QueryKey, data: Any) -> None:
        """Replace the data of key with a server-confirmed value."""
        entry = self._ensure_entry(key)
        self._bump(key)
        entry.data = data
        entry.has_data = True
        entry.status = CacheStatus.SUCCESS
        entry.error = None
        entry.is_invalidated = False
        entry.fetched_at = self._clock()
        self._notify(key)

    def evict(self, key: QueryKey) -> bool:
        """Remove one entry. Returns True if it existed."""
        existed = self._entries.pop(key, None) is not None
        self._generations.pop(key, None)
        self._loaders.pop(key, None)
        if existed and self._listeners.get(key):
            self._notify_with(key, CacheEntry(
                key=key,
                stale_after_ms=self._stale_policy(key, self._settings),
            ))
        return existed

    def invalidate(self, prefix: KeyPrefix, *, refetch_active: bool = True) -> list[QueryKey]:
        """
        Mark every entry matching prefix as stale.

        Entries with subscribers and a known loader are refetched in the
        background. Responses already in flight for matched keys are
        discarded when they arrive.

        Returns:
            The matched keys
        """
        matched = [key for key in self._entries if prefix.matches(key)]
        for key in matched:
            entry = self._entries[key]
            self._bump(key)
            entry.is_invalidated = True
            self._notify(key)
            if refetch_active and self._listeners.get(key) and key in self._loaders:
                self._start_fetch(key)
        return matched

    def remove(self, prefix: KeyPrefix) -> list[QueryKey]:
        """Evict every entry matching prefix."""
        matched = [key for key in self._entries if prefix.matches(key)]
        for key in matched:
            self.evict(key)
        return matched

    def clear(self) -> None:
        for key in list(self._entries):
            self.evict(key)

    def garbage_collect(self, now_ms: Optional[float] = None) -> list[QueryKey]:
        """
        Drop entries nobody observes that have been idle longer than gc_time_ms.
        """
        now = self._clock() if now_ms is None else now_ms
        collected = []
        for key, entry in list(self._entries.items()):
            if self._listeners.get(key) or self.is_fetching(key):
                continue
            last_used = entry.last_accessed_at or entry.fetched_at or 0.0
            if now - last_used >= self._settings.gc_time_ms:
                self.evict(key)
                collected.append(key)
        self._audit.log_cache_changed(
            AuditEventType.CACHE_COLLECTED, [k.label for k in collected]
        )
        return collected

    # -- subscriptions ------------------------------------------------------

    def subscribe(self, key: QueryKey, listener: Listener) -> Callable[[], None]:
        """
        Call listener with a snapshot of the entry on every change to key.

        Returns:
            A function that removes the subscription. It does not cancel
            an in-flight fetch for key.
        """
        self._ensure_entry(key)
        self._listeners.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(key)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[key]
            entry = self._entries.get(key)
            if entry is not None:
                entry.last_accessed_at = self._clock()

        return unsubscribe

    # -- internals ----------------------------------------------------------

    def _ensure_entry(self, key: QueryKey, stale_after_ms: Optional[int] = None) -> CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(
                key=key,
                stale_after_ms=self._stale_policy(key, self._settings),
            )
            self._entries[key] = entry
            self._generations[key] = next(self._generation_counter)
        if stale_after_ms is not None:
            entry.stale_after_ms = stale_after_ms
        return entry

    def _bump(self, key: QueryKey) -> int:
        generation = next(self._generation_counter)
        self._generations[key] = generation
        return generation

    def _start_fetch(self, key: QueryKey) -> "asyncio.Task[Any]":
        generation = self._generations.get(key, 0)
        inflight = self._inflight.get(key)
        if inflight is not None and inflight.generation == generation and not inflight.task.done():
            return inflight.task

        loader = self._loaders[key]
        entry = self._entries[key]
        entry.status = CacheStatus.LOADING
        self._notify(key)

        task = asyncio.ensure_future(self._run_fetch(key, loader, generation))
        self._inflight[key] = _Inflight(generation, task)
        self._background.add(task)
        task.add_done_callback(lambda t, k=key: self._on_fetch_done(k, t))
        return task

    def _on_fetch_done(self, key: QueryKey, task: "asyncio.Task[Any]") -> None:
        self._background.discard(task)
        inflight = self._inflight.get(key)
        if inflight is not None and inflight.task is task:
            del self._inflight[key]
        if not task.cancelled():
            # Failures are recorded on the entry and re-raised to awaiting
            # callers; retrieving here keeps unawaited refreshes quiet.
            task.exception()

    def _retrying(self, key: QueryKey) -> AsyncRetrying:
        settings = self._settings

        def before_sleep(state: RetryCallState) -> None:
            error = state.outcome.exception() if state.outcome else None
            self._audit.log_fetch_retried(key.label, key.domain, state.attempt_number, error)

        return AsyncRetrying(
            stop=stop_after_attempt(settings.read_retries + 1),
            wait=wait_exponential(
                multiplier=settings.retry_min_wait_seconds,
                min=settings.retry_min_wait_seconds,
                max=settings.retry_max_wait_seconds,
            ),
            before_sleep=before_sleep,
            reraise=True,
        )

    def _is_superseded(self, key: QueryKey, generation: int) -> bool:
        return key not in self._entries or self._generations.get(key, 0) != generation

    def _settle_discarded(self, key: QueryKey) -> None:
        entry = self._entries.get(key)
        if entry is None or self._has_current_fetch(key):
            return
        if entry.status == CacheStatus.LOADING:
            entry.status = CacheStatus.SUCCESS if entry.has_data else CacheStatus.IDLE
            self._notify(key)

    def _has_current_fetch(self, key: QueryKey) -> bool:
        inflight = self._inflight.get(key)
        return (
            inflight is not None
            and not inflight.task.done()
            and inflight.generation == self._generations.get(key, 0)
        )

    async def _run_fetch(self, key: QueryKey, loader: Loader, generation: int) -> Any:
        attempts = 0
        try:
            async for attempt in self._retrying(key):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    data = await loader()
        except Exception as exc:
            if self._is_superseded(key, generation):
                self._audit.log_fetch_discarded(key.label, key.domain)
                self._settle_discarded(key)
                raise
            entry = self._entries[key]
            entry.status = CacheStatus.ERROR
            entry.error = exc
            self._audit.log_fetch_failed(key.label, key.domain, exc, entry.has_data)
            self._notify(key)
            raise

        if self._is_superseded(key, generation):
            self._audit.log_fetch_discarded(key.label, key.domain)
            self._settle_discarded(key)
            return data

        entry = self._entries[key]
        entry.data = data
        entry.has_data = True
        entry.status = CacheStatus.SUCCESS
        entry.error = None
        entry.is_invalidated = False
        entry.fetched_at = self._clock()
        self._audit.log_fetch_succeeded(key.label, key.domain, attempts)
        self._notify(key)
        return data

    def _notify(self, key: QueryKey) -> None:
        entry = self._entries.get(key)
        if entry is not None:
            self._notify_with(key, entry)

    def _notify_with(self, key: QueryKey, entry: CacheEntry) -> None:
        for listener in list(self._listeners.get(key, ())):
            try:
                listener(entry.model_copy())
            except Exception:
                logger.exception("cache_listener_failed", key=key.label)
