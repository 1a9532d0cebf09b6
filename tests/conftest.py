"""
Shared fixtures.

No test touches the network or sleeps: HTTP goes through
httpx.MockTransport, time comes from FakeClock, and debounce timers come
from ManualScheduler.
"""

import asyncio

import httpx
import pytest

from spendsync.audit import AuditLogger
from spendsync.cache import ReactiveCache
from spendsync.config import ApiSettings, AppSettings, CacheSettings
from spendsync.queries import MutationRunner, QueryExecutor
from spendsync.scope import AccountScopeBinder, AccountScopeStore
from spendsync.services.api import ApiClient, FinanceApi
from spendsync.services.storage import InMemoryStorage
from spendsync.validation import PayloadValidator


API_PREFIX = "/api/v1"


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class ManualTimer:
    def __init__(self, due: float, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """call_later replacement; advance() fires due timers in order."""

    def __init__(self):
        self.now = 0.0
        self.timers: list[ManualTimer] = []

    def __call__(self, delay_seconds: float, callback) -> ManualTimer:
        timer = ManualTimer(self.now + round(delay_seconds * 1000, 6), callback)
        self.timers.append(timer)
        return timer

    def advance(self, ms: float) -> None:
        target = self.now + ms
        while True:
            due = sorted(
                (t for t in self.timers if not t.cancelled and t.due <= target),
                key=lambda t: t.due,
            )
            if not due:
                break
            timer = due[0]
            self.timers.remove(timer)
            self.now = timer.due
            timer.callback()
        self.now = target

    @property
    def pending(self) -> int:
        return sum(1 for t in self.timers if not t.cancelled)


class Router:
    """
    MockTransport handler dispatching on (method, path).

    Responders receive the request and return a JSON body, an
    httpx.Response, or a coroutine producing either. Unrouted requests
    get a 404.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, responder):
        self.routes[(method, API_PREFIX + path)] = responder

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == API_PREFIX + path]

    async def __call__(self, request):
        self.requests.append(request)
        responder = self.routes.get((request.method, request.url.path))
        if responder is None:
            return httpx.Response(404, json={"code": "NOT_FOUND", "message": "No route"})
        result = responder(request)
        if asyncio.iscoroutine(result):
            result = await result
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json=result)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def cache_settings() -> CacheSettings:
    return CacheSettings(
        read_retries=2,
        retry_min_wait_seconds=0,
        retry_max_wait_seconds=0,
    )


@pytest.fixture
def api_settings() -> ApiSettings:
    return ApiSettings(base_url="http://test.local/api/v1", timeout_seconds=5)


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings()


@pytest.fixture
def audit() -> AuditLogger:
    return AuditLogger()


@pytest.fixture
def cache(cache_settings, audit, clock) -> ReactiveCache:
    return ReactiveCache(cache_settings, audit, clock=clock)


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def scope_store(storage, audit) -> AccountScopeStore:
    return AccountScopeStore(storage, audit)


@pytest.fixture
def router() -> Router:
    return Router()


@pytest.fixture
def transport(router) -> httpx.MockTransport:
    return httpx.MockTransport(router)


@pytest.fixture
async def executor(transport, api_settings, app_settings, cache, audit, scope_store):
    api = FinanceApi(ApiClient(api_settings, transport=transport))
    mutations = MutationRunner(cache, audit, PayloadValidator(app_settings), scope_store)
    executor = QueryExecutor(api, cache, AccountScopeBinder(scope_store), mutations, audit)
    yield executor
    await cache.drain()
    await api.aclose()
