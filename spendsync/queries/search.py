"""
Transaction Search

Turns the search box and filter panel into transaction list reads.

The text input is debounced; filter changes apply immediately. Nothing is
requested while the search is empty (no text and no filter), and the
list read itself is account-scoped like every other transaction list.
"""

from datetime import date
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from spendsync.cache.keys import QueryKey
from spendsync.formatting import format_date_iso
from spendsync.models.query import Domain, QueryState
from spendsync.models.resources import TransactionType
from spendsync.queries.executor import QueryExecutor, QueryObserver
from spendsync.scheduling import CallLater, Debouncer


SEARCH_PAGE_SIZE = 20


class SearchFilters(BaseModel):
    """Filter panel selections."""

    category_ids: list[str] = Field(default_factory=list)
    tag_ids: list[str] = Field(default_factory=list)
    transaction_type: Optional[TransactionType] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @property
    def is_empty(self) -> bool:
        return not (
            self.category_ids
            or self.tag_ids
            or self.transaction_type
            or self.start_date
            or self.end_date
        )


def build_search_params(text: str, filters: Optional[SearchFilters] = None) -> Optional[dict[str, Any]]:
    """
    Transaction list params for a search, or None when there is nothing to search.

    The list endpoint filters by a single category, so categoryId is only
    sent when exactly one category is selected.
    """
    filters = filters or SearchFilters()
    term = text.strip()
    if not term and filters.is_empty:
        return None

    params: dict[str, Any] = {"size": SEARCH_PAGE_SIZE}
    if term:
        params["search"] = term
    if filters.transaction_type:
        params["type"] = filters.transaction_type.value
    if len(filters.category_ids) == 1:
        params["categoryId"] = filters.category_ids[0]
    if filters.tag_ids:
        params["tagIds"] = ",".join(filters.tag_ids)
    if filters.start_date:
        params["startDate"] = format_date_iso(filters.start_date)
    if filters.end_date:
        params["endDate"] = format_date_iso(filters.end_date)
    return params


class SearchSession:
    """
    Debounced search bound to a QueryExecutor.

    Must be created inside a running event loop (the observer starts
    fetches with asyncio).
    """

    def __init__(
        self,
        executor: QueryExecutor,
        delay_ms: Optional[int] = None,
        call_later: Optional[CallLater] = None,
    ):
        self._executor = executor
        self._text = Debouncer("", delay_ms=delay_ms, call_later=call_later)
        self._filters = SearchFilters()
        self._observer: Optional[QueryObserver] = None
        self._listeners: list[Callable[[QueryState], None]] = []
        self._unsubscribe_observer: Optional[Callable[[], None]] = None
        self.has_searched = False

        self._text.subscribe(lambda _term: self._apply())

    @property
    def text(self) -> str:
        """The debounced search term."""
        return self._text.value

    @property
    def filters(self) -> SearchFilters:
        return self._filters

    @property
    def params(self) -> Optional[dict[str, Any]]:
        return build_search_params(self._text.value, self._filters)

    @property
    def key(self) -> Optional[QueryKey]:
        return self._observer.key if self._observer else None

    @property
    def state(self) -> QueryState:
        return self._observer.state if self._observer else QueryState()

    def subscribe(self, listener: Callable[[QueryState], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def type_text(self, text: str) -> None:
        self._text.set(text)

    def submit(self) -> None:
        """Search immediately with whatever was typed."""
        self._text.flush()

    def set_filters(self, filters: SearchFilters) -> None:
        self._filters = filters
        self._apply()

    def clear(self) -> None:
        """Reset text and filters; the search becomes idle again."""
        self._filters = SearchFilters()
        self._text.set("")
        self._text.flush()
        self.has_searched = False

    async def wait(self) -> QueryState:
        if self._observer is None:
            return QueryState()
        return await self._observer.wait()

    def close(self) -> None:
        self._text.close()
        self._drop_observer()
        self._listeners.clear()

    def _apply(self) -> None:
        params = self.params
        if params is None:
            self._drop_observer()
            self._emit(QueryState())
            return

        self.has_searched = True
        if self._observer is None:
            self._observer = self._executor.observe(Domain.TRANSACTIONS, "list", params)
            self._unsubscribe_observer = self._observer.subscribe(self._emit)
            self._emit(self._observer.state)
        else:
            self._observer.set_params(params)

    def _drop_observer(self) -> None:
        if self._observer is not None:
            if self._unsubscribe_observer is not None:
                self._unsubscribe_observer()
                self._unsubscribe_observer = None
            self._observer.close()
            self._observer = None

    def _emit(self, state: QueryState) -> None:
        for listener in list(self._listeners):
            listener(state)
