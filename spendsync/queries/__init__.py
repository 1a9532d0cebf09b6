"""Query execution package: reads, writes and search over the finance API."""

from spendsync.queries.executor import (
    QueryExecutionError,
    QueryExecutor,
    QueryObserver,
    UnscopedQueryError,
    next_page_params,
    supported_reads,
)
from spendsync.queries.mutations import MutationRunner
from spendsync.queries.search import SEARCH_PAGE_SIZE, SearchFilters, SearchSession, build_search_params

__all__ = [
    "QueryExecutionError",
    "QueryExecutor",
    "QueryObserver",
    "UnscopedQueryError",
    "next_page_params",
    "supported_reads",
    "MutationRunner",
    "SEARCH_PAGE_SIZE",
    "SearchFilters",
    "SearchSession",
    "build_search_params",
]
