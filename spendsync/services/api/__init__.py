"""REST API adapter."""

from spendsync.services.api.client import ApiClient, encode_params
from spendsync.services.api.endpoints import (
    AccountsApi,
    CategoriesApi,
    FinanceApi,
    HomeApi,
    StatisticsApi,
    TagsApi,
    TransactionsApi,
)

__all__ = [
    "ApiClient",
    "encode_params",
    "AccountsApi",
    "CategoriesApi",
    "FinanceApi",
    "HomeApi",
    "StatisticsApi",
    "TagsApi",
    "TransactionsApi",
]
