"""
API Endpoints

One class per resource family. Methods map 1:1 to REST endpoints and
return typed models for CRUD resources. Home and statistics payloads are
large server-side projections and are returned as decoded JSON.
"""

from typing import Any, Mapping, Optional, Sequence, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from spendsync.models.resources import (
    Account,
    BulkDeleteResult,
    Category,
    PageResponse,
    Tag,
    Transaction,
)
from spendsync.services.api.client import ApiClient
from spendsync.services.errors import from_invalid_body


Params = Optional[Mapping[str, Any]]
M = TypeVar("M", bound=BaseModel)


def _parse(model: type[M], body: Any) -> M:
    """Validate a response body, reporting a mismatch as UnknownError."""
    try:
        return model.model_validate(body)
    except PydanticValidationError as e:
        raise from_invalid_body(e, model.__name__) from e


class _Endpoints:
    def __init__(self, client: ApiClient):
        self._client = client


# =============================================================================
# CRUD RESOURCES
# =============================================================================

class AccountsApi(_Endpoints):
    async def list(self, params: Params = None) -> PageResponse[Account]:
        body = await self._client.get("/accounts", params)
        return _parse(PageResponse[Account], body or {})

    async def get(self, account_id: str) -> Account:
        return _parse(Account, await self._client.get(f"/accounts/{account_id}"))

    async def get_active(self) -> Account:
        return _parse(Account, await self._client.get("/accounts/active"))

    async def create(self, data: Mapping[str, Any]) -> Account:
        return _parse(Account, await self._client.post("/accounts", data))

    async def update(self, account_id: str, data: Mapping[str, Any]) -> Account:
        return _parse(Account, await self._client.put(f"/accounts/{account_id}", data))

    async def delete(self, account_id: str, confirm_name: Optional[str] = None) -> None:
        await self._client.delete(
            f"/accounts/{account_id}",
            params={"confirmName": confirm_name} if confirm_name else None,
        )

    async def activate(self, account_id: str) -> Account:
        return _parse(Account, await self._client.post(f"/accounts/{account_id}/activate"))


class CategoriesApi(_Endpoints):
    async def list(self, params: Params = None) -> PageResponse[Category]:
        body = await self._client.get("/categories", params)
        return _parse(PageResponse[Category], body or {})

    async def get(self, category_id: str) -> Category:
        return _parse(Category, await self._client.get(f"/categories/{category_id}"))

    async def create(self, data: Mapping[str, Any]) -> Category:
        return _parse(Category, await self._client.post("/categories", data))

    async def update(self, category_id: str, data: Mapping[str, Any]) -> Category:
        return _parse(Category, await self._client.put(f"/categories/{category_id}", data))

    async def delete(self, category_id: str, replacement_category_id: Optional[str] = None) -> None:
        await self._client.delete(
            f"/categories/{category_id}",
            params={"replacementCategoryId": replacement_category_id} if replacement_category_id else None,
        )

    async def icons(self) -> Any:
        return await self._client.get("/categories/icons")

    async def colors(self) -> Any:
        return await self._client.get("/categories/colors")

    async def seed(self, force: bool = False) -> Any:
        return await self._client.post("/categories/seed", params={"force": True} if force else None)


class TransactionsApi(_Endpoints):
    async def list(self, params: Params = None) -> PageResponse[Transaction]:
        body = await self._client.get("/transactions", params)
        return _parse(PageResponse[Transaction], body or {})

    async def get(self, transaction_id: str) -> Transaction:
        return _parse(Transaction, await self._client.get(f"/transactions/{transaction_id}"))

    async def create(self, data: Mapping[str, Any]) -> Transaction:
        return _parse(Transaction, await self._client.post("/transactions", data))

    async def update(self, transaction_id: str, data: Mapping[str, Any]) -> Transaction:
        return _parse(Transaction, await self._client.put(f"/transactions/{transaction_id}", data))

    async def delete(self, transaction_id: str) -> None:
        await self._client.delete(f"/transactions/{transaction_id}")

    async def bulk_delete(self, transaction_ids: Sequence[str]) -> BulkDeleteResult:
        body = await self._client.delete("/transactions", json={"ids": list(transaction_ids)})
        return _parse(BulkDeleteResult, body or {"deletedCount": len(transaction_ids)})


class TagsApi(_Endpoints):
    async def list(self, params: Params = None) -> PageResponse[Tag]:
        body = await self._client.get("/tags", params)
        return _parse(PageResponse[Tag], body or {})

    async def get(self, tag_id: str) -> Tag:
        return _parse(Tag, await self._client.get(f"/tags/{tag_id}"))

    async def create(self, data: Mapping[str, Any]) -> Tag:
        return _parse(Tag, await self._client.post("/tags", data))

    async def update(self, tag_id: str, data: Mapping[str, Any]) -> Tag:
        return _parse(Tag, await self._client.put(f"/tags/{tag_id}", data))

    async def delete(self, tag_id: str) -> None:
        await self._client.delete(f"/tags/{tag_id}")


# =============================================================================
# DERIVED VIEWS
# =============================================================================

class HomeApi(_Endpoints):
    async def daily(self, params: Params = None) -> Any:
        return await self._client.get("/home/daily", params)

    async def week(self, params: Params = None) -> Any:
        return await self._client.get("/home/week", params)

    async def monthly(self, params: Params = None) -> Any:
        return await self._client.get("/home/monthly", params)

    async def balance_bar(self, params: Params = None) -> Any:
        return await self._client.get("/home/balance-bar", params)

    async def state(self, params: Params = None) -> Any:
        return await self._client.get("/home/state", params)


class StatisticsApi(_Endpoints):
    async def overview(self, params: Params = None) -> Any:
        return await self._client.get("/statistics/overview", params)

    async def categories(self, params: Params = None) -> Any:
        return await self._client.get("/statistics/categories", params)

    async def time_series(self, params: Params = None) -> Any:
        return await self._client.get("/statistics/time-series", params)

    async def comparison(self, params: Params = None) -> Any:
        return await self._client.get("/statistics/comparison", params)

    async def category_trend(self, params: Params = None) -> Any:
        return await self._client.get("/statistics/categories/trend", params)

    async def trends(self, params: Params = None) -> Any:
        return await self._client.get("/statistics/trends", params)

    async def presets(self) -> Any:
        return await self._client.get("/statistics/presets")


class FinanceApi:
    """All endpoint groups over one ApiClient."""

    def __init__(self, client: ApiClient):
        self.client = client
        self.accounts = AccountsApi(client)
        self.categories = CategoriesApi(client)
        self.transactions = TransactionsApi(client)
        self.tags = TagsApi(client)
        self.home = HomeApi(client)
        self.statistics = StatisticsApi(client)

    async def aclose(self) -> None:
        await self.client.aclose()
