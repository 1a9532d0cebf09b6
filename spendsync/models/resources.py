"""
API Resource Models

Typed views over the JSON bodies returned by the finance API.

DESIGN DECISION: The cache stores whatever the loader returns, so these
models are used at the edges that need typed access (pagination, metric
derivation, mutation results) rather than forced onto every payload.
Field names follow Python conventions; the camelCase wire names are
accepted through aliases.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


T = TypeVar("T")


class TransactionType(str, Enum):
    """Direction of money movement."""
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"


class ApiModel(BaseModel):
    """Base for wire models: camelCase in, snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# PAGINATION
# =============================================================================

class PageInfo(ApiModel):
    """Pagination block of every list response."""

    number: int = Field(default=0, ge=0)
    size: int = Field(default=20, ge=0)
    total_elements: int = Field(default=0, ge=0)
    total_pages: int = Field(default=0, ge=0)

    @property
    def has_next(self) -> bool:
        return self.number < self.total_pages - 1

    @property
    def next_page(self) -> Optional[int]:
        """Index of the following page, or None on the last page."""
        return self.number + 1 if self.has_next else None


class PageResponse(ApiModel, Generic[T]):
    """`{content: [...], page: {...}}` list envelope."""

    content: list[T] = Field(default_factory=list)
    page: PageInfo = Field(default_factory=PageInfo)


# =============================================================================
# RESOURCES
# =============================================================================

class Account(ApiModel):
    id: str
    name: str
    description: Optional[str] = None
    currency: Optional[str] = None
    color_code: Optional[str] = None
    is_active: bool = False
    balance: Optional[Decimal] = None


class CategorySummary(ApiModel):
    """Category as embedded in transactions and summaries."""

    id: str
    name: str
    icon: Optional[str] = None
    color_code: Optional[str] = None


class Category(CategorySummary):
    type: TransactionType
    is_default: bool = False
    transaction_count: Optional[int] = None


class Tag(ApiModel):
    id: str
    name: str
    transaction_count: Optional[int] = None


class Transaction(ApiModel):
    id: str
    account_id: Optional[str] = None
    category_id: Optional[str] = None
    category: Optional[CategorySummary] = None
    type: TransactionType
    amount: Decimal = Field(..., ge=0)
    date: date
    description: Optional[str] = None
    tag_ids: list[str] = Field(default_factory=list)

    @property
    def resolved_category_id(self) -> Optional[str]:
        if self.category is not None:
            return self.category.id
        return self.category_id


class BulkDeleteResult(ApiModel):
    deleted_count: int = 0
    failed_ids: list[str] = Field(default_factory=list)
