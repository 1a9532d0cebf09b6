"""
Two-Stage Payload Validation

DESIGN DECISION: Writes are checked locally before they reach the network,
in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (create only; updates are partial)
- Type checking (numbers, dates, enum values)

STAGE 2 - SEMANTIC VALIDATION:
- Length limits (names, descriptions)
- Amount range and precision (positive, at most 2 decimals)
- Formats (tag names, color codes, currency codes)
- Suspicious values (transactions dated far in the future) as warnings

Stage 2 only runs when stage 1 passes.

IMPORTANT: Validation NEVER silently fixes a payload. A payload with
errors is rejected with a ValidationError carrying one detail per field,
the same shape the server uses, and no request is made.
"""

import re
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from spendsync.config import AppSettings, get_settings
from spendsync.models.query import Domain, Mutation, MutationKind
from spendsync.models.resources import TransactionType
from spendsync.models.validation import ValidationIssue, ValidationResult
from spendsync.services.errors import FieldError, ValidationError


TAG_NAME_PATTERN = re.compile(r"^[a-z0-9_-]+$")
COLOR_CODE_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")
MAX_AMOUNT = Decimal("999999999.99")
FUTURE_DATE_TOLERANCE_DAYS = 1

_REQUIRED: dict[Domain, tuple[str, ...]] = {
    Domain.ACCOUNTS: ("name",),
    Domain.CATEGORIES: ("name", "type"),
    Domain.TAGS: ("name",),
    Domain.TRANSACTIONS: ("type", "categoryId", "amount", "date"),
}

_LABELS = {
    Domain.ACCOUNTS: "Account",
    Domain.CATEGORIES: "Category",
    Domain.TAGS: "Tag",
}


def _error(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(field=field, issue_type=issue_type, message=message, severity="error")


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class PayloadValidator:
    """
    Validates create/update payloads for accounts, categories, tags and
    transactions. Other mutations pass through untouched.
    """

    def __init__(self, settings: Optional[AppSettings] = None, today: Optional[date] = None):
        self._settings = settings or get_settings().app
        self._today = today

    def _name_limit(self, domain: Domain) -> int:
        if domain == Domain.ACCOUNTS:
            return self._settings.max_account_name_length
        if domain == Domain.CATEGORIES:
            return self._settings.max_category_name_length
        return self._settings.max_tag_name_length

    def _validate_schema(self, domain: Domain, payload: Mapping[str, Any], partial: bool) -> list[ValidationIssue]:
        """
        Stage 1: presence and types.
        """
        issues = []

        if not partial:
            for field in _REQUIRED.get(domain, ()):
                if _blank(payload.get(field)):
                    label = _LABELS.get(domain, "Transaction")
                    issues.append(_error(field, "missing", f"{label} {field} is required"))

        if payload.get("type") is not None:
            try:
                TransactionType(payload["type"])
            except ValueError:
                issues.append(_error("type", "invalid_value", "Type must be EXPENSE or INCOME"))

        if payload.get("amount") is not None:
            try:
                is_number = Decimal(str(payload["amount"])).is_finite()
            except InvalidOperation:
                is_number = False
            if not is_number:
                issues.append(_error("amount", "invalid_value", "Amount must be a number"))

        if payload.get("date") is not None and not isinstance(payload["date"], date):
            try:
                date.fromisoformat(str(payload["date"]))
            except ValueError:
                issues.append(_error("date", "invalid_value", "Date must be YYYY-MM-DD"))

        return issues

    def _validate_semantic(self, domain: Domain, payload: Mapping[str, Any]) -> list[ValidationIssue]:
        """
        Stage 2: limits, formats and suspicious values.
        """
        issues = []
        name = payload.get("name")

        if domain in _LABELS and isinstance(name, str):
            limit = self._name_limit(domain)
            if len(name.strip()) > limit:
                issues.append(_error(
                    "name", "too_long",
                    f"{_LABELS[domain]} name must be {limit} characters or less",
                ))
            if domain == Domain.TAGS and name and not TAG_NAME_PATTERN.match(name):
                issues.append(_error(
                    "name", "invalid_format",
                    "Tag name must be lowercase with only letters, numbers, hyphens, and underscores",
                ))

        description = payload.get("description")
        if isinstance(description, str) and len(description) > self._settings.max_description_length:
            issues.append(_error(
                "description", "too_long",
                f"Description must be {self._settings.max_description_length} characters or less",
            ))

        color = payload.get("colorCode")
        if color is not None and not COLOR_CODE_PATTERN.match(str(color)):
            issues.append(_error("colorCode", "invalid_format", "Invalid color code"))

        currency = payload.get("currency")
        if currency is not None and len(str(currency)) != 3:
            issues.append(_error("currency", "invalid_format", "Currency must be a 3-letter code"))

        if domain == Domain.TRANSACTIONS:
            issues.extend(self._validate_transaction(payload))

        return issues

    def _validate_transaction(self, payload: Mapping[str, Any]) -> list[ValidationIssue]:
        issues = []

        if payload.get("amount") is not None:
            amount = Decimal(str(payload["amount"]))
            if amount <= 0:
                issues.append(_error("amount", "invalid_value", "Amount must be greater than 0"))
            elif amount > MAX_AMOUNT:
                issues.append(_error("amount", "invalid_value", "Amount too large"))
            elif amount.as_tuple().exponent < -2:
                issues.append(_error("amount", "invalid_value", "Amount can have at most 2 decimal places"))

        raw_date = payload.get("date")
        if raw_date is not None:
            day = raw_date if isinstance(raw_date, date) else date.fromisoformat(str(raw_date))
            today = self._today or date.today()
            if day > today + timedelta(days=FUTURE_DATE_TOLERANCE_DAYS):
                issues.append(ValidationIssue(
                    field="date",
                    issue_type="suspicious_value",
                    message=f"Transaction date ({day}) is in the future",
                    severity="warning",
                ))

        return issues

    def validate(self, domain: Domain, payload: Mapping[str, Any], partial: bool = False) -> ValidationResult:
        """
        Run the two-stage pipeline.

        Args:
            domain: Resource the payload is for
            payload: Wire-format (camelCase) body
            partial: True for updates, where absent fields are unchanged

        Returns:
            ValidationResult with all issues found
        """
        schema_issues = self._validate_schema(domain, payload, partial)
        schema_valid = not any(i.severity == "error" for i in schema_issues)

        semantic_issues: list[ValidationIssue] = []
        if schema_valid:
            semantic_issues = self._validate_semantic(domain, payload)

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=schema_valid and not any(i.severity == "error" for i in semantic_issues),
            issues=schema_issues + semantic_issues,
        )

    def check(self, mutation: Mutation) -> ValidationResult:
        """
        Validate the payload of a mutation, raising if it cannot be sent.

        Raises:
            ValidationError: With one FieldError per rejected field
        """
        if mutation.kind not in (MutationKind.CREATE, MutationKind.UPDATE) or mutation.domain not in _REQUIRED:
            return ValidationResult()

        result = self.validate(
            mutation.domain,
            mutation.payload,
            partial=mutation.kind == MutationKind.UPDATE,
        )
        if not result.is_valid:
            raise ValidationError(
                result.errors[0].message,
                status=0,
                code="LOCAL_VALIDATION_FAILED",
                details=[FieldError(field=i.field, message=i.message) for i in result.errors],
            )
        return result
