"""
Tests for local payload validation.
"""

from datetime import date

import pytest

from spendsync.models.query import Domain, Mutation, MutationKind
from spendsync.services.errors import ValidationError
from spendsync.validation import PayloadValidator


TODAY = date(2024, 3, 15)


@pytest.fixture
def validator(app_settings) -> PayloadValidator:
    return PayloadValidator(app_settings, today=TODAY)


def transaction(**overrides):
    payload = {
        "accountId": "a1",
        "type": "EXPENSE",
        "categoryId": "c1",
        "amount": "25.50",
        "date": "2024-03-14",
    }
    payload.update(overrides)
    return payload


class TestSchemaStage:
    """Required fields and types."""

    def test_valid_transaction(self, validator):
        result = validator.validate(Domain.TRANSACTIONS, transaction())
        assert result.is_valid
        assert result.issues == []

    def test_missing_fields_on_create(self, validator):
        result = validator.validate(Domain.TRANSACTIONS, {"type": "EXPENSE", "categoryId": " "})

        assert not result.schema_valid
        assert {i.field for i in result.errors} == {"categoryId", "amount", "date"}

    def test_missing_fields_ignored_on_update(self, validator):
        result = validator.validate(Domain.TRANSACTIONS, {"description": "lunch"}, partial=True)
        assert result.is_valid

    def test_bad_types(self, validator):
        result = validator.validate(
            Domain.TRANSACTIONS,
            transaction(type="TRANSFER", amount="abc", date="15/03/2024"),
        )
        assert {i.field for i in result.errors} == {"type", "amount", "date"}

    def test_semantic_stage_skipped_when_schema_fails(self, validator):
        result = validator.validate(Domain.TAGS, {"name": ""})
        assert not result.schema_valid
        assert not result.semantic_valid
        assert [i.issue_type for i in result.issues] == ["missing"]

    def test_category_requires_type(self, validator):
        result = validator.validate(Domain.CATEGORIES, {"name": "Food"})
        assert [i.message for i in result.errors] == ["Category type is required"]


class TestSemanticStage:
    """Limits, formats and warnings."""

    @pytest.mark.parametrize("amount", ["0", "-5", "10.005", "1000000000"])
    def test_invalid_amounts(self, validator, amount):
        result = validator.validate(Domain.TRANSACTIONS, transaction(amount=amount))
        assert [i.field for i in result.errors] == ["amount"]

    @pytest.mark.parametrize("amount", ["0.01", "10.1", 25, 999999999.99])
    def test_valid_amounts(self, validator, amount):
        assert validator.validate(Domain.TRANSACTIONS, transaction(amount=amount)).is_valid

    @pytest.mark.parametrize("name, valid", [
        ("groceries", True),
        ("eating-out_2024", True),
        ("Groceries", False),
        ("two words", False),
    ])
    def test_tag_name_format(self, validator, name, valid):
        assert validator.validate(Domain.TAGS, {"name": name}).is_valid is valid

    def test_name_length_limits(self, validator):
        assert not validator.validate(Domain.ACCOUNTS, {"name": "x" * 51}).is_valid
        assert validator.validate(Domain.ACCOUNTS, {"name": "x" * 50}).is_valid
        assert not validator.validate(Domain.CATEGORIES, {"name": "x" * 31, "type": "INCOME"}).is_valid

    def test_description_length(self, validator):
        result = validator.validate(Domain.TRANSACTIONS, transaction(description="d" * 201))
        assert [i.issue_type for i in result.errors] == ["too_long"]

    def test_color_and_currency(self, validator):
        result = validator.validate(Domain.ACCOUNTS, {
            "name": "Main", "colorCode": "red", "currency": "EURO",
        })
        assert {i.field for i in result.errors} == {"colorCode", "currency"}
        assert validator.validate(Domain.ACCOUNTS, {
            "name": "Main", "colorCode": "#A1B2C3", "currency": "EUR",
        }).is_valid

    def test_future_date_is_a_warning(self, validator):
        result = validator.validate(Domain.TRANSACTIONS, transaction(date="2024-03-20"))

        assert result.is_valid
        assert result.warnings == ["Transaction date (2024-03-20) is in the future"]

    def test_tomorrow_is_tolerated(self, validator):
        result = validator.validate(Domain.TRANSACTIONS, transaction(date=date(2024, 3, 16)))
        assert result.warnings == []


class TestCheck:
    """Gatekeeping of mutations."""

    def test_rejection_raises_local_validation_error(self, validator):
        mutation = Mutation(
            domain=Domain.TRANSACTIONS,
            kind=MutationKind.CREATE,
            payload=transaction(amount="0", categoryId=None),
        )

        with pytest.raises(ValidationError) as exc_info:
            validator.check(mutation)

        error = exc_info.value
        assert error.code == "LOCAL_VALIDATION_FAILED"
        assert error.status == 0
        assert list(error.field_errors()) == ["categoryId"]

    def test_non_payload_mutations_pass(self, validator):
        for kind in (MutationKind.DELETE, MutationKind.ACTIVATE, MutationKind.SEED):
            assert validator.check(Mutation(domain=Domain.ACCOUNTS, kind=kind, entity_id="a1")).is_valid

    def test_update_is_partial(self, validator):
        mutation = Mutation(
            domain=Domain.TAGS, kind=MutationKind.UPDATE, entity_id="g1", payload={},
        )
        assert validator.check(mutation).is_valid


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
