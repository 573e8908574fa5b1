"""
Unit tests for catalog validation.

These tests verify that:
1. Prices are non-negative, finite and rounded half-up to cents
2. Required fields are enforced per row with the row number attached
3. Duplicates in a batch are one batch-level error, never silently merged
4. Every row is processed; errors never short-circuit the batch
"""

from decimal import Decimal

import pytest

from menusync.models import DEFAULT_MEALS, MenuItemDraft, MenuItemModifier
from menusync.parser import RowParseError, RowRecord
from menusync.validator import (
    CatalogValidator,
    RowError,
    make_item_key,
    parse_cuisine,
    parse_meals,
    parse_modifiers,
    parse_price,
)


def make_row(row_number: int, category: str = "Drinks", name: str = "Cola", price: str = "5", **extra) -> RowRecord:
    """Helper to create RowRecord objects for testing."""
    values = {"category": category, "name_primary": name, "price": price}
    values.update(extra)
    return RowRecord(row_number=row_number, values=values)


@pytest.fixture
def validator():
    return CatalogValidator()


# =============================================================================
# PRICE TESTS
# =============================================================================

class TestParsePrice:
    """Tests for price parsing and rounding."""

    def test_rounds_half_up(self):
        assert parse_price("12.345") == Decimal("12.35")

    def test_rounds_down_below_half(self):
        assert parse_price("12.344999") == Decimal("12.34")

    def test_half_cent_rounds_up(self):
        assert parse_price("0.005") == Decimal("0.01")

    def test_whole_number_gets_cents(self):
        assert parse_price("5") == Decimal("5.00")
        assert str(parse_price("5")) == "5.00"

    def test_zero_is_allowed(self):
        assert parse_price("0") == Decimal("0.00")

    def test_negative_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            parse_price("-1")

    @pytest.mark.parametrize("value", ["abc", "inf", "NaN", "1e5", "1.2.3", ""])
    def test_not_a_number_rejected(self, value):
        with pytest.raises(ValueError):
            parse_price(value)

    def test_currency_and_thousands_separator(self):
        assert parse_price("SAR 1,250.50") == Decimal("1250.50")
        assert parse_price("2.5 SAR") == Decimal("2.50")

    def test_decimal_comma(self):
        assert parse_price("12,5") == Decimal("12.50")

    def test_leading_dot(self):
        assert parse_price(".5") == Decimal("0.50")


# =============================================================================
# FIELD PARSER TESTS
# =============================================================================

class TestFieldParsers:
    """Tests for meals, cuisine, modifiers and key derivation."""

    def test_meals_default(self):
        assert parse_meals("") == DEFAULT_MEALS
        assert parse_meals("whenever") == DEFAULT_MEALS

    def test_meals_tokens(self):
        assert parse_meals("breakfast & lunch") == ("Breakfast", "Lunch")
        assert parse_meals("High Tea, Dinner") == ("High Tea", "Dinner")

    def test_meals_deduplicated(self):
        assert parse_meals("Lunch, lunch") == ("Lunch",)

    def test_cuisine(self):
        assert parse_cuisine("fast food") == "Fast Food"
        assert parse_cuisine("Pakistani") == "Desi"
        assert parse_cuisine("Italian") == "General"
        assert parse_cuisine("") == "General"

    def test_modifiers(self):
        modifiers = parse_modifiers("Extra Cheese:3; No Onion")

        assert modifiers == (
            MenuItemModifier(name="Extra Cheese", price=Decimal("3.00")),
            MenuItemModifier(name="No Onion", price=Decimal("0.00")),
        )

    def test_modifier_with_negative_price(self):
        with pytest.raises(ValueError, match="Extra"):
            parse_modifiers("Extra:-1")

    def test_modifier_without_name(self):
        with pytest.raises(ValueError):
            parse_modifiers(":3")

    def test_item_key(self):
        assert make_item_key("Hot Drinks", "Iced Tea") == "hot-drinks--iced-tea"
        assert make_item_key("  hot drinks", "ICED  TEA") == "hot-drinks--iced-tea"

    def test_item_key_with_punctuation_is_hashed(self):
        key = make_item_key("Hot Drinks", "Iced Tea (Large)")

        prefix, digest = key.rsplit("--", 1)
        assert prefix == "hot-drinks--iced-tea-large"
        assert len(digest) == 8
        assert key == make_item_key("hot drinks", "iced tea (large)")
        assert key != make_item_key("Hot Drinks", "Iced Tea Large")
        assert key != make_item_key("Hot Drinks", "Iced Tea [Large]")


# =============================================================================
# ROW VALIDATION TESTS
# =============================================================================

class TestValidateRow:
    """Tests for single-row validation."""

    def test_valid_row(self, validator):
        draft = validator.validate_row(make_row(2, price="12.345", name_secondary="كولا"))

        assert isinstance(draft, MenuItemDraft)
        assert draft.price == Decimal("12.35")
        assert draft.name_secondary == "كولا"
        assert draft.key == "drinks--cola"
        assert draft.row_number == 2

    def test_explicit_key_kept(self, validator):
        draft = validator.validate_row(make_row(2, key="SKU-1"))

        assert draft.key == "SKU-1"

    def test_whitespace_collapsed(self, validator):
        draft = validator.validate_row(make_row(2, category="  Hot   Drinks ", name="Tea"))

        assert draft.category == "Hot Drinks"

    @pytest.mark.parametrize("field", ["category", "name_primary", "price"])
    def test_required_fields(self, validator, field):
        values = {"category": "Drinks", "name_primary": "Cola", "price": "5"}
        values[field] = "  "

        error = validator.validate_row(RowRecord(7, values))

        assert isinstance(error, RowError)
        assert error.row_number == 7
        assert error.field == field

    def test_bad_price(self, validator):
        error = validator.validate_row(make_row(3, price="-1"))

        assert isinstance(error, RowError)
        assert error.field == "price"
        assert "row 3" in str(error)

    def test_bad_modifier(self, validator):
        error = validator.validate_row(make_row(3, modifiers="Ice:abc"))

        assert isinstance(error, RowError)
        assert error.field == "modifiers"

    def test_parse_failure_becomes_row_error(self, validator):
        error = validator.validate_row(RowParseError(4, "missing cell for column 'price'", column="price"))

        assert isinstance(error, RowError)
        assert error.row_number == 4
        assert error.field == "price"


# =============================================================================
# BATCH VALIDATION TESTS
# =============================================================================

class TestValidateBatch:
    """Tests for whole-batch validation."""

    def test_duplicate_name_in_category(self, validator):
        result = validator.validate([
            make_row(2, "Drinks", "Cola", "5"),
            make_row(3, "Drinks", "Cola", "6"),
        ])

        assert len(result.errors) == 1
        error = result.errors[0]
        assert error.batch_level is True
        assert error.rows == (2, 3)
        assert "rows 2, 3" in error.reason
        assert result.drafts == []

    def test_duplicate_detection_ignores_case(self, validator):
        result = validator.validate([
            make_row(2, "Drinks", "Cola", "5"),
            make_row(3, "drinks", "COLA ", "6"),
            make_row(4, "Drinks", "Water", "2"),
        ])

        assert len(result.batch_errors()) == 1
        assert [d.name_primary for d in result.drafts] == ["Water"]

    def test_same_name_in_other_category_is_fine(self, validator):
        result = validator.validate([
            make_row(2, "Drinks", "Special", "5"),
            make_row(3, "Food", "Special", "6"),
        ])

        assert not result.has_errors
        assert len(result.drafts) == 2

    def test_duplicate_key(self, validator):
        result = validator.validate([
            make_row(2, "Drinks", "Cola", "5", key="K1"),
            make_row(3, "Drinks", "Water", "2", key="K1"),
        ])

        assert len(result.errors) == 1
        assert result.errors[0].field == "key"
        assert result.drafts == []

    def test_punctuation_variants_are_distinct_items(self, validator):
        result = validator.validate([
            make_row(2, "Drinks", "Cola (L)", "5"),
            make_row(3, "Drinks", "Cola L", "6"),
        ])

        assert not result.has_errors
        keys = [d.key for d in result.drafts]
        assert len(set(keys)) == 2
        assert "drinks--cola-l" in keys

    def test_explicit_key_clashing_with_derived_key(self, validator):
        result = validator.validate([
            make_row(2, "Drinks", "Cola", "5"),
            make_row(3, "Drinks", "Water", "2", key="drinks--cola"),
        ])

        assert [e.field for e in result.errors] == ["key"]
        assert result.errors[0].rows == (2, 3)

    def test_errors_accumulate(self, validator):
        result = validator.validate([
            make_row(2, price="oops"),
            make_row(3, name=""),
            make_row(4, name="Water", price="2"),
            RowParseError(5, "unreadable row: bad quote"),
        ])

        assert result.total_rows == 4
        assert [e.row_number for e in result.errors] == [2, 3, 5]
        assert [d.name_primary for d in result.drafts] == ["Water"]
        assert len(result.row_errors()) == 3
        assert result.summary() == "1 valid of 4 rows, 3 row errors, 0 batch errors"
