"""
Catalog row validation.

Turns the parser's row stream into validated MenuItemDraft objects. Errors
are accumulated, never short-circuiting: every row is checked and the caller
gets the complete error list alongside the valid drafts, so it can decide
whether a partially valid batch is usable.
"""

import hashlib
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .models import (
    DEFAULT_CUISINE,
    DEFAULT_MEALS,
    MenuItemDraft,
    MenuItemModifier,
)
from .parser import RowParseError, RowRecord

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

# Required fields and the message used when they are blank
REQUIRED_FIELDS = {
    "category": "category is required",
    "name_primary": "item name is required",
    "price": "price is required",
}

MEAL_TOKENS = (
    (("breakfast", "morning"), "Breakfast"),
    (("lunch",), "Lunch"),
    (("dinner",), "Dinner"),
    (("high", "tea"), "High Tea"),
)


@dataclass
class RowError:
    """
    A validation failure.

    Row-level errors carry one row number. Batch-level errors (duplicates)
    list every row involved in `rows`; `row_number` is the first of them.
    """
    row_number: Optional[int]
    reason: str
    field: Optional[str] = None
    rows: Tuple[int, ...] = ()
    batch_level: bool = False

    def __str__(self) -> str:
        where = f"row {self.row_number}" if self.row_number is not None else "batch"
        return f"{where}: {self.reason}"


@dataclass
class ValidationResult:
    """Valid drafts plus the complete list of errors for one import batch."""
    drafts: List[MenuItemDraft] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)
    total_rows: int = 0

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def row_errors(self) -> List[RowError]:
        return [e for e in self.errors if not e.batch_level]

    def batch_errors(self) -> List[RowError]:
        return [e for e in self.errors if e.batch_level]

    def summary(self) -> str:
        return (
            f"{len(self.drafts)} valid of {self.total_rows} rows, "
            f"{len(self.row_errors())} row errors, {len(self.batch_errors())} batch errors"
        )


# =============================================================================
# FIELD PARSERS
# =============================================================================

def parse_price(value: str) -> Decimal:
    """
    Parse a price cell into a non-negative Decimal rounded half-up to cents.

    Currency words/symbols around the number and thousands separators are
    ignored ("SAR 1,250.50" -> 1250.50). A decimal comma is accepted when it
    is the only separator ("12,5" -> 12.50).

    Raises:
        ValueError: If the value is not a finite non-negative number
    """
    text = (value or "").strip()
    if not text:
        raise ValueError("price is required")

    cleaned = re.sub(r'^[^\d\-.]+|[^\d.]+$', '', text).strip()
    if ',' in cleaned and '.' not in cleaned and re.search(r',\d{1,2}$', cleaned):
        cleaned = cleaned.replace(',', '.')
    else:
        cleaned = re.sub(r'(?<=\d),(?=\d{3})', '', cleaned)

    if not re.fullmatch(r'-?(\d+(\.\d*)?|\.\d+)', cleaned):
        raise ValueError(f"price {text!r} is not a number")

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"price {text!r} is not a number")

    if not amount.is_finite():
        raise ValueError(f"price {text!r} is not finite")
    if amount < 0:
        raise ValueError(f"price {text!r} is negative")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_meals(value: str) -> Tuple[str, ...]:
    """Normalise a meal list cell. Blank or unrecognised values fall back to Lunch and Dinner."""
    if not value or not value.strip():
        return DEFAULT_MEALS

    meals = []
    for token in re.split(r'[,&/;]', value):
        clean = token.strip().lower()
        for words, meal in MEAL_TOKENS:
            if any(word in clean for word in words):
                if meal not in meals:
                    meals.append(meal)
                break
    return tuple(meals) or DEFAULT_MEALS


def parse_cuisine(value: str) -> str:
    if not value:
        return DEFAULT_CUISINE
    lowered = value.lower()
    if 'fast' in lowered:
        return 'Fast Food'
    if 'desi' in lowered or 'pakistani' in lowered or 'indian' in lowered:
        return 'Desi'
    return DEFAULT_CUISINE


def parse_modifiers(value: str) -> Tuple[MenuItemModifier, ...]:
    """
    Parse a modifier list: "Extra Cheese:3; No Onion".

    Raises:
        ValueError: If a modifier price is invalid
    """
    if not value or not value.strip():
        return ()

    modifiers = []
    for part in value.split(';'):
        part = part.strip()
        if not part:
            continue
        name, _, price = part.partition(':')
        name = name.strip()
        if not name:
            raise ValueError(f"modifier {part!r} has no name")
        try:
            amount = parse_price(price) if price.strip() else Decimal("0.00")
        except ValueError as e:
            raise ValueError(f"modifier {name!r}: {e}")
        modifiers.append(MenuItemModifier(name=name, price=amount))
    return tuple(modifiers)


def _identity(text: str) -> str:
    return ' '.join(text.lower().split())


def _slug(text: str) -> str:
    return re.sub(r'[\W_]+', '-', text.lower()).strip('-')


def make_item_key(category: str, name: str) -> str:
    """
    Stable natural key derived from category and name.

    Names that survive slugging unchanged ("Iced Tea") give a readable key
    ("drinks--iced-tea"). When slugging drops characters ("Cola (L)"), a
    short hash of the exact category and name is appended after a second
    "--", so distinct names never share a derived key.
    """
    slugs = (_slug(category), _slug(name))
    key = f"{slugs[0]}--{slugs[1]}"
    identities = (_identity(category), _identity(name))
    if tuple(s.replace('-', ' ') for s in slugs) == identities:
        return key
    digest = hashlib.sha256('\x1f'.join(identities).encode('utf-8')).hexdigest()[:8]
    return f"{key}--{digest}"


# =============================================================================
# VALIDATOR
# =============================================================================

class CatalogValidator:
    """Validates parsed rows into MenuItemDraft objects."""

    def validate_row(self, record: Union[RowRecord, RowParseError]) -> Union[MenuItemDraft, RowError]:
        """Validate one parser result.

        Returns:
            A MenuItemDraft, or a RowError naming the row and the first
            failing field
        """
        if isinstance(record, RowParseError):
            return RowError(record.row_number, record.reason, field=record.column)

        values = record.values
        for name, message in REQUIRED_FIELDS.items():
            if not values.get(name, "").strip():
                return RowError(record.row_number, message, field=name)

        try:
            price = parse_price(values["price"])
        except ValueError as e:
            return RowError(record.row_number, str(e), field="price")

        try:
            modifiers = parse_modifiers(values.get("modifiers", ""))
        except ValueError as e:
            return RowError(record.row_number, str(e), field="modifiers")

        category = ' '.join(values["category"].split())
        name_primary = ' '.join(values["name_primary"].split())
        key = values.get("key", "").strip() or make_item_key(category, name_primary)

        return MenuItemDraft(
            key=key,
            category=category,
            name_primary=name_primary,
            name_secondary=values.get("name_secondary", ""),
            price=price,
            subcategory=values.get("subcategory", ""),
            description=values.get("description", ""),
            available_meals=parse_meals(values.get("available_meals", "")),
            cuisine_type=parse_cuisine(values.get("cuisine_type", "")),
            modifiers=modifiers,
            row_number=record.row_number,
        )

    def iter_validate(self, rows: Iterable[Union[RowRecord, RowParseError]]) -> Iterator[Union[MenuItemDraft, RowError]]:
        """Yield a draft or an error per row, in input order. No batch checks."""
        for record in rows:
            yield self.validate_row(record)

    def validate(self, rows: Iterable[Union[RowRecord, RowParseError]]) -> ValidationResult:
        """Validate a whole batch.

        Every row is processed. Rows that collide on item name within a
        category, or on key, are reported together as one batch-level error
        per collision and none of the colliding rows is kept. Derived keys
        are unique per category and name, so a key collision always
        involves a key cell entered in the file.

        Args:
            rows: The parser's row stream (or any iterable of row results)

        Returns:
            ValidationResult with valid drafts and all errors
        """
        result = ValidationResult()
        drafts = []
        for outcome in self.iter_validate(rows):
            result.total_rows += 1
            if isinstance(outcome, RowError):
                result.errors.append(outcome)
            else:
                drafts.append(outcome)

        rejected = set()
        for label, signature in (
            ("name", lambda d: (_identity(d.category), _identity(d.name_primary))),
            ("key", lambda d: d.key),
        ):
            groups: Dict[object, List[MenuItemDraft]] = {}
            for draft in drafts:
                if draft.row_number in rejected:
                    continue
                groups.setdefault(signature(draft), []).append(draft)

            for group in groups.values():
                if len(group) < 2:
                    continue
                rows_involved = tuple(d.row_number for d in group)
                rejected.update(rows_involved)
                first = group[0]
                if label == "name":
                    reason = f"duplicate item {first.name_primary!r} in category {first.category!r}"
                else:
                    reason = f"duplicate key {first.key!r}"
                reason += f" (rows {', '.join(str(r) for r in rows_involved)})"
                result.errors.append(
                    RowError(rows_involved[0], reason, field=label, rows=rows_involved, batch_level=True)
                )

        result.drafts = [d for d in drafts if d.row_number not in rejected]
        result.errors.sort(key=lambda e: (e.row_number is None, e.row_number or 0))

        if result.errors:
            logger.warning(f"Validation: {result.summary()}")
        else:
            logger.info(f"Validation: {result.summary()}")
        return result
