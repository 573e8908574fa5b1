"""Column profiling module for inferring catalog columns from their values.

When a header cannot be matched by name (a missing or unfamiliar header
row), this module looks at sample values in each column and votes on which
catalog field the column most likely holds.
"""

import re
from collections import Counter
from typing import Any, Dict, List, Optional, Sequence


# Fields the profiler is allowed to assign, in assignment order. Price and
# localized name have the most distinctive value shapes, so they claim their
# columns first.
INFERABLE_FIELDS = ["price", "name_secondary", "category", "name_primary", "available_meals", "cuisine_type"]

MIN_SCORE = 0.5


class ColumnProfiler:
    """Profiles columns by analyzing sample values to infer which catalog field they hold."""

    PRICE_PATTERN = re.compile(r'^\s*(?:[A-Za-z$€£]{1,4}\.?\s*)?-?\d{1,3}(?:,?\d{3})*(?:\.\d+)?\s*(?:[A-Za-z$€£]{1,4}\.?)?\s*$')
    ARABIC_PATTERN = re.compile(r'[\u0600-\u06FF]')

    MEAL_WORDS = ("breakfast", "lunch", "dinner", "high tea", "morning", "tea")
    CUISINE_WORDS = ("fast", "food", "desi", "indian", "pakistani", "general")

    def __init__(self, sample_size: int = 50):
        """Initialize the column profiler.

        Args:
            sample_size: Maximum number of values to inspect per column
        """
        self.sample_size = sample_size

    def profile_column(self, values: Sequence[Any]) -> Dict[str, float]:
        """Compute a statistical profile for one column.

        Args:
            values: Raw cell values from the column (any type)

        Returns:
            Dictionary of ratios in [0, 1]: numeric, text, arabic, meal,
            cuisine, unique_ratio, repeated_ratio
        """
        sample = self._get_sample(values)
        if not sample:
            return {
                'numeric': 0.0, 'text': 0.0, 'arabic': 0.0, 'meal': 0.0,
                'cuisine': 0.0, 'unique_ratio': 0.0, 'repeated_ratio': 0.0,
            }

        total = len(sample)
        numeric = 0
        arabic = 0
        meal = 0
        cuisine = 0
        for value in sample:
            lowered = value.lower()
            if self.PRICE_PATTERN.match(value):
                numeric += 1
            if self.ARABIC_PATTERN.search(value):
                arabic += 1
            if any(word in lowered for word in self.MEAL_WORDS):
                meal += 1
            if any(word in lowered for word in self.CUISINE_WORDS):
                cuisine += 1

        profile = {
            'numeric': numeric / total,
            'text': (total - numeric) / total,
            'arabic': arabic / total,
            'meal': meal / total,
            'cuisine': cuisine / total,
        }
        profile.update(self._compute_cardinality(sample))
        return profile

    def _get_sample(self, values: Sequence[Any]) -> List[str]:
        """Non-empty values as stripped strings, capped at sample_size."""
        sample = []
        for value in values:
            if value is None:
                continue
            text = str(value).strip()
            if text:
                sample.append(text)
            if len(sample) >= self.sample_size:
                break
        return sample

    def _compute_cardinality(self, values: List[str]) -> Dict[str, float]:
        """Compute cardinality statistics: unique ratio, repeated ratio."""
        value_counts = Counter(values)
        total = len(values)
        unique_count = len(value_counts)

        repeated_count = sum(1 for count in value_counts.values() if count > 1)
        return {
            'unique_ratio': unique_count / total,
            'repeated_ratio': repeated_count / unique_count if unique_count else 0.0,
        }

    def score(self, field_id: str, profile: Dict[str, float]) -> float:
        """Score how well a column profile fits a catalog field."""
        if field_id == "price":
            return profile['numeric']
        if field_id == "name_secondary":
            return profile['arabic']
        if field_id == "available_meals":
            return profile['meal']
        if field_id == "cuisine_type":
            return profile['cuisine']
        latin_text = profile['text'] * (1.0 - profile['arabic'])
        if field_id == "category":
            # Categories repeat across many rows
            if profile['unique_ratio'] >= 1.0:
                return 0.0
            return latin_text * (0.5 + profile['repeated_ratio'] / 2)
        if field_id == "name_primary":
            return latin_text * profile['unique_ratio']
        return 0.0

    def infer_columns(
        self,
        columns: Dict[int, List[Any]],
        wanted: Sequence[str],
        claimed: Optional[Sequence[int]] = None
    ) -> Dict[int, str]:
        """Assign catalog fields to unclaimed columns by value shape.

        Args:
            columns: Column index -> sample values
            wanted: Field ids still missing from the header mapping
            claimed: Column indexes already mapped by header name

        Returns:
            Column index -> inferred field id, only for confident matches
        """
        taken = set(claimed or [])
        profiles = {
            index: self.profile_column(values)
            for index, values in columns.items()
            if index not in taken
        }

        inferred = {}
        for field_id in INFERABLE_FIELDS:
            if field_id not in wanted:
                continue
            best_index = None
            best_score = MIN_SCORE
            for index, profile in profiles.items():
                if index in taken:
                    continue
                candidate = self.score(field_id, profile)
                if candidate > best_score:
                    best_index, best_score = index, candidate
            if best_index is not None:
                inferred[best_index] = field_id
                taken.add(best_index)
        return inferred
