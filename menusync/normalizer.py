from typing import List, Dict, Any, Optional, Sequence
import re
from .schema import STANDARD_HEADERS, COLUMN_MAPPINGS


class CatalogNormalizer:
    """Normalizer for mapping spreadsheet headers onto the standard catalog template.

    Matching is case- and whitespace-insensitive and ignores punctuation, so
    "Item Name (EN)", "item_name_en" and " ITEM NAME EN " are the same header.
    """

    def __init__(self):
        """Initialize the normalizer with column mappings."""
        # Forward lookup: variation -> standard column name
        self._variation_to_standard = {}
        for standard, variations in COLUMN_MAPPINGS.items():
            for variation in variations:
                self._variation_to_standard.setdefault(self.clean_header(variation), standard)

        # Partial-match candidates in priority order: (standard, variation tokens)
        self._candidates = []
        for standard, variations in COLUMN_MAPPINGS.items():
            for variation in variations:
                self._candidates.append((standard, self.clean_header(variation).split()))

    @staticmethod
    def clean_header(column_name: Any) -> str:
        """Lowercase, strip, and collapse punctuation/underscores/whitespace to single spaces."""
        if column_name is None:
            return ""
        return re.sub(r'[\W_]+', ' ', str(column_name).lower()).strip()

    def get_standard_template(self) -> List[str]:
        """Get the standard catalog template headers in order."""
        return STANDARD_HEADERS.copy()

    def normalize_column_name(self, column_name: Any) -> Optional[str]:
        """Normalize a column name to the standard header.

        Args:
            column_name: The original column name from the file

        Returns:
            Standard column name if a match is found, None otherwise
        """
        cleaned = self.clean_header(column_name)
        if not cleaned:
            return None

        # Direct lookup
        if cleaned in self._variation_to_standard:
            return self._variation_to_standard[cleaned]

        # Whole-word containment: the variation with the most words wins,
        # ties go to the header listed first in COLUMN_MAPPINGS
        tokens = set(cleaned.split())
        best = None
        best_size = 0
        for standard, variation_tokens in self._candidates:
            if len(variation_tokens) > best_size and tokens.issuperset(variation_tokens):
                best, best_size = standard, len(variation_tokens)
        return best

    def build_column_map(self, headers: Sequence[Any]) -> Dict[int, str]:
        """Map header positions to standard headers.

        The first column claiming a standard header keeps it; later columns
        mapping to the same header are left unmapped.

        Args:
            headers: Header row cells in file order

        Returns:
            Column index -> standard header
        """
        column_map = {}
        seen = set()
        for index, header in enumerate(headers):
            standard = self.normalize_column_name(header)
            if standard and standard not in seen:
                column_map[index] = standard
                seen.add(standard)
        return column_map

    def normalize_row(self, cells: Sequence[Any], column_map: Dict[int, str]) -> Dict[str, str]:
        """Normalize one row of cells to the standard template.

        Args:
            cells: Row cells in file order
            column_map: Column index -> standard header

        Returns:
            Dictionary with every standard header; absent cells are empty strings
        """
        normalized_row = {header: "" for header in STANDARD_HEADERS}
        for index, standard in column_map.items():
            if index < len(cells):
                normalized_row[standard] = self.clean_cell(cells[index])
        return normalized_row

    @staticmethod
    def clean_cell(value: Any) -> str:
        """Render a cell as a stripped string. Whole floats from spreadsheets drop their '.0'."""
        if value is None:
            return ""
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value).strip()

    def get_mapping_report(self, headers: Sequence[Any], inferred: Optional[Dict[int, str]] = None) -> Dict[str, Any]:
        """Generate a report of column mappings for operators.

        Args:
            headers: Header row cells in file order
            inferred: Column index -> standard header assigned by value profiling

        Returns:
            Dictionary with mapped, inferred and unmapped columns
        """
        inferred = inferred or {}
        column_map = self.build_column_map(headers)

        mapped = {}
        unmapped = []
        for index, header in enumerate(headers):
            if index in column_map:
                mapped.setdefault(column_map[index], []).append(header)
            elif index not in inferred and header not in (None, ""):
                unmapped.append(header)

        return {
            "mapped": mapped,
            "inferred": {
                standard: headers[index] if index < len(headers) else f"column {index + 1}"
                for index, standard in inferred.items()
            },
            "unmapped": unmapped,
            "standard_headers": STANDARD_HEADERS,
        }
