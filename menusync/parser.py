from .normalizer import CatalogNormalizer
from .column_profiler import ColumnProfiler
from .exceptions import CatalogFileError
from .models import CatalogSnapshot, MenuItem
from .schema import STANDARD_HEADERS, REQUIRED_HEADERS, HEADER_LABELS, FIELD_SCHEMAS
from dataclasses import dataclass
from itertools import chain, islice
from typing import List, Dict, Any, Iterator, Optional, Union
from pathlib import Path
import csv
import json
import logging
import openpyxl

logger = logging.getLogger(__name__)

# Cell values spreadsheets hand back for formula errors
ERROR_VALUES = ('#NULL!', '#DIV/0!', '#VALUE!', '#REF!', '#NAME?', '#NUM!', '#N/A')

# Fields the profiler may fill in when no header names them
INFERRED_OPTIONAL = ["name_secondary"]


@dataclass
class RowRecord:
    """A structurally sound row, keyed by standard header. Values are stripped strings."""
    row_number: int
    values: Dict[str, str]


@dataclass
class RowParseError:
    """A row whose structure could not be read (short row, unreadable cell)."""
    row_number: int
    reason: str
    column: Optional[str] = None


class ParsedCatalog:
    """Header information plus a lazy, one-shot stream of row results.

    Iterating yields RowRecord or RowParseError in file order. The stream can
    be consumed only once.
    """

    def __init__(self, headers: List[Any], column_map: Dict[int, str], inferred: Dict[int, str], rows: Iterator):
        self.headers = headers
        self.column_map = column_map
        self.inferred = inferred
        self._rows = rows
        self._consumed = False

    def __iter__(self):
        if self._consumed:
            raise RuntimeError("Parsed rows can only be iterated once")
        self._consumed = True
        return self._rows


class CatalogParser:
    """Parser for menu catalog spreadsheets and CSV files."""

    def __init__(self, infer_columns: bool = True, sample_size: int = 50):
        """Initialize the catalog parser.

        Args:
            infer_columns: If True, profile column values to find required
                columns whose headers were not recognised (default: True)
            sample_size: Number of leading rows buffered for profiling
        """
        self.adapters = []
        self.normalizer = CatalogNormalizer()
        self.profiler = ColumnProfiler(sample_size=sample_size) if infer_columns else None
        self.sample_size = sample_size

    def register_adapter(self, adapter):
        """Register a file adapter for parsing.

        Args:
            adapter: Adapter instance with can_handle() and read() methods
        """
        self.adapters.append(adapter)

    def _read_source(self, source, file_name: Optional[str]):
        if isinstance(source, (bytes, bytearray)):
            return bytes(source), file_name
        if hasattr(source, "read"):
            return source.read(), file_name or getattr(source, "name", None)
        path = Path(source)
        try:
            return path.read_bytes(), file_name or path.name
        except OSError as e:
            raise CatalogFileError(f"Cannot read {path}: {e}") from e

    def _find_adapter(self, file_name: Optional[str], data: bytes):
        for a in self.adapters:
            if a.can_handle(file_name, data[:8]):
                return a
        raise CatalogFileError(f"No adapter found for {file_name or 'uploaded data'}")

    def _declared_column_map(self, headers: List[Any], declared: Dict[str, str]) -> Dict[int, str]:
        wanted = {self.normalizer.clean_header(name): standard for name, standard in declared.items()}
        column_map = {}
        for index, header in enumerate(headers):
            standard = wanted.get(self.normalizer.clean_header(header))
            if standard in STANDARD_HEADERS and standard not in column_map.values():
                column_map[index] = standard
        return column_map

    def parse(
        self,
        source: Union[str, Path, bytes, Any],
        file_name: Optional[str] = None,
        column_map: Optional[Dict[str, str]] = None
    ) -> ParsedCatalog:
        """Parse a catalog file into a lazy stream of row records.

        Args:
            source: File path, raw bytes, or a binary file object
            file_name: Original file name (used to pick an adapter for bytes)
            column_map: Declared schema, file header -> standard header.
                When omitted the schema is inferred from header names and,
                failing that, from column values.

        Returns:
            ParsedCatalog whose iteration yields RowRecord / RowParseError

        Raises:
            CatalogFileError: Unreadable input, missing required columns, or
                no data rows
        """
        data, file_name = self._read_source(source, file_name)
        if not data:
            raise CatalogFileError(f"{file_name or 'Uploaded file'} is empty")

        adapter = self._find_adapter(file_name, data)
        headers, raw_rows = adapter.read(data, file_name)

        if column_map:
            mapping = self._declared_column_map(headers, column_map)
        else:
            mapping = self.normalizer.build_column_map(headers)

        # Buffer leading rows so column values can be profiled
        sample = list(islice(raw_rows, self.sample_size))

        inferred = {}
        missing = [h for h in REQUIRED_HEADERS if h not in mapping.values()]
        if missing and self.profiler and not column_map:
            wanted = missing + [h for h in INFERRED_OPTIONAL if h not in mapping.values()]
            inferred = self.profiler.infer_columns(
                self._sample_columns(sample), wanted, claimed=list(mapping)
            )
            for index, standard in inferred.items():
                logger.info(f"Inferred column {index + 1} as {standard} from its values")
            mapping.update(inferred)
            missing = [h for h in REQUIRED_HEADERS if h not in mapping.values()]

        if missing:
            raise CatalogFileError(
                f"Missing required columns: {', '.join(missing)}",
                missing_columns=missing
            )

        unmapped = [h for i, h in enumerate(headers) if i not in mapping and h not in (None, "")]
        if unmapped:
            logger.warning(f"Ignoring unmapped columns: {unmapped}")

        results = self._iter_rows(headers, mapping, chain(sample, raw_rows))
        first = next(results, None)
        if first is None:
            raise CatalogFileError(f"{file_name or 'Uploaded file'} has no data rows")

        return ParsedCatalog(headers, mapping, inferred, chain([first], results))

    def _sample_columns(self, sample) -> Dict[int, List[Any]]:
        columns = {}
        for _, cells, error in sample:
            if error:
                continue
            for index, value in enumerate(cells):
                columns.setdefault(index, []).append(value)
        return columns

    def _iter_rows(self, headers: List[Any], mapping: Dict[int, str], raw_rows) -> Iterator:
        header_cells = {index: self.normalizer.clean_header(headers[index]) for index in mapping if index < len(headers)}
        required_indexes = {index: standard for index, standard in mapping.items() if standard in REQUIRED_HEADERS}

        for row_number, cells, error in raw_rows:
            if error:
                yield RowParseError(row_number, error)
                continue

            if all(self.normalizer.clean_cell(value) == "" for value in cells):
                continue

            # A repeated header row inside the data
            if header_cells and all(
                index < len(cells) and self.normalizer.clean_header(cells[index]) == cleaned
                for index, cleaned in header_cells.items()
            ):
                continue

            short = [standard for index, standard in required_indexes.items() if index >= len(cells)]
            if short:
                yield RowParseError(row_number, f"missing cell for column '{short[0]}'", column=short[0])
                continue

            bad = [
                standard for index, standard in mapping.items()
                if index < len(cells) and isinstance(cells[index], str) and cells[index].strip() in ERROR_VALUES
            ]
            if bad:
                yield RowParseError(row_number, f"unreadable cell in column '{bad[0]}'", column=bad[0])
                continue

            yield RowRecord(row_number, self.normalizer.normalize_row(cells, mapping))

    def get_standard_template(self) -> List[str]:
        """Get the standard catalog template headers."""
        return self.normalizer.get_standard_template()

    def get_mapping_report(self, source, file_name: Optional[str] = None) -> Dict[str, Any]:
        """Get a report of how columns from a file map to standard headers.

        The row stream is not consumed beyond the profiling sample.
        """
        parsed = self.parse(source, file_name=file_name)
        report = self.normalizer.get_mapping_report(parsed.headers, parsed.inferred)
        report["missing_optional"] = [h for h in STANDARD_HEADERS if h not in parsed.column_map.values()]
        return report

    # =========================================================================
    # EXPORT
    # =========================================================================

    def export(self, snapshot: CatalogSnapshot, output_path: str, format: Optional[str] = None) -> str:
        """Export a catalog snapshot to a file the parser can read back.

        Args:
            snapshot: Catalog snapshot to write
            output_path: Path where the file should be saved
            format: Output format ('csv', 'excel', 'json', or None for auto-detect from extension)

        Returns:
            Path to the exported file

        Raises:
            ValueError: If format is not supported
        """
        output_path = Path(output_path)
        format = self._detect_format(output_path, format)

        if format == 'json':
            with open(output_path, 'w', encoding='utf-8') as f:
                json.dump(snapshot.to_dict(), f, indent=2, ensure_ascii=False)
            return str(output_path)

        rows = [self._item_to_row(item) for item in snapshot.items]
        self._write_table(rows, output_path, format)
        return str(output_path)

    def export_template(self, output_path: str, format: Optional[str] = None) -> str:
        """Write an empty catalog template with one example row."""
        output_path = Path(output_path)
        format = self._detect_format(output_path, format)
        if format == 'json':
            raise ValueError("Templates are only written as csv or excel")

        example = {header: FIELD_SCHEMAS[header]["examples"][0] for header in STANDARD_HEADERS}
        self._write_table([example], output_path, format)
        return str(output_path)

    def _detect_format(self, output_path: Path, format: Optional[str]) -> str:
        if format is None:
            suffix = output_path.suffix.lower()
            if suffix in ['.csv', '.tsv']:
                format = 'csv'
            elif suffix in ['.xlsx', '.xlsm']:
                format = 'excel'
            elif suffix == '.json':
                format = 'json'
            else:
                format = 'csv'
        format = format.lower()
        if format not in ('csv', 'excel', 'json'):
            raise ValueError(f"Unsupported export format: {format}. Supported formats: csv, excel, json")
        return format

    def _item_to_row(self, item: MenuItem) -> Dict[str, Any]:
        return {
            "category": item.category,
            "subcategory": item.subcategory,
            "name_primary": item.name_primary,
            "name_secondary": item.name_secondary,
            "price": str(item.price),
            "description": item.description,
            "available_meals": ", ".join(item.available_meals),
            "cuisine_type": item.cuisine_type,
            "modifiers": "; ".join(f"{m.name}:{m.price}" for m in item.modifiers),
            "key": item.key,
        }

    def _write_table(self, rows: List[Dict[str, Any]], output_path: Path, format: str) -> None:
        labels = [HEADER_LABELS[h] for h in STANDARD_HEADERS]
        if format == 'csv':
            with open(output_path, 'w', newline='', encoding='utf-8') as f:
                writer = csv.writer(f)
                writer.writerow(labels)
                for row in rows:
                    writer.writerow([row.get(h, '') for h in STANDARD_HEADERS])
            return

        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = "Menu"
        ws.append(labels)
        for row in rows:
            ws.append([row.get(h, '') for h in STANDARD_HEADERS])
        wb.save(output_path)


def default_parser(**kwargs) -> CatalogParser:
    """A CatalogParser with the spreadsheet and CSV adapters registered."""
    from .adapters import CsvAdapter, ExcelAdapter

    parser = CatalogParser(**kwargs)
    parser.register_adapter(ExcelAdapter())
    parser.register_adapter(CsvAdapter())
    return parser
