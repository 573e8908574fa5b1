import csv
import io
import chardet
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple

from ..exceptions import CatalogFileError


class CsvAdapter:
    """CSV adapter for reading comma-separated catalog files reliably.

    Handles:
    - Multiple encodings (UTF-8, UTF-8-BOM, Windows-1256, ISO-8859-1, etc.)
    - Different delimiters (comma, semicolon, tab)
    - Edge cases (empty files, missing headers)
    """

    SUFFIXES = (".csv", ".tsv", ".txt")

    def can_handle(self, file_name: Optional[str], head: bytes = b"") -> bool:
        """Check if this adapter can handle the given file.

        Files without a name are accepted unless they look like a zip
        container (which is what an .xlsx workbook is).
        """
        if file_name:
            return Path(file_name).suffix.lower() in self.SUFFIXES
        return not head.startswith(b"PK\x03\x04")

    def _detect_encoding(self, data: bytes) -> str:
        """Detect text encoding using chardet with fallback."""
        # Check for BOM first
        if data.startswith(b'\xef\xbb\xbf'):
            return 'utf-8-sig'

        # Short Arabic samples can fool chardet; valid UTF-8 is taken as such
        try:
            data.decode('utf-8')
            return 'utf-8'
        except UnicodeDecodeError:
            pass

        result = chardet.detect(data[:10000])
        encoding = result.get('encoding') or 'utf-8'

        encoding_lower = encoding.lower()
        if 'utf-8' in encoding_lower or 'utf8' in encoding_lower or encoding_lower == 'ascii':
            return 'utf-8'
        return encoding

    def _decode(self, data: bytes) -> str:
        encoding = self._detect_encoding(data)
        try:
            return data.decode(encoding)
        except (UnicodeDecodeError, LookupError) as e:
            # Try with different encoding as fallback
            for fallback_encoding in ('utf-8', 'cp1256', 'cp1252'):
                try:
                    return data.decode(fallback_encoding)
                except UnicodeDecodeError:
                    continue
            raise CatalogFileError(f"Could not decode file: {e}") from e

    def _detect_delimiter(self, text: str, file_name: Optional[str]) -> str:
        """Detect CSV delimiter from a sample of the text."""
        if file_name and Path(file_name).suffix.lower() == '.tsv':
            return '\t'

        # The header row rarely contains data punctuation, so count there first
        sample = text[:4096]
        first_line = sample.split('\n', 1)[0]
        comma_count = first_line.count(',')
        semicolon_count = first_line.count(';')
        tab_count = first_line.count('\t')
        if tab_count > comma_count and tab_count > semicolon_count:
            return '\t'
        elif semicolon_count > comma_count:
            return ';'
        elif comma_count:
            return ','

        try:
            return csv.Sniffer().sniff(sample, delimiters=',;\t').delimiter
        except csv.Error:
            return ','

    def read(self, data: bytes, file_name: Optional[str] = None) -> Tuple[List[Any], Iterator[Tuple[int, List[Any], Optional[str]]]]:
        """Read CSV bytes into a header row and a lazy row iterator.

        Args:
            data: Raw file contents
            file_name: Original file name, used for delimiter hints

        Returns:
            (header cells, iterator of (1-based row number, cells, error)) where
            error is None unless the row itself could not be read

        Raises:
            CatalogFileError: If the data cannot be decoded or has no header row
        """
        if not data or not data.strip():
            raise CatalogFileError("File is empty")

        text = self._decode(data)
        delimiter = self._detect_delimiter(text, file_name)
        reader = csv.reader(io.StringIO(text, newline=''), delimiter=delimiter)

        try:
            headers = next(reader)
        except StopIteration:
            raise CatalogFileError("File has no header row")
        except csv.Error as e:
            raise CatalogFileError(f"Error parsing CSV header: {e}") from e

        def rows() -> Iterator[Tuple[int, List[Any], Optional[str]]]:
            row_number = 1
            while True:
                try:
                    cells = next(reader)
                except StopIteration:
                    return
                except csv.Error as e:
                    row_number += 1
                    yield row_number, [], f"unreadable row: {e}"
                    continue
                row_number += 1
                yield row_number, cells, None

        return headers, rows()
