import io
import zipfile
import openpyxl
from openpyxl.utils.exceptions import InvalidFileException
from pathlib import Path

from ..exceptions import CatalogFileError


class ExcelAdapter:
    SUFFIXES = (".xlsx", ".xlsm")

    def can_handle(self, file_name, head=b""):
        if file_name:
            return Path(file_name).suffix.lower() in self.SUFFIXES
        return head.startswith(b"PK\x03\x04")

    def read(self, data, file_name=None):
        try:
            wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
            raise CatalogFileError(f"Unreadable spreadsheet: {e}") from e

        # Only the first sheet is imported
        ws = wb.worksheets[0]
        row_iter = ws.iter_rows(values_only=True)
        try:
            headers = list(next(row_iter))
        except StopIteration:
            wb.close()
            raise CatalogFileError("Spreadsheet has no header row")

        def rows():
            try:
                for row_number, row in enumerate(row_iter, start=2):
                    yield row_number, list(row), None
            finally:
                wb.close()

        return headers, rows()
