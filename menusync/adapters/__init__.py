"""File adapters turning raw uploads into header + row streams."""

from .csv_adapter import CsvAdapter
from .excel_adapter import ExcelAdapter

__all__ = ["CsvAdapter", "ExcelAdapter"]
