"""Read the import workbook into header-keyed row dicts."""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional
from zipfile import BadZipFile

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from gsdta.exceptions import WorkbookError
from gsdta.logutils import get_logger

logger = get_logger(__name__)

REGISTRATION_SHEET = "Registration"
TEACHER_SHEET = "Teacher"
BOOKS_SHEET = "Books"

FIXED_SHEETS = (REGISTRATION_SHEET, TEACHER_SHEET, BOOKS_SHEET)


class Row(dict):
    """One sheet row keyed by header, remembering its spreadsheet row number."""

    def __init__(self, number: int = 0, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.number = number


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _header_names(header: Iterable[Any]) -> List[str]:
    """Turn a header row into unique column names.

    Blank header cells become ``Column N``; repeated headers get ``.1``,
    ``.2`` suffixes, so a second ``Asst. Teacher`` column reads as
    ``Asst. Teacher.1``.
    """
    names: List[str] = []
    seen: Dict[str, int] = {}
    for index, value in enumerate(header):
        name = f"Column {index + 1}" if _is_blank(value) else str(value)
        if name in seen:
            seen[name] += 1
            name = f"{name}.{seen[name]}"
        else:
            seen[name] = 0
        names.append(name)
    return names


def rows_from_values(values: Iterable[Iterable[Any]]) -> List[Row]:
    """Convert raw sheet rows (header first) into row dicts.

    Blank cells are left out of each dict and rows with no values at all
    are dropped. Column order is preserved.
    """
    iterator = iter(values)
    try:
        header = next(iterator)
    except StopIteration:
        return []

    names = _header_names(header)
    rows: List[Row] = []
    for number, raw in enumerate(iterator, start=2):
        row = Row(number)
        for index, value in enumerate(raw):
            if _is_blank(value):
                continue
            if index >= len(names):
                names.append(f"Column {index + 1}")
            row[names[index]] = value
        if row:
            rows.append(row)
    return rows


def first_value(row: Row) -> Optional[Any]:
    """Value of the first non-empty column of a row."""
    for value in row.values():
        return value
    return None


class Workbook:
    """An import workbook loaded into memory.

    Example:
        workbook = Workbook.load(Path("docs/GSDTA-Test-Data-2025-26.xlsx"))
        for row in workbook.rows("Registration"):
            print(row["Student Name (First Last)"])
    """

    def __init__(self, sheets: Dict[str, List[Row]], path: Optional[Path] = None):
        self._sheets = sheets
        self.path = path

    @classmethod
    def load(cls, path: Path) -> "Workbook":
        """Read every sheet of an ``.xlsx`` file.

        Raises:
            WorkbookError: If the file is missing or is not a readable workbook.
        """
        path = Path(path)
        if not path.exists():
            raise WorkbookError(f"Workbook not found: {path}")

        try:
            wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
        except (InvalidFileException, BadZipFile, OSError, KeyError, ValueError) as e:
            raise WorkbookError(f"Could not read workbook {path}: {e}") from e

        try:
            sheets = {
                ws.title: rows_from_values(ws.iter_rows(values_only=True)) for ws in wb.worksheets
            }
        finally:
            wb.close()

        logger.info("Loaded workbook %s (%d sheets)", path.name, len(sheets))
        return cls(sheets, path)

    @property
    def sheet_names(self) -> List[str]:
        return list(self._sheets)

    def has_sheet(self, name: str) -> bool:
        return name in self._sheets

    def rows(self, name: str) -> List[Row]:
        """Rows of a sheet.

        Raises:
            WorkbookError: If the workbook has no such sheet.
        """
        if name not in self._sheets:
            raise WorkbookError(f"Workbook has no sheet named {name!r}")
        return self._sheets[name]

    def roster_sheets(self) -> List[str]:
        """Every sheet that is not one of the fixed Registration/Teacher/Books sheets."""
        return [name for name in self._sheets if name not in FIXED_SHEETS]
