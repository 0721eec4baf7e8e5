"""Normalization of workbook values: grades, dates, names, phones, genders.

None of these functions raise on bad input. Unparseable values degrade to
None (or an empty name) so a single odd cell never aborts a row.
"""

import re
from datetime import date, datetime, timedelta
from typing import Any, NamedTuple, Optional

from gsdta.logutils import get_logger

logger = get_logger(__name__)

# Workbook label variants -> canonical grade IDs. Lookups walk this table in
# insertion order, so more specific labels must come first.
GRADE_MAPPING: dict[str, str] = {
    "Mazhalai 1": "ps-1",
    "Mazhalai-1": "ps-1",
    "Mazhalai 2": "ps-2",
    "Mazhalai-2": "ps-2",
    "KG": "kg",
    "Kindergarten": "kg",
    "Basic 1": "kg",
    "Grade 1": "grade-1",
    "Grade-1": "grade-1",
    "Basic 2": "grade-1",
    "Grade 2": "grade-2",
    "Grade-2": "grade-2",
    "Grade 3": "grade-3",
    "Grade-3": "grade-3",
    "Grade 4": "grade-4",
    "Grade-4": "grade-4",
    "Grade 5": "grade-5",
    "Grade-5": "grade-5",
    "Grade 6": "grade-6",
    "Grade-6": "grade-6",
    "Grade 7": "grade-7",
    "Grade-7": "grade-7",
    "Grade 8": "grade-8",
    "Grade-8": "grade-8",
    "PS-1": "ps-1",
    "PS-2": "ps-2",
    # Roster sheet names used in the production workbook
    "Mazhalai- 1": "ps-1",
    "Mazhalai- 2": "ps-2",
    "Basic- 1": "kg",
    "Basic- 2": "grade-1",
    "Unit-3&4": "grade-4",
    "Unit- 6&7": "grade-5",
    "Unit- 9&10": "grade-6",
    "Unit- 12&13": "grade-7",
    "Unit- 15&16": "grade-8",
}

GRADE_NAMES: dict[str, str] = {
    "ps-1": "Pre-School 1 (Mazhalai 1)",
    "ps-2": "Pre-School 2 (Mazhalai 2)",
    "kg": "Kindergarten",
    "grade-1": "Grade 1",
    "grade-2": "Grade 2",
    "grade-3": "Grade 3",
    "grade-4": "Grade 4",
    "grade-5": "Grade 5",
    "grade-6": "Grade 6",
    "grade-7": "Grade 7",
    "grade-8": "Grade 8",
}

# (id, name, display name) in display order
GRADE_CATALOG: list[tuple[str, str, str]] = [
    ("ps-1", "Pre-School 1", "Mazhalai 1"),
    ("ps-2", "Pre-School 2", "Mazhalai 2"),
    ("kg", "Kindergarten", "KG"),
    ("grade-1", "Grade 1", "Grade 1"),
    ("grade-2", "Grade 2", "Grade 2"),
    ("grade-3", "Grade 3", "Grade 3"),
    ("grade-4", "Grade 4", "Grade 4"),
    ("grade-5", "Grade 5", "Grade 5"),
    ("grade-6", "Grade 6", "Grade 6"),
    ("grade-7", "Grade 7", "Grade 7"),
    ("grade-8", "Grade 8", "Grade 8"),
]

# Spreadsheet serial dates count from 1899-12-30 because of the 1900 leap-year bug
EXCEL_EPOCH = date(1899, 12, 30)

_SERIAL_DATE = re.compile(r"^\d{5}$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_MDY_SLASH = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_MDY_DASH = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
_EMAIL = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
_HV_MARKER = re.compile(r"\s*\(HV\)\s*", re.IGNORECASE)


class FullName(NamedTuple):
    first_name: str
    last_name: str


class StaffName(NamedTuple):
    """One name from a teacher cell, with an email if the cell carried one."""

    first_name: str
    last_name: str
    email: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class TeacherInfo(NamedTuple):
    teachers: list[StaffName]
    volunteers: list[StaffName]


def cell_text(value: Any) -> Optional[str]:
    """Render a cell value as stripped text, or None if blank.

    Integral floats lose their ``.0`` so zip codes and item numbers read
    the way they look in the sheet.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    return text or None


def cell_int(value: Any, default: int = 0) -> int:
    """Parse a count column (pages, copies); blanks and junk become ``default``."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return int(value)
    text = cell_text(value)
    if not text:
        return default
    try:
        return int(float(text))
    except ValueError:
        return default


# ==================== GRADES ====================


def lookup_grade(label: Any) -> Optional[str]:
    """Exact lookup of a grade label, ignoring surrounding whitespace and case."""
    text = cell_text(label)
    if not text:
        return None
    if text in GRADE_MAPPING:
        return GRADE_MAPPING[text]
    lowered = text.lower()
    for key, grade_id in GRADE_MAPPING.items():
        if key.lower() == lowered:
            return grade_id
    return None


def map_enrolling_grade(value: Any) -> Optional[str]:
    """Map a free-text grade label to a canonical grade ID.

    Lookup order: exact match, case-insensitive key match, then substring
    containment in either direction.

    Returns:
        The canonical grade ID, or None. Callers must skip on None rather
        than pick a default.
    """
    text = cell_text(value)
    if not text:
        return None

    exact = lookup_grade(text)
    if exact:
        return exact

    lowered = text.lower()
    for key, grade_id in GRADE_MAPPING.items():
        key_lower = key.lower()
        if key_lower in lowered or lowered in key_lower:
            return grade_id
    return None


def _squash(label: str) -> str:
    return re.sub(r"[\s-]+", "", label.lower())


def resolve_sheet_grade(sheet_name: str) -> Optional[str]:
    """Work out which grade a roster sheet holds from its name.

    Exact and case-insensitive matches come first; after that labels are
    compared with whitespace and hyphens removed, so ``Grade-3``,
    ``grade 3`` and ``GRADE3`` all resolve to ``grade-3``.
    """
    exact = lookup_grade(sheet_name)
    if exact:
        return exact

    squashed = _squash(sheet_name or "")
    if not squashed:
        return None
    for key, grade_id in GRADE_MAPPING.items():
        key_squashed = _squash(key)
        if key_squashed in squashed or squashed in key_squashed:
            return grade_id
    return None


def grade_display_name(grade_id: str, fallback: Optional[str] = None) -> str:
    return GRADE_NAMES.get(grade_id) or fallback or grade_id


# ==================== DATES ====================


def parse_date_to_iso(value: Any) -> Optional[str]:
    """Parse a date cell to ``YYYY-MM-DD``.

    Accepts date/datetime values, 5-digit spreadsheet serials, ISO dates
    (a time suffix is dropped), ``M/D/YYYY`` and ``M-D-YYYY``. Anything else
    logs a warning and returns None.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        value = int(value)

    text = str(value).strip()
    if not text:
        return None

    if _SERIAL_DATE.match(text):
        return (EXCEL_EPOCH + timedelta(days=int(text))).isoformat()

    if _ISO_DATE.match(text):
        return text[:10]

    match = _MDY_SLASH.match(text) or _MDY_DASH.match(text)
    if match:
        month, day, year = match.groups()
        return f"{year}-{month.zfill(2)}-{day.zfill(2)}"

    logger.warning("Could not parse date: %s", text)
    return None


# ==================== PEOPLE ====================


def parse_full_name(value: Any) -> FullName:
    """Split a full name; the last word is the surname.

    ``"Arun Kumar Iyer"`` gives first name ``"Arun Kumar"`` and last name
    ``"Iyer"``. A single word is a first name with an empty last name.
    """
    text = cell_text(value)
    if not text:
        return FullName("", "")

    parts = text.split()
    if len(parts) == 1:
        return FullName(parts[0], "")
    return FullName(" ".join(parts[:-1]), parts[-1])


def normalize_phone(value: Any) -> Optional[str]:
    """Keep digits and a leading ``+``; None if nothing is left."""
    text = cell_text(value)
    if not text:
        return None
    digits = re.sub(r"\D", "", text)
    if not digits:
        return None
    return f"+{digits}" if text.startswith("+") else digits


def normalize_email(value: Any) -> Optional[str]:
    """Lower-case and trim an email; None if blank or not an address."""
    text = cell_text(value)
    if not text:
        return None
    email = text.lower()
    if not _EMAIL.fullmatch(email):
        logger.warning("Ignoring invalid email: %s", email)
        return None
    return email


def parse_gender(value: Any) -> Optional[str]:
    text = cell_text(value)
    if not text:
        return None
    lowered = text.lower()
    if lowered in ("boy", "male", "m"):
        return "Boy"
    if lowered in ("girl", "female", "f"):
        return "Girl"
    return "Other"


def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip()).lower()


def parse_teacher_info(value: Any) -> TeacherInfo:
    """Split a teacher cell into teachers and volunteers.

    Names are separated by commas or slashes. ``(HV)`` after a name marks a
    high-school volunteer. An email written inside an entry is picked up
    and removed from the name.
    """
    text = cell_text(value)
    if not text:
        return TeacherInfo([], [])

    teachers: list[StaffName] = []
    volunteers: list[StaffName] = []

    for part in (p.strip() for p in re.split(r"[,/]", text)):
        if not part:
            continue

        is_volunteer = bool(_HV_MARKER.search(part))
        cleaned = _HV_MARKER.sub(" ", part)

        email_match = _EMAIL.search(cleaned)
        email = email_match.group(0).lower() if email_match else None
        if email_match:
            cleaned = cleaned.replace(email_match.group(0), " ")
        cleaned = re.sub(r"[<>()\[\]]", " ", cleaned).strip()
        if not cleaned:
            continue

        first_name, last_name = parse_full_name(cleaned)
        entry = StaffName(first_name, last_name, email)
        (volunteers if is_volunteer else teachers).append(entry)

    return TeacherInfo(teachers, volunteers)


# ==================== TEXTBOOKS ====================


def infer_textbook_type(name: str) -> str:
    """Classify a book as ``textbook``, ``homework`` or ``combined`` from its name."""
    lowered = name.lower()
    is_textbook = "textbook" in lowered
    is_homework = "hw" in lowered or "homework" in lowered
    if is_textbook and not is_homework:
        return "textbook"
    if is_homework and not is_textbook:
        return "homework"
    return "combined"


def infer_semester(name: str) -> Optional[str]:
    lowered = name.lower()
    for semester in ("First", "Second", "Third"):
        if f"{semester.lower()} semester" in lowered:
            return semester
    return None
