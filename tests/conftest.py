"""Pytest configuration and fixtures for the GSDTA import tests."""

import logging
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Optional

import openpyxl
import pytest

from gsdta.config import ImportConfig, ImportSelection
from gsdta.database.connection import close_pool
from gsdta.database.local import SQLiteDocumentStore, SQLiteIdentityProvider
from gsdta.database.repository import Repository
from gsdta.importer.base import ImportSession
from gsdta.logutils import PACKAGE_LOGGER, BufferingHandler, clear_context

REGISTRATION_HEADERS = [
    "Student Name (First Last)",
    "DOB",
    "Gender",
    "Current Public School Name",
    "Your School District ",
    "Grade in Public (2025-26)",
    "Last year grade in Tamil School",
    "Enrolling Grade 2025-26",
    "Mother's Name (First Last)",
    "Mother's email",
    "Mother's Mobile ",
    "Mother's Employer",
    "Father's Name (First Last)",
    "Father's email",
    "Father's Mobile",
    "Father's Employer",
    "Home Address (Street name and Unit)",
    "City",
    "Zip Code",
]

TEACHER_HEADERS = [
    "School Grade",
    "Section",
    "Room",
    "Main Teacher",
    "Email address",
    "Asst. Teacher",
    "Asst. Teacher",
]

BOOKS_HEADERS = ["Grade", "Item No", "Job Name", "Page No", "No of copies"]


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (local document store)")


def _sheet_rows(headers: List[str], records: List[Dict[str, Any]]) -> List[List[Any]]:
    """Lay out dict records under ``headers``.

    A key like ``"Asst. Teacher.1"`` fills the second column with that header.
    """
    columns: List[str] = []
    seen: Dict[str, int] = {}
    for header in headers:
        if header in seen:
            seen[header] += 1
            columns.append(f"{header}.{seen[header]}")
        else:
            seen[header] = 0
            columns.append(header)
    return [[record.get(column) for column in columns] for record in records]


@pytest.fixture
def make_workbook(tmp_path: Path) -> Callable[..., Path]:
    """Build an ``.xlsx`` import workbook in ``tmp_path``.

    Usage:
        path = make_workbook(
            registration=[{"Student Name (First Last)": "Test Child"}],
            rosters={"Grade-3": [["Student Name"], ["Test Child"]]},
        )
    """

    def _make(
        registration: Optional[List[Dict[str, Any]]] = None,
        teachers: Optional[List[Dict[str, Any]]] = None,
        books: Optional[List[Dict[str, Any]]] = None,
        rosters: Optional[Dict[str, List[List[Any]]]] = None,
        name: str = "import.xlsx",
    ) -> Path:
        wb = openpyxl.Workbook()
        wb.remove(wb.active)

        for title, headers, records in (
            ("Registration", REGISTRATION_HEADERS, registration or []),
            ("Teacher", TEACHER_HEADERS, teachers or []),
            ("Books", BOOKS_HEADERS, books or []),
        ):
            ws = wb.create_sheet(title)
            ws.append(headers)
            for values in _sheet_rows(headers, records):
                ws.append(values)

        for title, rows in (rosters or {}).items():
            ws = wb.create_sheet(title)
            for values in rows:
                ws.append(values)

        path = tmp_path / name
        wb.save(path)
        return path

    return _make


@pytest.fixture
def db_path(tmp_path: Path) -> Generator[Path, None, None]:
    """Path of a throwaway local document store."""
    path = tmp_path / "gsdta_test.db"
    yield path
    close_pool(path)


@pytest.fixture
def store(db_path: Path) -> SQLiteDocumentStore:
    return SQLiteDocumentStore(db_path)


@pytest.fixture
def identity(db_path: Path) -> SQLiteIdentityProvider:
    return SQLiteIdentityProvider(db_path)


@pytest.fixture
def repo(store: SQLiteDocumentStore) -> Repository:
    return Repository(store)


@pytest.fixture
def make_config(db_path: Path) -> Callable[..., ImportConfig]:
    """ImportConfig for the local store, independent of the caller's environment."""

    def _make(workbook_path: Path = Path("unused.xlsx"), **overrides: Any) -> ImportConfig:
        values: Dict[str, Any] = {
            "workbook_path": workbook_path,
            "project_id": "demo-gsdta",
            "backend": "sqlite",
            "database_path": db_path,
            "use_emulator": False,
            "dry_run": False,
            "selection": ImportSelection(),
            "default_password": "Test-Password-1",
            "academic_year": "2025-2026",
        }
        values.update(overrides)
        return ImportConfig(**values)

    return _make


@pytest.fixture
def session(make_config, repo: Repository, identity: SQLiteIdentityProvider) -> ImportSession:
    return ImportSession(config=make_config(), repo=repo, identity=identity)


@pytest.fixture
def dry_session(make_config, repo: Repository, identity: SQLiteIdentityProvider) -> ImportSession:
    return ImportSession(config=make_config(dry_run=True), repo=repo, identity=identity)


@pytest.fixture
def log_buffer() -> Generator[BufferingHandler, None, None]:
    """Capture records sent to the ``gsdta`` logger."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    handler = BufferingHandler()
    previous_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    yield handler
    logger.removeHandler(handler)
    logger.setLevel(previous_level)


@pytest.fixture(autouse=True)
def _reset_log_context() -> Generator[None, None, None]:
    yield
    clear_context()
