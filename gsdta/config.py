"""Configuration for the GSDTA data import."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

PROJECT_ROOT = Path(__file__).parent.parent
DOCS_DIR = PROJECT_ROOT / "docs"

PROD_WORKBOOK = DOCS_DIR / "GSDTA Student and Teacher 2025-26.xlsx"
TEST_WORKBOOK = DOCS_DIR / "GSDTA-Test-Data-2025-26.xlsx"

DEFAULT_PROJECT_ID = "demo-gsdta"
DEFAULT_FIRESTORE_EMULATOR = "localhost:8889"
DEFAULT_AUTH_EMULATOR = "localhost:9099"
DEFAULT_PASSWORD = "Gsdta2025!"
DEFAULT_ACADEMIC_YEAR = "2025-2026"

BACKENDS = ("firestore", "sqlite")


@dataclass
class ImportSelection:
    """Which entity importers to run."""

    students: bool = True
    teachers: bool = True
    textbooks: bool = True
    classes: bool = True
    volunteers: bool = True

    @classmethod
    def from_flags(
        cls,
        students: bool = False,
        teachers: bool = False,
        textbooks: bool = False,
        classes: bool = False,
        volunteers: bool = False,
        all_: bool = False,
    ) -> "ImportSelection":
        """Build a selection from CLI flags. No entity flag means everything."""
        if all_ or not any((students, teachers, textbooks, classes, volunteers)):
            return cls()
        return cls(
            students=students,
            teachers=teachers,
            textbooks=textbooks,
            classes=classes,
            volunteers=volunteers,
        )

    def enabled(self) -> list[str]:
        """Names of the enabled importers, in run order."""
        order = ("students", "teachers", "textbooks", "volunteers", "classes")
        return [name for name in order if getattr(self, name)]


@dataclass
class ImportConfig:
    """Everything an import run needs, built once at startup.

    Importers receive this object explicitly; nothing reads process
    arguments or module-level flags.
    """

    workbook_path: Path
    project_id: str = DEFAULT_PROJECT_ID
    backend: str = "firestore"
    database_path: Optional[Path] = None
    use_emulator: bool = True
    firestore_emulator_host: Optional[str] = None
    auth_emulator_host: Optional[str] = None
    dry_run: bool = False
    selection: ImportSelection = field(default_factory=ImportSelection)
    default_password: str = DEFAULT_PASSWORD
    academic_year: str = DEFAULT_ACADEMIC_YEAR
    super_admin_email: Optional[str] = None
    super_admin_name: Optional[str] = None

    @classmethod
    def from_env(
        cls,
        dry_run: bool = False,
        use_test_data: bool = False,
        selection: Optional[ImportSelection] = None,
        workbook_path: Optional[Path] = None,
        backend: Optional[str] = None,
    ) -> "ImportConfig":
        """Create configuration from environment variables and CLI options.

        Environment variables:
            FIREBASE_PROJECT_ID / GCLOUD_PROJECT: Target project (default demo-gsdta)
            FIRESTORE_EMULATOR_HOST / FIREBASE_AUTH_EMULATOR_HOST: Emulator hosts
            IMPORT_BACKEND: firestore or sqlite
            IMPORT_WORKBOOK: Workbook path override
            DATABASE_PATH: Local SQLite document store (sqlite backend)
            IMPORT_DEFAULT_PASSWORD: Password for pre-created accounts
            ACADEMIC_YEAR: Academic year stamped on created documents
            SUPER_ADMIN_EMAIL / SUPER_ADMIN_NAME: Admin account to ensure
        """
        project_id = (
            os.environ.get("FIREBASE_PROJECT_ID")
            or os.environ.get("GCLOUD_PROJECT")
            or DEFAULT_PROJECT_ID
        )

        # Only use the emulators for demo-* projects or when a host is set explicitly
        firestore_host = os.environ.get("FIRESTORE_EMULATOR_HOST")
        use_emulator = project_id.startswith("demo-") or bool(firestore_host)

        backend = (backend or os.environ.get("IMPORT_BACKEND", "firestore")).lower()
        if backend not in BACKENDS:
            raise ValueError(f"Unknown backend {backend!r}; expected one of {', '.join(BACKENDS)}")

        if workbook_path is None:
            override = os.environ.get("IMPORT_WORKBOOK")
            if override:
                workbook_path = Path(override)
            else:
                workbook_path = TEST_WORKBOOK if use_test_data else PROD_WORKBOOK

        database_path = Path(os.environ.get("DATABASE_PATH", str(PROJECT_ROOT / "gsdta.db")))

        return cls(
            workbook_path=Path(workbook_path),
            project_id=project_id,
            backend=backend,
            database_path=database_path,
            use_emulator=use_emulator,
            firestore_emulator_host=firestore_host or (DEFAULT_FIRESTORE_EMULATOR if use_emulator else None),
            auth_emulator_host=os.environ.get("FIREBASE_AUTH_EMULATOR_HOST")
            or (DEFAULT_AUTH_EMULATOR if use_emulator else None),
            dry_run=dry_run,
            selection=selection or ImportSelection(),
            default_password=os.environ.get("IMPORT_DEFAULT_PASSWORD", DEFAULT_PASSWORD),
            academic_year=os.environ.get("ACADEMIC_YEAR", DEFAULT_ACADEMIC_YEAR),
            super_admin_email=os.environ.get("SUPER_ADMIN_EMAIL") or None,
            super_admin_name=os.environ.get("SUPER_ADMIN_NAME") or None,
        )

    @property
    def target_label(self) -> str:
        """Human-readable description of where writes go."""
        if self.backend == "sqlite":
            return f"LOCAL SQLITE ({self.database_path})"
        if self.use_emulator:
            return f"EMULATOR ({self.firestore_emulator_host})"
        return "PRODUCTION FIRESTORE"

    @property
    def is_production(self) -> bool:
        return self.backend == "firestore" and not self.use_emulator

    def apply_emulator_env(self) -> None:
        """Export emulator hosts so firebase-admin connects to them.

        Must run before the Firebase app is initialised.
        """
        if self.backend != "firestore" or not self.use_emulator:
            return
        if self.firestore_emulator_host:
            os.environ.setdefault("FIRESTORE_EMULATOR_HOST", self.firestore_emulator_host)
        if self.auth_emulator_host:
            os.environ.setdefault("FIREBASE_AUTH_EMULATOR_HOST", self.auth_emulator_host)
