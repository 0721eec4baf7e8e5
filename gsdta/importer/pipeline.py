"""Top-level import run."""

from typing import Optional

from gsdta.config import ImportConfig
from gsdta.database.local import SQLiteDocumentStore, SQLiteIdentityProvider
from gsdta.database.repository import Repository
from gsdta.database.store import DocumentStore, IdentityProvider
from gsdta.logutils import get_logger, new_run_id, with_context

from .accounts import ensure_super_admin
from .base import ImportSession
from .classes import import_classes
from .report import ImportSummary
from .students import import_students
from .teachers import TeacherIndex, import_teachers
from .textbooks import import_textbooks
from .volunteers import import_volunteers
from .workbook import Workbook

logger = get_logger(__name__)


def _firebase_app(config: ImportConfig):
    # firebase-admin reads the emulator hosts from the environment at init time
    config.apply_emulator_env()
    from gsdta.database.firestore import get_firebase_app

    return get_firebase_app(config.project_id)


def open_store(config: ImportConfig) -> DocumentStore:
    """Create the document store for ``config.backend``."""
    if config.backend == "sqlite":
        return SQLiteDocumentStore(config.database_path)

    from gsdta.database.firestore import FirestoreDocumentStore

    return FirestoreDocumentStore(_firebase_app(config))


def open_identity(config: ImportConfig) -> IdentityProvider:
    """Create the identity provider for ``config.backend``."""
    if config.backend == "sqlite":
        return SQLiteIdentityProvider(config.database_path)

    from gsdta.database.firestore import FirebaseIdentityProvider

    return FirebaseIdentityProvider(_firebase_app(config))


def _log_banner(config: ImportConfig) -> None:
    if config.dry_run:
        logger.info("*** DRY RUN MODE - No data will be written ***")
    logger.info("Project ID: %s", config.project_id)
    logger.info("Target: %s", config.target_label)
    if config.is_production:
        logger.warning("Writing to PRODUCTION Firestore!")
    logger.info("Academic Year: %s", config.academic_year)
    logger.info("Import options: %s", ", ".join(config.selection.enabled()))


def _log_summary(summary: ImportSummary) -> None:
    logger.info("IMPORT SUMMARY")
    for name, result in summary.results.items():
        logger.info(
            "%s: imported=%d skipped=%d errors=%d",
            name.upper(),
            result.imported,
            result.skipped,
            result.errors,
        )
    if summary.dry_run:
        logger.info("*** DRY RUN COMPLETE - No data was written ***")
    else:
        logger.info("Import complete!")


def run_import(
    config: ImportConfig,
    store: Optional[DocumentStore] = None,
    identity: Optional[IdentityProvider] = None,
) -> ImportSummary:
    """Run the selected importers against one workbook.

    The super admin is ensured first, then students, teachers, textbooks,
    volunteers and classes run in that order. The teacher index built by
    the teacher import is passed straight to the class import.

    Args:
        config: Run configuration.
        store: Document store to use instead of the configured backend.
        identity: Identity provider to use instead of the configured backend.

    Returns:
        Per-entity tallies and the problem report.

    Raises:
        WorkbookError: If the workbook cannot be read.
        BackendError: If the backend cannot be initialised.
    """
    run_id = new_run_id()
    owns_store = store is None
    if store is None:
        store = open_store(config)
    if identity is None:
        identity = open_identity(config)

    session = ImportSession(config=config, repo=Repository(store), identity=identity)
    summary = ImportSummary(run_id=run_id, dry_run=config.dry_run, report=session.report)
    selection = config.selection

    with with_context(run_id=run_id, operation="import", dry_run=config.dry_run):
        try:
            _log_banner(config)
            summary.super_admin = ensure_super_admin(session)

            workbook = Workbook.load(config.workbook_path)
            logger.info("Found sheets: %s", ", ".join(workbook.sheet_names))

            teacher_index: Optional[TeacherIndex] = None
            if selection.students:
                summary.results["students"] = import_students(session, workbook)
            if selection.teachers:
                summary.results["teachers"], teacher_index = import_teachers(session, workbook)
            if selection.textbooks:
                summary.results["textbooks"] = import_textbooks(session, workbook)
            if selection.volunteers:
                summary.results["volunteers"] = import_volunteers(session, workbook)
            if selection.classes:
                summary.results["classes"] = import_classes(session, workbook, teacher_index)

            _log_summary(summary)
        finally:
            if owns_store:
                store.close()

    return summary
