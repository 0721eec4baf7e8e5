"""Textbook import from the Books sheet."""

from typing import Optional

from gsdta.database.models import Textbook
from gsdta.logutils import get_logger, with_context

from .base import ImportSession, log_dry_run
from .normalize import (
    cell_int,
    cell_text,
    grade_display_name,
    infer_semester,
    infer_textbook_type,
    map_enrolling_grade,
)
from .report import ImportResult
from .workbook import BOOKS_SHEET, Workbook

logger = get_logger(__name__)

COL_GRADE = "Grade"
COL_ITEM = "Item No"
COL_NAME = "Job Name"
COL_PAGES = "Page No"
COL_COPIES = "No of copies"


def import_textbooks(session: ImportSession, workbook: Workbook) -> ImportResult:
    """Import textbooks.

    The Grade column is only filled on the first row of each grade block,
    so the last grade seen carries forward. Rows without an item number or
    name are spacer rows and are skipped.
    """
    result = ImportResult()

    with with_context(operation="import_textbooks", sheet=BOOKS_SHEET):
        if not workbook.has_sheet(BOOKS_SHEET):
            logger.error("Books sheet not found")
            return result

        rows = workbook.rows(BOOKS_SHEET)
        logger.info("Found %d textbook records", len(rows))

        current_grade: Optional[str] = None
        for row in rows:
            with with_context(row=row.number):
                try:
                    grade_label = cell_text(row.get(COL_GRADE))
                    if grade_label:
                        current_grade = grade_label

                    item_number = cell_text(row.get(COL_ITEM))
                    name = cell_text(row.get(COL_NAME))
                    if not item_number or not name:
                        result.skipped += 1
                        continue

                    grade_id = map_enrolling_grade(current_grade)
                    if not grade_id:
                        session.report.record_unmapped_grade(
                            "textbook", row.number, current_grade or ""
                        )
                        result.skipped += 1
                        continue

                    textbook = Textbook(
                        grade_id=grade_id,
                        grade_name=grade_display_name(grade_id, current_grade),
                        item_number=item_number,
                        name=name,
                        type=infer_textbook_type(name),
                        semester=infer_semester(name),
                        page_count=cell_int(row.get(COL_PAGES)),
                        copies=cell_int(row.get(COL_COPIES)),
                        unit_cost=None,
                        academic_year=session.academic_year,
                    )

                    if session.dry_run:
                        log_dry_run(logger, "import textbook: %s (%s)", name, grade_id)
                    else:
                        doc_id = session.repo.upsert_textbook(textbook)
                        logger.info("Imported textbook: %s (%s)", name, doc_id)

                    result.imported += 1
                except Exception as e:
                    session.report.record_row_error("textbook", row.number, e)
                    result.errors += 1

    return result
