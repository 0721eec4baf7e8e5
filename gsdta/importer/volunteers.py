"""High-school volunteer import.

Volunteers are the ``(HV)`` entries in the Teacher sheet's assistant
columns. They get a volunteer document but no account.
"""

from typing import Iterable, List

from gsdta.database.models import Volunteer
from gsdta.logutils import get_logger, with_context

from .base import ImportSession, log_dry_run
from .normalize import StaffName, parse_teacher_info
from .report import ImportResult
from .teachers import ASSISTANT_COLUMNS
from .workbook import TEACHER_SHEET, Row, Workbook

logger = get_logger(__name__)


def volunteer_key(name: StaffName) -> str:
    return f"{name.first_name}-{name.last_name}".lower()


def collect_volunteers(rows: Iterable[Row]) -> List[StaffName]:
    """Unique volunteers across all assistant columns, in sheet order."""
    seen = set()
    volunteers: List[StaffName] = []
    for row in rows:
        for column in ASSISTANT_COLUMNS:
            for volunteer in parse_teacher_info(row.get(column)).volunteers:
                key = volunteer_key(volunteer)
                if key in seen:
                    continue
                seen.add(key)
                volunteers.append(volunteer)
    return volunteers


def import_volunteers(session: ImportSession, workbook: Workbook) -> ImportResult:
    """Create one volunteer document per unique ``(HV)`` name.

    A volunteer already stored for the academic year under the same name
    is skipped, so re-runs do not duplicate volunteers.
    """
    result = ImportResult()

    with with_context(operation="import_volunteers", sheet=TEACHER_SHEET):
        if not workbook.has_sheet(TEACHER_SHEET):
            logger.error("Teacher sheet not found")
            return result

        volunteers = collect_volunteers(workbook.rows(TEACHER_SHEET))
        logger.info("Found %d unique volunteers", len(volunteers))

        for volunteer in volunteers:
            try:
                existing = session.repo.find_volunteer(
                    volunteer.first_name, volunteer.last_name, session.academic_year
                )
                if existing is not None:
                    logger.info("Volunteer already imported: %s", volunteer.full_name)
                    result.skipped += 1
                    continue

                if session.dry_run:
                    log_dry_run(logger, "import volunteer: %s", volunteer.full_name)
                else:
                    session.repo.add_volunteer(
                        Volunteer(
                            first_name=volunteer.first_name,
                            last_name=volunteer.last_name,
                            type="high_school",
                            academic_year=session.academic_year,
                            class_assignments=[],
                        )
                    )
                    logger.info("Imported volunteer: %s", volunteer.full_name)
                result.imported += 1
            except Exception as e:
                session.report.record_row_error(f"volunteer {volunteer.full_name}", None, e)
                result.errors += 1

    return result
