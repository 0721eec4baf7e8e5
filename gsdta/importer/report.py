"""Run tallies and the structured import report."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from gsdta.logutils import get_logger

logger = get_logger(__name__)


@dataclass
class ImportResult:
    """Tally returned by every importer.

    ``students_assigned`` is only set by the class importer.
    """

    imported: int = 0
    skipped: int = 0
    errors: int = 0
    students_assigned: Optional[int] = None

    def to_dict(self) -> Dict[str, int]:
        result = {"imported": self.imported, "skipped": self.skipped, "errors": self.errors}
        if self.students_assigned is not None:
            result["studentsAssigned"] = self.students_assigned
        return result


@dataclass
class UnmappedGrade:
    entity: str
    row: int
    label: str


@dataclass
class StudentNotFound:
    sheet: str
    name: str


@dataclass
class RowError:
    entity: str
    row: Optional[int]
    message: str


@dataclass
class ImportReport:
    """Problems found during a run, kept alongside the log output.

    Each ``record_*`` method also logs the problem, so callers only make
    one call per finding.
    """

    unmapped_grades: List[UnmappedGrade] = field(default_factory=list)
    unresolved_sheets: List[str] = field(default_factory=list)
    students_not_found: List[StudentNotFound] = field(default_factory=list)
    row_errors: List[RowError] = field(default_factory=list)

    def record_unmapped_grade(self, entity: str, row: int, label: str) -> None:
        logger.warning("Unmapped grade %r in %s row %d", label, entity, row)
        self.unmapped_grades.append(UnmappedGrade(entity, row, label))

    def record_unresolved_sheet(self, sheet: str) -> None:
        logger.warning("Could not map sheet %r to a grade, skipping", sheet)
        self.unresolved_sheets.append(sheet)

    def record_student_not_found(self, sheet: str, name: str) -> None:
        logger.warning("Student not found: %s", name)
        self.students_not_found.append(StudentNotFound(sheet, name))

    def record_row_error(self, entity: str, row: Optional[int], error: Exception) -> None:
        where = f"{entity} row {row}" if row is not None else entity
        logger.error("Error processing %s: %s", where, error, exc_info=True)
        self.row_errors.append(RowError(entity, row, str(error)))

    @property
    def is_clean(self) -> bool:
        return not (
            self.unmapped_grades
            or self.unresolved_sheets
            or self.students_not_found
            or self.row_errors
        )


@dataclass
class ImportSummary:
    """Outcome of one ``run_import`` call."""

    run_id: str
    dry_run: bool
    results: Dict[str, ImportResult] = field(default_factory=dict)
    report: ImportReport = field(default_factory=ImportReport)
    super_admin: Optional[ImportResult] = None

    @property
    def total_errors(self) -> int:
        return sum(result.errors for result in self.results.values())
