"""Class creation and roster assignment.

Runs in three steps:

1. One class per Teacher-sheet row, with its teacher list resolved
   through the teacher index.
2. Every other non-fixed sheet is a grade roster. Students listed there
   are looked up by name and placed in that grade's Section A class,
   which is created if no such class exists yet.
3. ``enrolled`` is recounted from stored students for every class the
   run touched, including classes a roster student moved out of, and
   written in one batch.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from gsdta.database.models import Grade, SchoolClass
from gsdta.logutils import get_logger, with_context

from .base import ImportSession, log_dry_run
from .normalize import (
    GRADE_CATALOG,
    cell_text,
    grade_display_name,
    normalize_email,
    parse_full_name,
    parse_teacher_info,
    resolve_sheet_grade,
)
from .report import ImportResult
from .teachers import (
    COL_ASSISTANT,
    COL_EMAIL,
    COL_MAIN_TEACHER,
    COL_ROOM,
    TeacherIndex,
    row_grade,
    row_section,
)
from .workbook import TEACHER_SHEET, Row, Workbook, first_value

logger = get_logger(__name__)

ROSTER_CAPACITY = 30
ROSTER_SECTION = "A"

# First-column values that are header or caption rows, not students
ROSTER_NON_STUDENT_MARKERS = ("Teacher", "Student Name", "Section")


def class_key(grade_id: str, section: str) -> str:
    return f"{grade_id}-{section}".lower()


def class_name(grade_id: str, section: str, grade_label: Optional[str] = None) -> str:
    return f"{grade_display_name(grade_id, grade_label)} Section {section}"


@dataclass
class ClassRegistry:
    """Classes created or reused during this run, by ``<grade>-<section>`` key."""

    ids: Dict[str, str] = field(default_factory=dict)
    names: Dict[str, str] = field(default_factory=dict)

    def register(self, key: str, class_id: str, name: str) -> None:
        self.ids[key] = class_id
        self.names[class_id] = name

    def for_grade(self, grade_id: str) -> Optional[str]:
        """The grade's Section A class, else any section of that grade."""
        class_id = self.ids.get(class_key(grade_id, ROSTER_SECTION))
        if class_id:
            return class_id
        prefix = f"{grade_id}-"
        for key, other_id in self.ids.items():
            if key.startswith(prefix):
                return other_id
        return None

    def add_vacated(self, class_id: str, name: str) -> None:
        """Track a stored class a roster student moved out of, so it is recounted."""
        self.names.setdefault(class_id, name)

    def class_ids(self) -> List[str]:
        return list(self.names)


def ensure_grades(session: ImportSession) -> int:
    """Upsert the fixed grade catalog so classes can reference it."""
    with with_context(operation="ensure_grades"):
        for order, (grade_id, name, display_name) in enumerate(GRADE_CATALOG, start=1):
            if session.dry_run:
                log_dry_run(logger, "create grade: %s - %s", grade_id, display_name)
                continue
            session.repo.upsert_grade(
                Grade(id=grade_id, name=name, display_name=display_name, display_order=order)
            )
            logger.debug("Created/updated grade: %s - %s", grade_id, display_name)
    return len(GRADE_CATALOG)


def is_student_name(value: Optional[str]) -> bool:
    if not value:
        return False
    return not any(marker in value for marker in ROSTER_NON_STUDENT_MARKERS)


def _build_class(session: ImportSession, row: Row, index: TeacherIndex, grade_id: str, label: str) -> SchoolClass:
    section = row_section(row)
    teachers = []

    main_name = cell_text(row.get(COL_MAIN_TEACHER))
    if main_name:
        teachers.append(index.resolve(main_name, normalize_email(row.get(COL_EMAIL)), "primary"))

    for assistant in parse_teacher_info(row.get(COL_ASSISTANT)).teachers:
        teachers.append(index.resolve(assistant.full_name, assistant.email, "assistant"))

    return SchoolClass(
        name=class_name(grade_id, section, label),
        grade_id=grade_id,
        grade_name=grade_display_name(grade_id, label),
        section=section,
        room=cell_text(row.get(COL_ROOM)),
        teachers=teachers,
        academic_year=session.academic_year,
    )


def _save_class(session: ImportSession, registry: ClassRegistry, school_class: SchoolClass) -> str:
    """Create the class, or refresh the stored class with the same grade, section and year."""
    key = class_key(school_class.grade_id, school_class.section)
    existing = session.repo.find_class(
        school_class.grade_id, school_class.section, session.academic_year
    )

    if session.dry_run:
        action = "update class" if existing else "create class"
        log_dry_run(logger, "%s: %s", action, school_class.name)
        class_id = existing.id if existing else f"dry-run-{key}"
    elif existing is not None:
        class_id = existing.id
        session.repo.refresh_class(class_id, school_class)
        logger.info("Updated class: %s (%s)", school_class.name, class_id)
    else:
        class_id = session.repo.add_class(school_class)
        logger.info("Created class: %s (%s)", school_class.name, class_id)

    registry.register(key, class_id, school_class.name)
    return class_id


def create_classes_from_teacher_sheet(
    session: ImportSession, rows: List[Row], index: TeacherIndex, registry: ClassRegistry, result: ImportResult
) -> None:
    for row in rows:
        with with_context(row=row.number):
            try:
                label, grade_id = row_grade(row)
                if not label:
                    result.skipped += 1
                    continue
                if not grade_id:
                    session.report.record_unmapped_grade("class", row.number, label)
                    result.skipped += 1
                    continue

                _save_class(session, registry, _build_class(session, row, index, grade_id, label))
                result.imported += 1
            except Exception as e:
                session.report.record_row_error("class", row.number, e)
                result.errors += 1


def _roster_class(session: ImportSession, registry: ClassRegistry, grade_id: str, result: ImportResult) -> str:
    """Class that a grade's roster fills, creating Section A if the grade has none."""
    class_id = registry.for_grade(grade_id)
    if class_id:
        return class_id

    stored = session.repo.find_class(grade_id, ROSTER_SECTION, session.academic_year)
    if stored is not None:
        registry.register(class_key(grade_id, ROSTER_SECTION), stored.id, stored.get("name"))
        return stored.id

    school_class = SchoolClass(
        name=class_name(grade_id, ROSTER_SECTION),
        grade_id=grade_id,
        grade_name=grade_display_name(grade_id),
        section=ROSTER_SECTION,
        capacity=ROSTER_CAPACITY,
        teachers=[],
        academic_year=session.academic_year,
    )
    key = class_key(grade_id, ROSTER_SECTION)
    if session.dry_run:
        log_dry_run(logger, "create missing class: %s", school_class.name)
        class_id = f"dry-run-{key}"
    else:
        class_id = session.repo.add_class(school_class)
        logger.info("Created missing class: %s (%s)", school_class.name, class_id)

    registry.register(key, class_id, school_class.name)
    result.imported += 1
    return class_id


def _track_vacated(session: ImportSession, registry: ClassRegistry, class_id: str) -> None:
    if class_id in registry.names:
        return
    stored = session.repo.get_class(class_id)
    if stored is None:
        logger.warning("Student referenced missing class %s", class_id)
        return
    registry.add_vacated(class_id, stored.get("name") or class_id)


def assign_roster_students(
    session: ImportSession, workbook: Workbook, registry: ClassRegistry, result: ImportResult
) -> Counter:
    """Place roster students into classes.

    Returns:
        Students assigned per class ID during this pass.
    """
    assigned: Counter = Counter()
    logger.info("Assigning students to classes from rosters...")

    for sheet in workbook.roster_sheets():
        rows = workbook.rows(sheet)
        if not rows:
            continue

        with with_context(sheet=sheet):
            grade_id = resolve_sheet_grade(sheet)
            if not grade_id:
                session.report.record_unresolved_sheet(sheet)
                continue

            logger.info("Processing roster: %s (%d rows)", sheet, len(rows))
            class_id = _roster_class(session, registry, grade_id, result)
            name = registry.names.get(class_id)

            for row in rows:
                with with_context(row=row.number):
                    try:
                        student_name = cell_text(first_value(row))
                        if not is_student_name(student_name):
                            continue

                        if session.dry_run:
                            log_dry_run(logger, "assign %s to %s", student_name, grade_id)
                            assigned[class_id] += 1
                            continue

                        first_name, last_name = parse_full_name(student_name)
                        student = session.repo.find_student_by_name(first_name, last_name)
                        if student is None:
                            session.report.record_student_not_found(sheet, student_name)
                            continue

                        previous = student.get("classId")
                        session.repo.assign_student_to_class(student.id, class_id, name, grade_id)
                        assigned[class_id] += 1
                        if previous and previous != class_id:
                            _track_vacated(session, registry, previous)
                    except Exception as e:
                        session.report.record_row_error(f"roster {sheet}", row.number, e)
                        result.errors += 1

    return assigned


def reconcile_enrollment(session: ImportSession, registry: ClassRegistry, assigned: Counter) -> Dict[str, int]:
    """Write ``enrolled`` for every class touched by this run.

    The value is the number of stored students whose ``classId`` is the
    class, which overwrites any earlier count (zero included).
    """
    class_ids = registry.class_ids()
    if session.dry_run:
        log_dry_run(logger, "update enrollment counts for %d classes", len(class_ids))
        return {class_id: assigned[class_id] for class_id in class_ids}

    counts = {class_id: session.repo.count_students_in_class(class_id) for class_id in class_ids}
    session.repo.set_enrollment_counts(counts)

    for class_id, count in counts.items():
        if count != assigned[class_id]:
            logger.info(
                "%s: %d students (%d assigned this run)",
                registry.names[class_id],
                count,
                assigned[class_id],
            )
        else:
            logger.info("Updated %s: %d students", registry.names[class_id], count)
    return counts


def import_classes(
    session: ImportSession, workbook: Workbook, teacher_index: Optional[TeacherIndex] = None
) -> ImportResult:
    """Create classes, assign roster students and reconcile enrollment.

    Args:
        session: Current import session.
        workbook: Loaded import workbook.
        teacher_index: Index from ``import_teachers`` in the same run. When
            omitted, it is rebuilt from stored teacher documents.
    """
    result = ImportResult(students_assigned=0)

    with with_context(operation="import_classes"):
        ensure_grades(session)

        if not workbook.has_sheet(TEACHER_SHEET):
            logger.error("Teacher sheet not found")
            return result

        if teacher_index is None:
            teacher_index = TeacherIndex.from_documents(session.repo.get_teachers())
            logger.info("Loaded %d teachers from storage", len(teacher_index))

        registry = ClassRegistry()
        rows = workbook.rows(TEACHER_SHEET)
        with with_context(sheet=TEACHER_SHEET):
            logger.info("Found %d class records in Teacher sheet", len(rows))
            create_classes_from_teacher_sheet(session, rows, teacher_index, registry, result)

        assigned = assign_roster_students(session, workbook, registry, result)
        result.students_assigned = sum(assigned.values())

        reconcile_enrollment(session, registry, assigned)

        logger.info("Classes created or updated: %d", result.imported)
        logger.info("Students assigned to classes: %d", result.students_assigned)

    return result
