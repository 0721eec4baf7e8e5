"""Student import from the Registration sheet."""

from typing import Dict, Optional, Tuple

from gsdta.database.models import Address, Contacts, ParentContact, Student
from gsdta.logutils import get_logger, with_context

from .accounts import create_parent_accounts
from .base import ImportSession, log_dry_run
from .normalize import (
    cell_text,
    map_enrolling_grade,
    normalize_email,
    normalize_phone,
    parse_date_to_iso,
    parse_full_name,
    parse_gender,
)
from .report import ImportReport, ImportResult
from .workbook import REGISTRATION_SHEET, Row, Workbook

logger = get_logger(__name__)

# Registration columns; some headers carry a trailing space in the sheet
COL_NAME = "Student Name (First Last)"
COL_DOB = "DOB"
COL_GENDER = "Gender"
COL_SCHOOL = "Current Public School Name"
COL_DISTRICT = "Your School District "
COL_PUBLIC_GRADE = "Grade in Public (2025-26)"
COL_PRIOR_LEVEL = "Last year grade in Tamil School"
COL_ENROLLING_GRADE = "Enrolling Grade 2025-26"
COL_MOTHER_NAME = "Mother's Name (First Last)"
COL_MOTHER_EMAIL = "Mother's email"
COL_MOTHER_PHONE = "Mother's Mobile "
COL_MOTHER_EMPLOYER = "Mother's Employer"
COL_FATHER_NAME = "Father's Name (First Last)"
COL_FATHER_EMAIL = "Father's email"
COL_FATHER_PHONE = "Father's Mobile"
COL_FATHER_EMPLOYER = "Father's Employer"
COL_STREET = "Home Address (Street name and Unit)"
COL_CITY = "City"
COL_ZIP = "Zip Code"


def parse_registration_row(row: Row, report: Optional[ImportReport] = None) -> Optional[Student]:
    """Build a Student from one Registration row.

    Status is always ``pending`` and photo consent always False; neither
    is read from the sheet.

    Returns:
        The student, or None when the row has no student name.
    """
    full_name = cell_text(row.get(COL_NAME))
    if not full_name:
        return None

    first_name, last_name = parse_full_name(full_name)

    grade_label = cell_text(row.get(COL_ENROLLING_GRADE))
    enrolling_grade = map_enrolling_grade(grade_label)
    if grade_label and not enrolling_grade and report is not None:
        report.record_unmapped_grade("student", row.number, grade_label)

    mother_email = normalize_email(row.get(COL_MOTHER_EMAIL))
    father_email = normalize_email(row.get(COL_FATHER_EMAIL))

    contacts = Contacts(
        mother=ParentContact(
            name=cell_text(row.get(COL_MOTHER_NAME)),
            email=mother_email,
            phone=normalize_phone(row.get(COL_MOTHER_PHONE)),
            employer=cell_text(row.get(COL_MOTHER_EMPLOYER)),
        ),
        father=ParentContact(
            name=cell_text(row.get(COL_FATHER_NAME)),
            email=father_email,
            phone=normalize_phone(row.get(COL_FATHER_PHONE)),
            employer=cell_text(row.get(COL_FATHER_EMPLOYER)),
        ),
    )

    return Student(
        first_name=first_name,
        last_name=last_name,
        date_of_birth=parse_date_to_iso(row.get(COL_DOB)),
        gender=parse_gender(row.get(COL_GENDER)),
        school_name=cell_text(row.get(COL_SCHOOL)),
        school_district=cell_text(row.get(COL_DISTRICT)),
        grade=cell_text(row.get(COL_PUBLIC_GRADE)),
        prior_tamil_level=cell_text(row.get(COL_PRIOR_LEVEL)),
        enrolling_grade=enrolling_grade,
        contacts=contacts,
        address=Address(
            street=cell_text(row.get(COL_STREET)),
            city=cell_text(row.get(COL_CITY)),
            zip_code=cell_text(row.get(COL_ZIP)),
        ),
        parent_email=mother_email or father_email,
        status="pending",
        photo_consent=False,
    )


def primary_parent(student: Student) -> Optional[Tuple[str, str]]:
    """The (email, display name) of the parent who gets the account."""
    if not student.parent_email:
        return None
    display_name = student.contacts.mother.name or student.contacts.father.name or "Parent"
    return student.parent_email, display_name


def import_students(session: ImportSession, workbook: Workbook) -> ImportResult:
    """Import students, then create and link parent accounts.

    A student already stored with the same name and parent email is
    skipped. One failing row is counted and the rest still import.
    """
    result = ImportResult()

    with with_context(operation="import_students", sheet=REGISTRATION_SHEET):
        if not workbook.has_sheet(REGISTRATION_SHEET):
            logger.error("Registration sheet not found")
            return result

        rows = workbook.rows(REGISTRATION_SHEET)
        logger.info("Found %d student records", len(rows))

        parents: Dict[str, str] = {}

        for row in rows:
            with with_context(row=row.number):
                try:
                    student = parse_registration_row(row, session.report)
                    if student is None:
                        result.skipped += 1
                        continue

                    parent = primary_parent(student)
                    if parent and parent[0] not in parents:
                        parents[parent[0]] = parent[1]

                    existing = session.repo.find_existing_student(
                        student.first_name, student.last_name, student.parent_email
                    )
                    if existing is not None:
                        logger.info("Student already imported: %s", student.full_name)
                        result.skipped += 1
                        continue

                    if session.dry_run:
                        log_dry_run(
                            logger,
                            "import: %s (%s)",
                            student.full_name,
                            student.enrolling_grade or "no grade",
                        )
                    else:
                        session.repo.add_student(student)
                        logger.info("Imported: %s", student.full_name)

                    result.imported += 1
                except Exception as e:
                    session.report.record_row_error("student", row.number, e)
                    result.errors += 1

        create_parent_accounts(session, parents)

    return result
