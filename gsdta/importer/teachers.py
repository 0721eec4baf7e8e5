"""Teacher import from the Teacher sheet.

Each Teacher-sheet row is one class: a main teacher (name and email) and
an optional free-text assistant column. Assistants listed without an email
cannot be given an account; they are tracked as unidentified teachers
with a ``pending-<name>`` document until someone supplies an address.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from gsdta.database.models import ClassAssignment, ClassTeacher, Teacher, TeacherRole
from gsdta.database.store import Document
from gsdta.logutils import get_logger, with_context

from .accounts import ensure_account
from .base import ImportSession, log_dry_run
from .normalize import (
    StaffName,
    cell_text,
    lookup_grade,
    normalize_email,
    parse_full_name,
    parse_teacher_info,
    slugify,
)
from .report import ImportReport, ImportResult
from .workbook import TEACHER_SHEET, Row, Workbook

logger = get_logger(__name__)

COL_MAIN_TEACHER = "Main Teacher"
COL_EMAIL = "Email address"
COL_GRADE = "School Grade"
COL_SECTION = "Section"
COL_ROOM = "Room"
COL_ASSISTANT = "Asst. Teacher"
ASSISTANT_COLUMNS = ("Asst. Teacher", "Asst. Teacher.1")

DEFAULT_SECTION = "A"


def pending_teacher_id(name: str) -> str:
    return f"pending-{slugify(name)}"


@dataclass(frozen=True)
class IdentifiedTeacher:
    """A teacher known by email; gets an account."""

    email: str
    name: str

    @property
    def key(self) -> str:
        return self.email


@dataclass(frozen=True)
class UnidentifiedTeacher:
    """A teacher known only by name; no account is created."""

    name: str

    @property
    def key(self) -> str:
        return f"name:{slugify(self.name)}"

    @property
    def pending_id(self) -> str:
        return pending_teacher_id(self.name)


TeacherIdentity = Union[IdentifiedTeacher, UnidentifiedTeacher]


@dataclass
class TeacherEntry:
    identity: TeacherIdentity
    first_name: str
    last_name: str
    display_name: str
    class_assignments: List[ClassAssignment] = field(default_factory=list)
    teacher_id: Optional[str] = None

    @property
    def email(self) -> Optional[str]:
        if isinstance(self.identity, IdentifiedTeacher):
            return self.identity.email
        return None

    def assign(self, grade_id: Optional[str], section: str, role: TeacherRole) -> None:
        if grade_id:
            self.class_assignments.append(
                ClassAssignment(grade_id=grade_id, section=section, role=role)
            )


class TeacherIndex:
    """Teachers seen in a run, looked up by email or by name.

    The teacher import builds the index and hands it to the class import,
    which uses it to fill in each class's teacher list.
    """

    def __init__(self, entries: Iterable[TeacherEntry] = ()):
        self._entries: Dict[str, TeacherEntry] = {}
        self._by_name: Dict[str, TeacherEntry] = {}
        for entry in entries:
            self.add(entry)

    def add(self, entry: TeacherEntry) -> TeacherEntry:
        self._entries[entry.identity.key] = entry
        self._by_name.setdefault(slugify(entry.display_name), entry)
        return entry

    def get(self, identity: TeacherIdentity) -> Optional[TeacherEntry]:
        return self._entries.get(identity.key)

    def find(self, email: Optional[str] = None, name: Optional[str] = None) -> Optional[TeacherEntry]:
        """Find a teacher by email, falling back to an exact (slugified) name match."""
        if email:
            entry = self._entries.get(email.lower())
            if entry is not None:
                return entry
        if name:
            return self._by_name.get(slugify(name))
        return None

    def resolve(self, name: str, email: Optional[str], role: TeacherRole) -> ClassTeacher:
        """Class-teacher record for a named teacher.

        Teachers without a stored document get a ``pending-<name>`` ID.
        """
        entry = self.find(email=email, name=None if email else name)
        teacher_id = entry.teacher_id if entry and entry.teacher_id else pending_teacher_id(name)
        return ClassTeacher(
            teacher_id=teacher_id,
            teacher_name=entry.display_name if entry else name,
            teacher_email=(entry.email if entry else None) or email,
            role=role,
        )

    def __iter__(self) -> Iterator[TeacherEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def from_documents(cls, documents: Iterable[Document]) -> "TeacherIndex":
        """Rebuild an index from stored teacher documents."""
        index = cls()
        for doc in documents:
            first_name = doc.get("firstName") or ""
            last_name = doc.get("lastName") or ""
            name = f"{first_name} {last_name}".strip()
            email = doc.get("email")
            identity: TeacherIdentity = (
                IdentifiedTeacher(email=email.lower(), name=name) if email else UnidentifiedTeacher(name)
            )
            index.add(
                TeacherEntry(
                    identity=identity,
                    first_name=first_name,
                    last_name=last_name,
                    display_name=name,
                    teacher_id=doc.id,
                )
            )
        return index


def row_grade(row: Row) -> Tuple[Optional[str], Optional[str]]:
    """The (label, canonical grade ID) of a Teacher-sheet row."""
    label = cell_text(row.get(COL_GRADE))
    return label, lookup_grade(label)


def row_section(row: Row) -> str:
    return cell_text(row.get(COL_SECTION)) or DEFAULT_SECTION


def _entry_for(index: TeacherIndex, identity: TeacherIdentity, name: str) -> TeacherEntry:
    entry = index.get(identity)
    if entry is None:
        first_name, last_name = parse_full_name(name)
        entry = index.add(
            TeacherEntry(
                identity=identity,
                first_name=first_name,
                last_name=last_name,
                display_name=name,
            )
        )
    return entry


def collect_teachers(rows: Iterable[Row], report: Optional[ImportReport] = None) -> TeacherIndex:
    """Build the teacher index from Teacher-sheet rows without touching storage.

    Main teachers are keyed by lower-cased email. Assistants are resolved
    after every main teacher is known, so an assistant listed by name only
    matches a main teacher of the same name before being left unidentified.
    ``(HV)`` entries are volunteers and are ignored here.
    """
    index = TeacherIndex()
    assistants: List[Tuple[StaffName, Optional[str], str]] = []

    for row in rows:
        label, grade_id = row_grade(row)
        if label and not grade_id and report is not None:
            report.record_unmapped_grade("teacher", row.number, label)
        section = row_section(row)

        main_name = cell_text(row.get(COL_MAIN_TEACHER))
        main_email = normalize_email(row.get(COL_EMAIL))
        if main_name:
            identity: TeacherIdentity = (
                IdentifiedTeacher(email=main_email, name=main_name)
                if main_email
                else UnidentifiedTeacher(main_name)
            )
            _entry_for(index, identity, main_name).assign(grade_id, section, "primary")
        elif main_email:
            logger.warning("Teacher row %d has an email but no teacher name, skipping", row.number)

        for assistant in parse_teacher_info(row.get(COL_ASSISTANT)).teachers:
            assistants.append((assistant, grade_id, section))

    for assistant, grade_id, section in assistants:
        name = assistant.full_name
        entry = index.find(email=assistant.email, name=None if assistant.email else name)
        if entry is None:
            identity = (
                IdentifiedTeacher(email=assistant.email, name=name)
                if assistant.email
                else UnidentifiedTeacher(name)
            )
            entry = _entry_for(index, identity, name)
        entry.assign(grade_id, section, "assistant")

    return index


def _save_identified(session: ImportSession, entry: TeacherEntry) -> None:
    email = entry.email
    if session.dry_run:
        existing = session.identity.get_user_by_email(email)
        if existing is not None:
            entry.teacher_id = existing.uid
        log_dry_run(logger, "create teacher: %s (%s)", entry.display_name, email)
        return

    account = ensure_account(session, email, entry.display_name)
    uid = account.uid
    session.repo.add_user_role(uid, email, entry.display_name, "teacher")
    session.repo.upsert_teacher(
        uid,
        Teacher(
            user_id=uid,
            first_name=entry.first_name,
            last_name=entry.last_name,
            email=email,
            status="active",
            class_assignments=entry.class_assignments,
            academic_year=session.academic_year,
        ),
    )
    entry.teacher_id = uid
    logger.info(
        "Saved teacher: %s (%s) - %d classes",
        entry.display_name,
        email,
        len(entry.class_assignments),
    )


def _save_unidentified(session: ImportSession, entry: TeacherEntry) -> None:
    teacher_id = entry.identity.pending_id
    if session.dry_run:
        log_dry_run(logger, "create pending teacher: %s (%s)", entry.display_name, teacher_id)
        return

    session.repo.upsert_teacher(
        teacher_id,
        Teacher(
            first_name=entry.first_name,
            last_name=entry.last_name,
            email=None,
            status="pending",
            class_assignments=entry.class_assignments,
            academic_year=session.academic_year,
        ),
    )
    entry.teacher_id = teacher_id
    logger.info("Saved pending teacher without email: %s (%s)", entry.display_name, teacher_id)


def import_teachers(session: ImportSession, workbook: Workbook) -> Tuple[ImportResult, TeacherIndex]:
    """Create teacher accounts and teacher documents.

    Returns:
        The tally and the teacher index for the class import.
    """
    result = ImportResult()

    with with_context(operation="import_teachers", sheet=TEACHER_SHEET):
        if not workbook.has_sheet(TEACHER_SHEET):
            logger.error("Teacher sheet not found")
            return result, TeacherIndex()

        rows = workbook.rows(TEACHER_SHEET)
        logger.info("Found %d class records with teacher info", len(rows))

        index = collect_teachers(rows, session.report)
        logger.info("Found %d unique teachers", len(index))

        for entry in index:
            try:
                if isinstance(entry.identity, IdentifiedTeacher):
                    _save_identified(session, entry)
                else:
                    _save_unidentified(session, entry)
                result.imported += 1
            except Exception as e:
                session.report.record_row_error(f"teacher {entry.display_name}", None, e)
                result.errors += 1

    return result, index
