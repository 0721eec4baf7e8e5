"""Data access layer for GSDTA school documents.

The Repository wraps a DocumentStore and knows the collection names,
document shapes and lookup rules the importer relies on. It performs
writes unconditionally; dry-run decisions are made by the importers.

Example:
    from gsdta.database.local import SQLiteDocumentStore
    from gsdta.database.repository import Repository

    repo = Repository(SQLiteDocumentStore())
    student = repo.find_student_by_name("Test", "Child")
"""

from typing import Dict, List, Optional

from .models import Grade, SchoolClass, Student, Teacher, Textbook, UserProfile, Volunteer, utc_now
from .store import Document, DocumentStore

STUDENTS = "students"
USERS = "users"
TEACHERS = "teachers"
GRADES = "grades"
CLASSES = "classes"
TEXTBOOKS = "textbooks"
VOLUNTEERS = "volunteers"


class Repository:
    """Repository for the import pipeline's collections.

    Attributes:
        store: The underlying document store.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    # ==================== STUDENTS ====================

    def add_student(self, student: Student) -> str:
        """Create a student document and return its ID."""
        return self.store.add(STUDENTS, student.to_document())

    def find_existing_student(
        self, first_name: str, last_name: str, parent_email: Optional[str]
    ) -> Optional[Document]:
        """Find a previously imported student with the same name and parent email."""
        matches = self.store.where(STUDENTS, firstName=first_name, lastName=last_name)
        for doc in matches:
            if doc.get("parentEmail") == parent_email:
                return doc
        return None

    def find_student_by_name(self, first_name: str, last_name: str) -> Optional[Document]:
        """Find a student by name.

        Tries an exact first/last match, then falls back to students with the
        same first name whose last name matches case-insensitively.
        """
        exact = self.store.where(STUDENTS, limit=1, firstName=first_name, lastName=last_name)
        if exact:
            return exact[0]

        wanted = (last_name or "").lower()
        for doc in self.store.where(STUDENTS, limit=5, firstName=first_name):
            if (doc.get("lastName") or "").lower() == wanted:
                return doc
        return None

    def get_students_by_parent_email(self, email: str) -> List[Document]:
        return self.store.where(STUDENTS, parentEmail=email)

    def link_students_to_parent(self, email: str, parent_id: str) -> int:
        """Set ``parentId`` on every student registered under ``email``.

        Returns:
            Number of students linked.
        """
        students = self.get_students_by_parent_email(email)
        batch = self.store.batch()
        for doc in students:
            batch.update(STUDENTS, doc.id, {"parentId": parent_id, "updatedAt": utc_now()})
        batch.commit()
        return len(students)

    def assign_student_to_class(
        self, student_id: str, class_id: str, class_name: str, grade_id: str
    ) -> None:
        """Place a student in a class; a student with a class is active."""
        self.store.update(
            STUDENTS,
            student_id,
            {
                "classId": class_id,
                "className": class_name,
                "enrollingGrade": grade_id,
                "status": "active",
                "updatedAt": utc_now(),
            },
        )

    def count_students_in_class(self, class_id: str) -> int:
        return len(self.store.where(STUDENTS, classId=class_id))

    # ==================== USERS ====================

    def get_user_profile(self, uid: str) -> Optional[Document]:
        return self.store.get(USERS, uid)

    def create_user_profile(self, uid: str, profile: UserProfile) -> None:
        self.store.set(USERS, uid, profile.to_document())

    def add_user_role(self, uid: str, email: str, display_name: str, role: str) -> bool:
        """Add ``role`` to a user profile, creating the profile if needed.

        Existing roles are kept.

        Returns:
            True if the profile changed.
        """
        existing = self.get_user_profile(uid)
        if existing is None:
            self.create_user_profile(
                uid, UserProfile(email=email, display_name=display_name, roles=[role])
            )
            return True

        roles = list(existing.get("roles") or [])
        if role in roles:
            return False
        roles.append(role)
        self.store.update(USERS, uid, {"roles": roles, "updatedAt": utc_now()})
        return True

    # ==================== TEACHERS ====================

    def upsert_teacher(self, teacher_id: str, teacher: Teacher) -> None:
        """Merge a teacher document keyed by account UID (or pending ID)."""
        data = teacher.to_document()
        existing = self.store.get(TEACHERS, teacher_id)
        if existing is not None:
            data.pop("createdAt", None)
        self.store.set(TEACHERS, teacher_id, data, merge=True)

    def get_teachers(self) -> List[Document]:
        return self.store.stream(TEACHERS)

    # ==================== GRADES ====================

    def upsert_grade(self, grade: Grade) -> None:
        self.store.set(GRADES, grade.id, grade.to_document(exclude={"id"}), merge=True)

    # ==================== CLASSES ====================

    def find_class(self, grade_id: str, section: str, academic_year: str) -> Optional[Document]:
        matches = self.store.where(
            CLASSES, limit=1, gradeId=grade_id, section=section, academicYear=academic_year
        )
        return matches[0] if matches else None

    def add_class(self, school_class: SchoolClass) -> str:
        return self.store.add(CLASSES, school_class.to_document())

    def refresh_class(self, class_id: str, school_class: SchoolClass) -> None:
        """Overwrite a class's imported fields, keeping its creation time and enrollment."""
        data = school_class.to_document(exclude={"created_at", "enrolled"})
        self.store.set(CLASSES, class_id, data, merge=True)

    def set_enrollment_counts(self, counts: Dict[str, int]) -> int:
        """Write ``enrolled`` for each class in one batched commit."""
        batch = self.store.batch()
        now = utc_now()
        for class_id, count in counts.items():
            batch.update(CLASSES, class_id, {"enrolled": count, "updatedAt": now})
        return batch.commit()

    def get_class(self, class_id: str) -> Optional[Document]:
        return self.store.get(CLASSES, class_id)

    # ==================== TEXTBOOKS ====================

    def upsert_textbook(self, textbook: Textbook) -> str:
        doc_id = textbook.document_id
        data = textbook.to_document()
        if self.store.get(TEXTBOOKS, doc_id) is not None:
            data.pop("createdAt", None)
        self.store.set(TEXTBOOKS, doc_id, data, merge=True)
        return doc_id

    # ==================== VOLUNTEERS ====================

    def find_volunteer(self, first_name: str, last_name: str, academic_year: str) -> Optional[Document]:
        matches = self.store.where(
            VOLUNTEERS, limit=1, firstName=first_name, lastName=last_name, academicYear=academic_year
        )
        return matches[0] if matches else None

    def add_volunteer(self, volunteer: Volunteer) -> str:
        return self.store.add(VOLUNTEERS, volunteer.to_document())
