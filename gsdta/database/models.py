"""Pydantic models for GSDTA school documents.

Field names are snake_case in Python and camelCase in storage, matching
the documents the web application reads.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

StudentStatus = Literal["pending", "admitted", "active", "inactive", "withdrawn"]
TeacherRole = Literal["primary", "assistant"]
TextbookType = Literal["textbook", "homework", "combined"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DocumentModel(BaseModel):
    """Base for models stored as documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self, exclude: Optional[set] = None) -> Dict[str, Any]:
        """Serialize with storage (camelCase) field names."""
        return self.model_dump(by_alias=True, exclude=exclude)


class TimestampedModel(DocumentModel):
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# ==================== GRADES ====================


class Grade(TimestampedModel):
    """Canonical grade, e.g. ``grade-3``."""

    id: str
    name: str
    display_name: str
    display_order: int
    status: str = "active"


# ==================== STUDENTS ====================


class ParentContact(DocumentModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    employer: Optional[str] = None


class Contacts(DocumentModel):
    mother: ParentContact = Field(default_factory=ParentContact)
    father: ParentContact = Field(default_factory=ParentContact)


class Address(DocumentModel):
    street: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = None


class Student(TimestampedModel):
    """Student registration document."""

    first_name: str
    last_name: str = ""
    date_of_birth: Optional[str] = None
    gender: Optional[str] = None
    school_name: Optional[str] = None
    school_district: Optional[str] = None
    grade: Optional[str] = None
    prior_tamil_level: Optional[str] = None
    enrolling_grade: Optional[str] = None
    contacts: Contacts = Field(default_factory=Contacts)
    address: Address = Field(default_factory=Address)
    parent_id: Optional[str] = None
    parent_email: Optional[str] = None
    status: StudentStatus = "pending"
    photo_consent: bool = False
    class_id: Optional[str] = None
    class_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# ==================== ACCOUNTS ====================


class UserProfile(TimestampedModel):
    """``users`` document that carries an account's roles."""

    email: str
    display_name: str
    roles: List[str] = Field(default_factory=list)
    status: str = "active"


# ==================== TEACHERS ====================


class ClassAssignment(DocumentModel):
    grade_id: str
    section: str
    role: TeacherRole


class Teacher(TimestampedModel):
    user_id: Optional[str] = None
    first_name: str
    last_name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    status: str = "active"
    class_assignments: List[ClassAssignment] = Field(default_factory=list)
    academic_year: str


# ==================== CLASSES ====================


class ClassTeacher(DocumentModel):
    teacher_id: str
    teacher_name: str
    teacher_email: Optional[str] = None
    role: TeacherRole
    assigned_at: datetime = Field(default_factory=utc_now)
    assigned_by: str = "system-import"


class SchoolClass(TimestampedModel):
    name: str
    grade_id: str
    grade_name: str
    section: str = "A"
    room: Optional[str] = None
    day: str = "Saturday"
    time: str = "10:00 AM - 12:00 PM"
    capacity: int = 25
    enrolled: int = 0
    teachers: List[ClassTeacher] = Field(default_factory=list)
    status: str = "active"
    academic_year: str


# ==================== VOLUNTEERS ====================


class Volunteer(TimestampedModel):
    first_name: str
    last_name: str = ""
    type: str = "high_school"
    status: str = "active"
    academic_year: str
    class_assignments: List[ClassAssignment] = Field(default_factory=list)


# ==================== TEXTBOOKS ====================


class Textbook(TimestampedModel):
    grade_id: str
    grade_name: str
    item_number: str
    name: str
    type: TextbookType = "combined"
    semester: Optional[str] = None
    page_count: int = 0
    copies: int = 0
    unit_cost: Optional[float] = None
    academic_year: str
    status: str = "active"

    @property
    def document_id(self) -> str:
        return f"{self.grade_id}-{self.item_number}".lower().replace(" ", "-")
