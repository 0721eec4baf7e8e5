"""Yearly workbook import: students, parents, teachers, volunteers, textbooks and classes."""

from .base import ImportSession
from .pipeline import open_identity, open_store, run_import
from .report import ImportReport, ImportResult, ImportSummary
from .teachers import IdentifiedTeacher, TeacherIndex, UnidentifiedTeacher
from .workbook import Workbook

__all__ = [
    "IdentifiedTeacher",
    "ImportReport",
    "ImportResult",
    "ImportSession",
    "ImportSummary",
    "TeacherIndex",
    "UnidentifiedTeacher",
    "Workbook",
    "open_identity",
    "open_store",
    "run_import",
]
