"""End-to-end import runs against the local document store."""

import logging
from unittest.mock import patch

import pytest

from gsdta.config import ImportSelection
from gsdta.database.connection import verify_database
from gsdta.database.repository import CLASSES, GRADES, STUDENTS, TEACHERS, TEXTBOOKS, USERS, VOLUNTEERS
from gsdta.exceptions import WorkbookError
from gsdta.importer import pipeline, run_import
from gsdta.importer.base import DRY_RUN_PREFIX

pytestmark = pytest.mark.integration

REGISTRATION = [
    {
        "Student Name (First Last)": "Test Child",
        "DOB": "2015-05-01",
        "Gender": "Boy",
        "Enrolling Grade 2025-26": "Grade 3",
        "Mother's Name (First Last)": "Mom Person",
        "Mother's email": "Mom@Example.com",
        "Mother's Mobile ": "(408) 555-1234",
        "Zip Code": 95014,
    }
]

TEACHERS_SHEET = [
    {
        "School Grade": "Grade 3",
        "Section": "A",
        "Room": "B12",
        "Main Teacher": "Jane Doe",
        "Email address": "jane@example.com",
        "Asst. Teacher": "Ravi Kumar, Anika Rao (HV)",
    }
]

BOOKS = [
    {"Grade": "Grade 3", "Item No": 1, "Job Name": "Grade 3 Textbook First Semester", "Page No": 120, "No of copies": 40},
    {"Item No": 2, "Job Name": "Grade 3 HW First Semester", "Page No": 60, "No of copies": 40},
]

ROSTERS = {"Grade-3": [["Student Name"], ["Test Child"]]}


@pytest.fixture
def scenario_workbook(make_workbook):
    return make_workbook(registration=REGISTRATION, teachers=TEACHERS_SHEET, books=BOOKS, rosters=ROSTERS)


def run(make_config, store, identity, workbook, **overrides):
    return run_import(make_config(workbook, **overrides), store=store, identity=identity)


def only(store, collection):
    docs = store.stream(collection)
    assert len(docs) == 1, f"expected one {collection} document, found {len(docs)}"
    return docs[0]


def without_updated_at(data):
    return {key: value for key, value in data.items() if key != "updatedAt"}


class TestScenario:
    def test_full_import(self, make_config, store, identity, scenario_workbook):
        summary = run(make_config, store, identity, scenario_workbook)

        assert summary.results["students"].to_dict() == {"imported": 1, "skipped": 0, "errors": 0}
        assert summary.results["classes"].students_assigned == 1
        assert summary.total_errors == 0
        assert summary.report.is_clean

        mom = identity.get_user_by_email("mom@example.com")
        jane = identity.get_user_by_email("jane@example.com")
        assert mom is not None and jane is not None
        assert identity.count() == 2

        school_class = only(store, CLASSES)
        assert school_class.get("name") == "Grade 3 Section A"
        assert school_class.get("enrolled") == 1
        assert school_class.get("room") == "B12"
        assert school_class.get("capacity") == 25
        assert [(t["teacherId"], t["role"]) for t in school_class.get("teachers")] == [
            (jane.uid, "primary"),
            ("pending-ravi-kumar", "assistant"),
        ]

        student = only(store, STUDENTS)
        assert student.get("firstName") == "Test"
        assert student.get("lastName") == "Child"
        assert student.get("dateOfBirth") == "2015-05-01"
        assert student.get("parentEmail") == "mom@example.com"
        assert student.get("parentId") == mom.uid
        assert student.get("status") == "active"
        assert student.get("classId") == school_class.id
        assert student.get("className") == "Grade 3 Section A"
        assert student.get("contacts")["mother"]["phone"] == "4085551234"
        assert student.get("address")["zipCode"] == "95014"
        assert student.get("photoConsent") is False

        assert store.get(USERS, mom.uid).get("roles") == ["parent"]
        assert store.get(USERS, jane.uid).get("roles") == ["teacher"]

    def test_teacher_documents(self, make_config, store, identity, scenario_workbook):
        run(make_config, store, identity, scenario_workbook)
        jane = identity.get_user_by_email("jane@example.com")

        teacher = store.get(TEACHERS, jane.uid)
        assert teacher.get("email") == "jane@example.com"
        assert teacher.get("status") == "active"
        assert teacher.get("classAssignments") == [{"gradeId": "grade-3", "section": "A", "role": "primary"}]

        pending = store.get(TEACHERS, "pending-ravi-kumar")
        assert pending.get("email") is None
        assert pending.get("status") == "pending"
        assert pending.get("firstName") == "Ravi"
        assert pending.get("classAssignments") == [{"gradeId": "grade-3", "section": "A", "role": "assistant"}]
        assert identity.count() == 2

    def test_catalog_volunteers_and_textbooks(self, make_config, store, identity, scenario_workbook):
        summary = run(make_config, store, identity, scenario_workbook)

        assert store.count(GRADES) == 11
        assert store.get(GRADES, "grade-3").get("displayName") == "Grade 3"

        volunteer = only(store, VOLUNTEERS)
        assert (volunteer.get("firstName"), volunteer.get("lastName")) == ("Anika", "Rao")
        assert volunteer.get("type") == "high_school"

        assert summary.results["textbooks"].imported == 2
        textbook = store.get(TEXTBOOKS, "grade-3-1")
        assert textbook.get("type") == "textbook"
        assert textbook.get("semester") == "First"
        assert textbook.get("pageCount") == 120
        assert textbook.get("unitCost") is None
        # grade carried forward from the row above
        assert store.get(TEXTBOOKS, "grade-3-2").get("gradeId") == "grade-3"
        assert store.get(TEXTBOOKS, "grade-3-2").get("type") == "homework"


class TestRerun:
    def test_second_run_does_not_duplicate(self, make_config, store, identity, scenario_workbook):
        run(make_config, store, identity, scenario_workbook)
        first_counts = verify_database(store.db_path)["collections"]
        student_before = only(store, STUDENTS).data

        summary = run(make_config, store, identity, scenario_workbook)

        assert verify_database(store.db_path)["collections"] == first_counts
        assert identity.count() == 2
        assert summary.results["students"].skipped == 1
        assert summary.results["students"].imported == 0
        assert summary.results["volunteers"].skipped == 1
        assert only(store, CLASSES).get("enrolled") == 1

        jane = identity.get_user_by_email("jane@example.com")
        assert store.get(USERS, jane.uid).get("roles") == ["teacher"]
        assert len(store.get(TEACHERS, jane.uid).get("classAssignments")) == 1

        student_after = only(store, STUDENTS).data
        for field in ("status", "classId", "className", "parentId", "enrollingGrade"):
            assert student_after[field] == student_before[field], field
        assert without_updated_at(student_after) == without_updated_at(student_before)


class TestEnrollment:
    def test_enrolled_matches_assigned_students(self, make_config, store, identity, make_workbook):
        workbook = make_workbook(
            registration=[
                {"Student Name (First Last)": "Test Child", "Mother's email": "mom@example.com"},
                {"Student Name (First Last)": "Other Kid", "Father's email": "dad@example.com"},
            ],
            teachers=[
                {"School Grade": "Grade 3", "Section": "A", "Main Teacher": "Jane Doe", "Email address": "jane@example.com"},
                {"School Grade": "Grade 4", "Section": "A", "Main Teacher": "Sam Lee", "Email address": "sam@example.com"},
            ],
            rosters={
                "Grade-3": [["Student Name"], ["Test Child"], ["other kid"], ["Ghost Student"]],
                "Unit- 9&10": [["Student Name"], ["Teacher: Sam Lee"]],
            },
        )

        summary = run(make_config, store, identity, workbook)

        classes = {doc.get("gradeId"): doc for doc in store.stream(CLASSES)}
        assert set(classes) == {"grade-3", "grade-4", "grade-6"}
        for doc in classes.values():
            assert doc.get("enrolled") == len(store.where(STUDENTS, classId=doc.id))

        assert classes["grade-4"].get("enrolled") == 0
        assert classes["grade-6"].get("capacity") == 30
        assert classes["grade-6"].get("teachers") == []
        # "other kid" has the wrong first-name case and is not matched
        assert classes["grade-3"].get("enrolled") == 1
        assert [item.name for item in summary.report.students_not_found] == ["other kid", "Ghost Student"]
        assert summary.results["classes"].imported == 3

    def test_class_a_student_moved_out_of_is_recounted(self, make_config, store, identity, make_workbook):
        def workbook_with_section(section, name):
            return make_workbook(
                name=name,
                registration=[{"Student Name (First Last)": "Test Child", "Mother's email": "mom@example.com"}],
                teachers=[
                    {
                        "School Grade": "Grade 3",
                        "Section": section,
                        "Main Teacher": "Jane Doe",
                        "Email address": "jane@example.com",
                    }
                ],
                rosters={"Grade-3": [["Student Name"], ["Test Child"]]},
            )

        run(make_config, store, identity, workbook_with_section("B", "first.xlsx"))
        run(make_config, store, identity, workbook_with_section("A", "second.xlsx"))

        classes = {doc.get("name"): doc for doc in store.stream(CLASSES)}
        assert set(classes) == {"Grade 3 Section A", "Grade 3 Section B"}
        for name, doc in classes.items():
            assert doc.get("enrolled") == len(store.where(STUDENTS, classId=doc.id)), name
        assert classes["Grade 3 Section B"].get("enrolled") == 0
        assert only(store, STUDENTS).get("classId") == classes["Grade 3 Section A"].id


class TestDryRun:
    def test_writes_nothing(self, make_config, store, identity, scenario_workbook, log_buffer):
        summary = run(make_config, store, identity, scenario_workbook, dry_run=True)

        info = verify_database(store.db_path)
        assert info["collections"] == {}
        assert info["accounts"] == 0

        assert summary.dry_run is True
        assert summary.results["students"].imported == 1
        assert summary.results["classes"].students_assigned == 1

        dry_lines = [m for m in log_buffer.messages(logging.INFO) if m.startswith(DRY_RUN_PREFIX)]
        assert f"{DRY_RUN_PREFIX} Would import: Test Child (grade-3)" in dry_lines
        assert f"{DRY_RUN_PREFIX} Would create parent account: mom@example.com" in dry_lines
        assert f"{DRY_RUN_PREFIX} Would create teacher: Jane Doe (jane@example.com)" in dry_lines
        assert f"{DRY_RUN_PREFIX} Would create class: Grade 3 Section A" in dry_lines
        assert f"{DRY_RUN_PREFIX} Would assign Test Child to grade-3" in dry_lines
        assert f"{DRY_RUN_PREFIX} Would import textbook: Grade 3 Textbook First Semester (grade-3)" in dry_lines
        assert f"{DRY_RUN_PREFIX} Would import volunteer: Anika Rao" in dry_lines

    def test_dry_run_after_real_run_reports_updates(self, make_config, store, identity, scenario_workbook, log_buffer):
        run(make_config, store, identity, scenario_workbook)
        before = verify_database(store.db_path)["collections"]
        log_buffer.clear()

        summary = run(make_config, store, identity, scenario_workbook, dry_run=True)

        assert verify_database(store.db_path)["collections"] == before
        assert summary.results["students"].skipped == 1
        assert f"{DRY_RUN_PREFIX} Would update class: Grade 3 Section A" in log_buffer.messages()


class TestSelection:
    def test_classes_only_run_uses_stored_teachers(self, make_config, store, identity, scenario_workbook):
        first = ImportSelection.from_flags(students=True, teachers=True)
        run(make_config, store, identity, scenario_workbook, selection=first)
        assert store.count(CLASSES) == 0

        summary = run(
            make_config, store, identity, scenario_workbook, selection=ImportSelection.from_flags(classes=True)
        )

        assert list(summary.results) == ["classes"]
        jane = identity.get_user_by_email("jane@example.com")
        teachers = only(store, CLASSES).get("teachers")
        assert teachers[0]["teacherId"] == jane.uid
        assert teachers[1]["teacherId"] == "pending-ravi-kumar"
        assert only(store, STUDENTS).get("status") == "active"

    def test_textbooks_only(self, make_config, store, identity, scenario_workbook):
        summary = run(
            make_config, store, identity, scenario_workbook, selection=ImportSelection.from_flags(textbooks=True)
        )
        assert list(summary.results) == ["textbooks"]
        assert verify_database(store.db_path)["collections"] == {"textbooks": 2}
        assert identity.count() == 0


class TestReport:
    def test_collects_problems(self, make_config, store, identity, make_workbook):
        workbook = make_workbook(
            registration=[
                {"Student Name (First Last)": "Lost Kid", "Enrolling Grade 2025-26": "Nonexistent Grade"},
            ],
            teachers=[{"School Grade": "Grade 99", "Main Teacher": "Jane Doe", "Email address": "jane@example.com"}],
            books=[{"Grade": "Advanced", "Item No": 1, "Job Name": "Mystery Book"}],
            rosters={"Summary": [["Student Name"], ["Lost Kid"]]},
        )

        summary = run(make_config, store, identity, workbook)
        report = summary.report

        assert not report.is_clean
        assert {(g.entity, g.label) for g in report.unmapped_grades} == {
            ("student", "Nonexistent Grade"),
            ("teacher", "Grade 99"),
            ("class", "Grade 99"),
            ("textbook", "Advanced"),
        }
        assert report.unresolved_sheets == ["Summary"]
        assert summary.total_errors == 0

        # the student is still imported, just without a grade
        assert only(store, STUDENTS).get("enrollingGrade") is None
        assert store.count(TEXTBOOKS) == 0
        assert store.count(CLASSES) == 0

    def test_missing_workbook_is_fatal(self, make_config, store, identity, tmp_path):
        with pytest.raises(WorkbookError):
            run(make_config, store, identity, tmp_path / "missing.xlsx")


class TestBackends:
    def test_passed_store_is_used_and_only_identity_is_opened(self, make_config, store, scenario_workbook):
        with patch.object(pipeline, "SQLiteDocumentStore") as opened_store:
            summary = run_import(
                make_config(scenario_workbook, selection=ImportSelection.from_flags(students=True)), store=store
            )

        opened_store.assert_not_called()
        assert summary.results["students"].imported == 1
        assert only(store, STUDENTS).get("parentEmail") == "mom@example.com"
