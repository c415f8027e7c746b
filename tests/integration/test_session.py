from __future__ import annotations

from datetime import datetime, timezone
from io import BytesIO

import pandas as pd
import pytest

from gradeentry.config import DEFAULT_SETTINGS
from gradeentry.errors import MappingIncompleteError, ParseError, ValidationError
from gradeentry.session import SessionController
from gradeentry.storage import JsonFileStore, MemoryStore

MONA = "20231002"
FIXED = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)


def test_edit_undo_redo(confirmed_session):
    s = confirmed_session
    s.begin_edit(MONA, "Quiz 1")
    s.commit_edit(MONA, "Quiz 1", "85")
    s.commit_edit(MONA, "Quiz 1", "90")
    assert s.editing is None

    s.undo()
    assert s.grades.get(MONA, "Quiz 1") == 85.0
    s.redo()
    assert s.grades.get(MONA, "Quiz 1") == 90.0
    assert s.history.entries[0].student_display_name == "Mona Farouk"
    assert s.history.entries[0].old_value == 70


def test_rejected_text_keeps_edit_open(confirmed_session):
    s = confirmed_session
    s.begin_edit(MONA, "Quiz 1")
    with pytest.raises(ValidationError):
        s.commit_edit(MONA, "Quiz 1", "seventy")
    assert s.editing is not None
    assert (s.editing.student_id, s.editing.column, s.editing.text) == (MONA, "Quiz 1", "seventy")
    assert s.grades.get(MONA, "Quiz 1") == 70
    assert len(s.history) == 0

    assert s.revert_edit_text() == "70"
    s.cancel_edit()
    assert s.editing is None


def test_noop_commit_records_nothing(confirmed_session):
    s = confirmed_session
    res = s.commit_edit(MONA, "Quiz 1", "70.0")
    assert not res.changed
    assert len(s.history) == 0


def test_unknown_student_name_in_history(confirmed_session):
    s = confirmed_session
    s.commit_edit("404", "Quiz 1", "1")
    assert s.history.entries[0].student_display_name == "Unknown"


def test_jump_back_to_seeded_state(confirmed_session):
    s = confirmed_session
    for text in ("71", "72", "73"):
        s.commit_edit(MONA, "Quiz 1", text)
    s.jump(-1)
    assert s.grades.get(MONA, "Quiz 1") == 70
    s.jump(1)
    assert s.grades.get(MONA, "Quiz 1") == 72.0
    res = s.jump(3)
    assert not res.applied
    assert s.history.cursor == 1
    assert s.grades.get(MONA, "Quiz 1") == 72.0


def test_edits_require_confirmed_mapping(session, workbook_bytes):
    session.load_file(workbook_bytes, "grades.xlsx")
    with pytest.raises(MappingIncompleteError):
        session.begin_edit(MONA, "Quiz 1")
    with pytest.raises(MappingIncompleteError):
        session.commit_edit(MONA, "Quiz 1", "1")


def test_failed_upload_keeps_previous_workbook(confirmed_session):
    s = confirmed_session
    before = s.workbook
    with pytest.raises(ParseError):
        s.load_file(b"", "next.xlsx")
    assert s.workbook is before
    assert s.mapping_confirmed


def test_incomplete_mapping_blocks_confirm(session, xlsx_bytes):
    data = xlsx_bytes({"S": [["Student ID", "Student Name"], [1001, "Sara Mostafa"]]})
    session.load_file(data, "two_cols.xlsx")
    with pytest.raises(MappingIncompleteError) as exc:
        session.confirm_mapping()
    assert exc.value.missing == ["primary grade"]
    assert not session.mapping_confirmed
    assert session.headers == ["Student ID", "Student Name"]


def test_non_numeric_grade_column_warns(session, xlsx_bytes):
    data = xlsx_bytes({"S": [["Student ID", "Student Name", "Exam"], [1001, "Sara Mostafa", "absent"]]})
    session.load_file(data, "g.xlsx")
    warnings = session.confirm_mapping()
    assert warnings == ["Selected grade column contains invalid or non-numeric data."]
    assert session.mapping_confirmed


def test_grade_column_management(session, workbook_bytes):
    session.load_file(workbook_bytes, "grades.xlsx")
    assert session.add_grade_column() is None

    session.remove_grade_column(0)
    assert session.mapping.additional_grade_columns == []
    assert session.add_grade_column() == "Final"

    session.remap_field("primary_grade_column", "Final")
    assert session.mapping.primary_grade_column == "Final"
    assert session.mapping.additional_grade_columns == []
    with pytest.raises(MappingIncompleteError):
        session.remap_field("name_column", "Nope")


def test_remap_requires_new_confirmation(confirmed_session):
    s = confirmed_session
    s.remap_field("primary_grade_column", "Final")
    assert not s.mapping_confirmed
    s.confirm_mapping()
    assert s.mapping_confirmed


def test_empty_sheet_selection_and_template_export(session, xlsx_bytes, arabic_grid):
    data = xlsx_bytes({"Filled": arabic_grid, "Empty": [["Student ID", "Student Name", "Exam", "Quiz"]]})
    session.load_file(data, "two.xlsx")
    assert session.current_sheet.name == "Filled"

    assert session.select_sheet("Nope") is None
    session.select_sheet("Empty")
    assert session.headers == ["Student ID", "Student Name", "Exam", "Quiz"]
    assert session.mapping.primary_grade_column == "Exam"
    assert session.mapping.additional_grade_columns == ["Quiz"]

    warnings = session.confirm_mapping()
    assert warnings == ["This sheet is empty. Mapping confirmed but no data to display."]
    assert session.export_snapshot() == [{"Student ID": "", "Student Name": "", "Exam": "", "Quiz": ""}]


def test_search_suggestions_and_focus(confirmed_session):
    s = confirmed_session
    assert [r["Student Name"] for r in s.search("mona")] == ["Mona Farouk"]
    assert s.search("") == []
    assert s.suggestions("a") == ["Ahmed Hassan", "Mona Farouk", "Omar Nabil"]

    assert s.focus_grade(MONA) == (MONA, "Quiz 1")
    assert s.editing.text == "70"


def test_export_workbook_reflects_edits(store, workbook_bytes):
    s = SessionController(store=store, settings=DEFAULT_SETTINGS, clock=lambda: FIXED)
    s.load_file(workbook_bytes, "grades.xlsx")
    s.confirm_mapping()
    s.commit_edit(MONA, "Final", "88")
    s.commit_edit("20231001", "Quiz 1", "")

    name, data = s.export_workbook()
    assert name == "grades_export_2024-05-01T12-30-00.xlsx"
    df = pd.read_excel(BytesIO(data), sheet_name="Grades", dtype=str, keep_default_na=False)
    assert list(df.columns) == ["Student ID", "Student Name", "Quiz 1", "Final"]
    assert float(df.loc[1, "Final"]) == 88
    assert df.loc[0, "Quiz 1"] == ""
    assert float(df.loc[2, "Final"]) == 60


def test_export_without_workbook(session):
    with pytest.raises(MappingIncompleteError):
        session.export_snapshot()


def test_session_survives_restart(store, workbook_bytes):
    first = SessionController(store=store)
    first.load_file(workbook_bytes, "grades.xlsx")
    first.confirm_mapping()
    first.commit_edit(MONA, "Quiz 1", "85")
    assert store.get("gradeEntryMappingConfirmed") is True

    second = SessionController(store=store)
    assert second.load()
    assert len(second.history) == 1 and second.history.cursor == 0
    assert second.last_saved is not None

    second.load_file(workbook_bytes, "grades.xlsx")
    second.confirm_mapping()
    assert second.grades.get(MONA, "Quiz 1") == 85.0
    second.undo()
    assert second.grades.get(MONA, "Quiz 1") == 70


def test_json_file_store_persistence(tmp_path, workbook_bytes):
    first = SessionController(store=JsonFileStore(tmp_path))
    first.load_file(workbook_bytes, "grades.xlsx")
    first.confirm_mapping()
    first.commit_edit(MONA, "Quiz 1", "99")
    assert (tmp_path / "gradeEntryGrades.json").exists()

    second = SessionController(store=JsonFileStore(tmp_path))
    second.load()
    second.load_file(workbook_bytes, "grades.xlsx")
    second.confirm_mapping()
    assert second.grades.get(MONA, "Quiz 1") == 99.0


def test_corrupt_persisted_values_are_ignored(workbook_bytes):
    store = MemoryStore()
    store.set_raw("gradeEntryEditHistory", "[broken")
    store.set("gradeEntryGrades", ["not", "a", "dict"])
    s = SessionController(store=store)
    assert not s.load()
    s.load_file(workbook_bytes, "grades.xlsx")
    s.confirm_mapping()
    assert s.grades.get(MONA, "Quiz 1") == 70


def test_clear_history_and_reset(confirmed_session, store):
    s = confirmed_session
    s.commit_edit(MONA, "Quiz 1", "85")
    assert store.get("gradeEntryEditHistory")
    s.clear_history()
    assert len(s.history) == 0
    assert store.get("gradeEntryEditHistory") is None

    s.reset()
    assert s.workbook is None and s.mapping is None
    assert len(s.grades) == 0
    assert store.keys() == []
