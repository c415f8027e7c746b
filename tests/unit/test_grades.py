from __future__ import annotations

import pytest

from gradeentry.errors import ValidationError
from gradeentry.grades import GradeStore, parse_grade_text
from gradeentry.models import HeaderMapping, Sheet

MAPPING = HeaderMapping("ID", "Name", "Exam", ["Final"])


@pytest.fixture()
def sheet() -> Sheet:
    rows = [
        {"ID": 1001, "Name": "Sara Mostafa", "Exam": 80, "Final": ""},
        {"ID": 1002.0, "Name": "Hany Gamal", "Exam": 70.5, "Final": 60},
        {"ID": "", "Name": "No id", "Exam": 10, "Final": 10},
    ]
    return Sheet(name="S", rows=rows, headers=["ID", "Name", "Exam", "Final"])


@pytest.fixture()
def seeded(sheet) -> GradeStore:
    s = GradeStore()
    s.seed(sheet, MAPPING)
    return s


@pytest.mark.parametrize("text, expected", [("85", 85.0), (" 85.5 ", 85.5), ("", ""), ("   ", ""), (None, "")])
def test_parse_grade_text(text, expected):
    assert parse_grade_text(text) == expected


@pytest.mark.parametrize("text", ["abc", "nan", "inf", "85%", "8 5", "1,000", "7,5", "1_000"])
def test_parse_grade_text_rejects(text):
    with pytest.raises(ValidationError):
        parse_grade_text(text)


def test_seed_uses_text_ids_and_skips_blank_ids(seeded):
    assert len(seeded) == 2
    assert "1001" in seeded
    # whole float ids read as the int text
    assert "1002" in seeded
    assert seeded.get("1002", "Exam") == 70.5
    assert seeded.get("1001", "Final") == ""


def test_persisted_values_win_for_known_students(sheet):
    s = GradeStore()
    s.seed(sheet, MAPPING, persisted={"1001": {"Exam": 99.0}, "9999": {"Exam": 1.0}})
    assert s.get("1001", "Exam") == 99.0
    assert "9999" not in s
    # baseline is the sheet value, not the persisted one
    assert s.baseline_value("1001", "Exam") == 80


def test_commit_edit_changes_value(seeded):
    res = seeded.commit_edit("1001", "Exam", "85")
    assert res.changed
    assert (res.old_value, res.new_value) == (80, 85.0)
    assert seeded.get("1001", "Exam") == 85.0


def test_commit_edit_noop(seeded):
    assert not seeded.commit_edit("1001", "Exam", "80").changed
    assert not seeded.commit_edit("1001", "Exam", "80.0").changed
    assert not seeded.commit_edit("1001", "Final", "").changed
    assert not seeded.commit_edit("1001", "Unseen", "").changed


def test_commit_edit_clear(seeded):
    res = seeded.commit_edit("1002", "Final", "")
    assert res.changed and res.new_value == ""
    assert seeded.get("1002", "Final") == ""


def test_commit_edit_invalid_leaves_store(seeded):
    before = seeded.snapshot()
    with pytest.raises(ValidationError) as exc:
        seeded.commit_edit("1001", "Exam", "eighty")
    assert exc.value.student_id == "1001"
    assert exc.value.column == "Exam"
    assert exc.value.text == "eighty"
    assert seeded.snapshot() == before


def test_reset_to_baseline_and_snapshot_is_a_copy(seeded):
    seeded.commit_edit("1001", "Exam", "50")
    snap = seeded.snapshot()
    snap["1001"]["Exam"] = -1
    assert seeded.get("1001", "Exam") == 50.0
    seeded.reset_to_baseline()
    assert seeded.get("1001", "Exam") == 80


def test_clear(seeded):
    seeded.clear()
    assert len(seeded) == 0
    assert seeded.baseline_value("1001", "Exam") == ""
