from __future__ import annotations
import copy
from typing import Any, Dict, Optional
from .errors import ValidationError
from .models import CommitResult, HeaderMapping, Scalar, Sheet, student_id
from .utils import cell_text, parse_number
from .logger import get_logger

log = get_logger("GradeStore")

Grades = Dict[str, Dict[str, Scalar]]


def parse_grade_text(text: Any) -> Scalar:
    """
    "" -> "" (clears the cell), numeric text -> float.
    Anything else raises ValidationError.
    """
    s = cell_text(text)
    if s == "":
        return ""
    f = parse_number(s)
    if f is None:
        raise ValidationError("Please enter a valid number for the grade", text=str(text))
    return f


def _same_value(a: Scalar, b: Scalar) -> bool:
    # 85 == 85.0 == "85"; "" only equals ""
    if a == "" or b == "":
        return a == b
    fa, fb = parse_number(a), parse_number(b)
    if fa is not None and fb is not None:
        return fa == fb
    return a == b


class GradeStore:
    """
    (student id, column) -> current grade value.

    The seeded state is kept as a baseline so history replay can rebuild the
    grades from scratch.
    """

    def __init__(self):
        self._grades: Grades = {}
        self._baseline: Grades = {}

    def seed(self, sheet: Sheet, mapping: HeaderMapping, persisted: Optional[Grades] = None) -> None:
        grades: Grades = {}
        baseline: Grades = {}
        cols = mapping.grade_columns()
        for row in sheet.rows:
            sid = student_id(row, mapping)
            if not sid:
                continue
            grades.setdefault(sid, {})
            baseline.setdefault(sid, {})
            for col in cols:
                if col in row:
                    grades[sid][col] = row[col]
                    baseline[sid][col] = row[col]

        # persisted edits win, only for students of this sheet
        merged = 0
        for sid, values in (persisted or {}).items():
            if sid not in grades or not isinstance(values, dict):
                continue
            for col, v in values.items():
                grades[sid][str(col)] = v
                merged += 1

        self._grades = grades
        self._baseline = baseline
        log.info("seeded %d student(s) from sheet %r, %d persisted value(s) merged", len(grades), sheet.name, merged)

    def get(self, sid: str, column: str, default: Scalar = "") -> Scalar:
        return self._grades.get(sid, {}).get(column, default)

    def has(self, sid: str, column: str) -> bool:
        return column in self._grades.get(sid, {})

    def baseline_value(self, sid: str, column: str) -> Scalar:
        return self._baseline.get(sid, {}).get(column, "")

    def set_value(self, sid: str, column: str, value: Scalar) -> None:
        self._grades.setdefault(sid, {})[column] = value

    def commit_edit(self, sid: str, column: str, raw_text: Any) -> CommitResult:
        """
        Validates and applies one edit. Raises ValidationError and leaves the
        store untouched for non-numeric text. changed=False for a no-op.
        """
        try:
            new_value = parse_grade_text(raw_text)
        except ValidationError as e:
            raise ValidationError(str(e), student_id=sid, column=column, text=str(raw_text)) from None

        old_value = self.get(sid, column)
        if _same_value(old_value, new_value):
            return CommitResult(sid, column, old_value, old_value, changed=False)

        self.set_value(sid, column, new_value)
        return CommitResult(sid, column, old_value, new_value, changed=True)

    def reset_to_baseline(self) -> None:
        self._grades = copy.deepcopy(self._baseline)

    def snapshot(self) -> Grades:
        return copy.deepcopy(self._grades)

    def clear(self) -> None:
        self._grades = {}
        self._baseline = {}

    def __contains__(self, sid: str) -> bool:
        return sid in self._grades

    def __len__(self) -> int:
        return len(self._grades)
