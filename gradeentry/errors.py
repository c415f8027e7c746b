from __future__ import annotations
from typing import Iterable


class GradeEntryError(Exception):
    """Base class for errors reported to the caller as structured results."""


class ParseError(GradeEntryError):
    """Raised when a workbook payload cannot be ingested (empty, wrong extension, corrupt, no sheets)."""


class ValidationError(GradeEntryError):
    """Raised when grade text is neither empty nor numeric."""

    def __init__(self, message: str, *, student_id: str = "", column: str = "", text: str = ""):
        super().__init__(message)
        self.student_id = student_id
        self.column = column
        self.text = text


class MappingIncompleteError(GradeEntryError):
    """Raised when identifier / name / primary grade are unresolved or a remap targets an unknown column."""

    def __init__(self, message: str, missing: Iterable[str] = ()):
        super().__init__(message)
        self.missing = list(missing)
