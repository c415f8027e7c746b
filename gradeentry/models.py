from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union
from dateutil import parser as dtparser
from .utils import cell_text

Scalar = Union[str, int, float]
RowRecord = Dict[str, Scalar]

MAPPING_FIELDS = ("identifier_column", "name_column", "primary_grade_column", "additional_grade_columns")
ROLE_LABELS = {
    "identifier_column": "student identifier",
    "name_column": "student name",
    "primary_grade_column": "primary grade",
}


@dataclass
class HeaderMapping:
    """Resolved role -> column label assignment. An unset slot is ""."""
    identifier_column: str = ""
    name_column: str = ""
    primary_grade_column: str = ""
    additional_grade_columns: List[str] = field(default_factory=list)

    def grade_columns(self) -> List[str]:
        cols = [self.primary_grade_column] + list(self.additional_grade_columns)
        return [c for c in cols if c]

    def used_columns(self) -> List[str]:
        cols = [self.identifier_column, self.name_column] + self.grade_columns()
        return [c for c in cols if c]

    def missing_roles(self) -> List[str]:
        return [ROLE_LABELS[k] for k in ROLE_LABELS if not getattr(self, k)]

    def shared_roles(self) -> List[str]:
        # main slots pointing at the same column as another main slot
        values = [getattr(self, k) for k in ROLE_LABELS]
        return [ROLE_LABELS[k] for k, v in zip(ROLE_LABELS, values) if v and values.count(v) > 1]

    def is_complete(self) -> bool:
        return not self.missing_roles() and not self.shared_roles()

    def is_empty(self) -> bool:
        return not (self.identifier_column or self.name_column or self.primary_grade_column)

    def normalized(self) -> "HeaderMapping":
        # additional columns: unique, non-empty, none equal to the three main slots
        taken = {self.identifier_column, self.name_column, self.primary_grade_column}
        extra: List[str] = []
        for c in self.additional_grade_columns:
            if not c or c in taken or c in extra:
                continue
            extra.append(c)
        return replace(self, additional_grade_columns=extra)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier_column": self.identifier_column,
            "name_column": self.name_column,
            "primary_grade_column": self.primary_grade_column,
            "additional_grade_columns": list(self.additional_grade_columns),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "HeaderMapping":
        extra = d.get("additional_grade_columns") or []
        if not isinstance(extra, list):
            extra = []
        return cls(
            identifier_column=str(d.get("identifier_column") or ""),
            name_column=str(d.get("name_column") or ""),
            primary_grade_column=str(d.get("primary_grade_column") or ""),
            additional_grade_columns=[str(x) for x in extra],
        ).normalized()


@dataclass
class Sheet:
    name: str
    rows: List[RowRecord] = field(default_factory=list)
    headers: List[str] = field(default_factory=list)
    # borrowed structure for header-only sheets
    enhanced_mapping: Optional[HeaderMapping] = None

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def column_labels(self) -> List[str]:
        # labels as they appear on the row records, falling back to the extracted header row
        if self.rows:
            return list(self.rows[0].keys())
        return list(self.headers)


def student_id(row: RowRecord, mapping: HeaderMapping) -> str:
    # ids are compared as text: 20231001 and "20231001" are the same student
    v = row.get(mapping.identifier_column, "") if mapping.identifier_column else ""
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    return cell_text(v)


def student_name(row: RowRecord, mapping: HeaderMapping) -> str:
    v = row.get(mapping.name_column, "") if mapping.name_column else ""
    return cell_text(v)


def grade(row: RowRecord, column: str) -> Scalar:
    return row.get(column, "")


@dataclass(frozen=True)
class GridScanResult:
    header_row_index: int
    identifier_column_index: int
    name_column_index: int
    # "keywords" when a header row was found, "content" for the id/name shape fallback
    method: str = "keywords"


@dataclass
class IngestResult:
    sheets: List[Sheet]
    current_sheet: Optional[Sheet]
    headers: List[str]
    mapping: Optional[HeaderMapping]
    source_name: str = ""

    def sheet_names(self) -> List[str]:
        return [s.name for s in self.sheets]

    def find_sheet(self, name: str) -> Optional[Sheet]:
        for s in self.sheets:
            if s.name == name:
                return s
        return None


@dataclass(frozen=True)
class EditEntry:
    student_id: str
    column: str
    old_value: Scalar
    new_value: Scalar
    timestamp: datetime
    student_display_name: str = "Unknown"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "student_id": self.student_id,
            "column": self.column,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "timestamp": self.timestamp.isoformat(),
            "student_display_name": self.student_display_name,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EditEntry":
        ts = d.get("timestamp")
        if isinstance(ts, datetime):
            when = ts
        else:
            when = dtparser.isoparse(str(ts))
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return cls(
            student_id=str(d["student_id"]),
            column=str(d["column"]),
            old_value=_scalar_or_blank(d.get("old_value", "")),
            new_value=_scalar_or_blank(d.get("new_value", "")),
            timestamp=when,
            student_display_name=str(d.get("student_display_name") or "Unknown"),
        )


def _scalar_or_blank(v: Any) -> Scalar:
    if v is None:
        return ""
    if isinstance(v, (str, int, float)) and not isinstance(v, bool):
        return v
    return str(v)


@dataclass(frozen=True)
class CommitResult:
    student_id: str
    column: str
    old_value: Scalar
    new_value: Scalar
    changed: bool


@dataclass(frozen=True)
class HistoryResult:
    applied: bool
    message: str
    entry: Optional[EditEntry] = None
    cursor: int = -1
