from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence
from .errors import MappingIncompleteError
from .models import MAPPING_FIELDS, HeaderMapping, RowRecord
from .patterns import GRADE, IDENTIFIER, NAME, has_arabic_letter, looks_like_placeholder_id, matches
from .utils import is_blank, parse_number
from .logger import get_logger

log = get_logger("StructureInferrer")

DEFAULT_MIN_GRADE_COLUMNS = 3
# =========================

# Pattern phases
# =========================
def _assign_identity(headers: Sequence[str], mapping: HeaderMapping) -> None:
    # a header can fill only one slot; identifier is tried first
    for h in headers:
        if matches(IDENTIFIER, h) and not mapping.identifier_column:
            mapping.identifier_column = h
        elif matches(NAME, h) and not mapping.name_column:
            mapping.name_column = h


def _collect_grades(headers: Sequence[str], mapping: HeaderMapping) -> None:
    grade_cols = []
    for h in headers:
        if h == mapping.identifier_column or h == mapping.name_column:
            continue
        if matches(GRADE, h):
            grade_cols.append(h)
    if grade_cols:
        mapping.primary_grade_column = grade_cols[0]
        mapping.additional_grade_columns = grade_cols[1:]
# =========================

# Main entry points
# =========================
def detect_headers(headers: Sequence[str], min_grade_columns: int = DEFAULT_MIN_GRADE_COLUMNS) -> HeaderMapping:
    """
    Header labels -> HeaderMapping.
      1) identifier / name by pattern, first match wins
      2) grade columns by pattern, in order (first one is primary)
      3) fallbacks for the slots still empty:
         - identifier: numeric label or "__EMPTY" placeholder
         - name: first label with an arabic letter
         - first two labels positionally
         - third label as primary grade, the rest as additional grades
    """
    headers = [str(h) for h in headers]
    mapping = HeaderMapping()
    _assign_identity(headers, mapping)
    _collect_grades(headers, mapping)

    if headers:
        if not mapping.identifier_column:
            for h in headers:
                if looks_like_placeholder_id(h):
                    mapping.identifier_column = h
                    break

        if not mapping.name_column:
            for h in headers:
                if h != mapping.identifier_column and has_arabic_letter(h):
                    mapping.name_column = h
                    break

        if (not mapping.identifier_column or not mapping.name_column) and len(headers) >= 2:
            if not mapping.identifier_column:
                mapping.identifier_column = headers[0]
            if not mapping.name_column:
                mapping.name_column = headers[1]

        if not mapping.primary_grade_column and len(headers) >= min_grade_columns:
            mapping.primary_grade_column = headers[2]
            mapping.additional_grade_columns = [
                h for h in headers[3:] if h not in (mapping.identifier_column, mapping.name_column)
            ]

    mapping = mapping.normalized()
    log.debug(
        "mapping id=%r name=%r grade=%r extra=%r",
        mapping.identifier_column, mapping.name_column, mapping.primary_grade_column, mapping.additional_grade_columns,
    )
    return mapping


def infer_empty_sheet_mapping(headers: Sequence[str], reference: Optional[HeaderMapping]) -> Optional[HeaderMapping]:
    """
    Mapping for a sheet that has headers but no rows.
    Only attempted when a populated sibling produced a reference mapping.
    Patterns first; if none of identifier / name / grade resolve, pure positional
    assignment (there is no content to shape-match against).
    """
    if reference is None or not headers:
        return None

    headers = [str(h) for h in headers]
    mapping = HeaderMapping()
    for h in headers:
        if matches(IDENTIFIER, h) and not mapping.identifier_column:
            mapping.identifier_column = h
        elif matches(NAME, h) and not mapping.name_column:
            mapping.name_column = h
        elif matches(GRADE, h):
            if not mapping.primary_grade_column:
                mapping.primary_grade_column = h
            else:
                mapping.additional_grade_columns.append(h)

    if mapping.is_empty() and len(headers) >= 2:
        mapping.identifier_column = headers[0]
        mapping.name_column = headers[1]
        if len(headers) >= 3:
            mapping.primary_grade_column = headers[2]
            mapping.additional_grade_columns = list(headers[3:])

    return mapping.normalized()
# =========================

# User remapping
# =========================
def remap_field(mapping: HeaderMapping, field: str, value: Any, headers: Sequence[str]) -> HeaderMapping:
    # keeps every column in at most one slot: the new value is removed from the other slots
    if field not in MAPPING_FIELDS:
        raise MappingIncompleteError(f"unknown mapping field: {field}", missing=[field])

    known = set(headers)
    d: Dict[str, Any] = mapping.to_dict()

    if field == "additional_grade_columns":
        values = list(value or [])
        unknown = [v for v in values if v not in known]
        if unknown:
            raise MappingIncompleteError(f"columns not in sheet headers: {unknown}", missing=unknown)
        d["additional_grade_columns"] = values
        for k in ("identifier_column", "name_column", "primary_grade_column"):
            if d[k] in values:
                d[k] = ""
        return HeaderMapping.from_dict(d)

    value = str(value or "")
    if value and value not in known:
        raise MappingIncompleteError(f"column not in sheet headers: {value!r}", missing=[value])
    for k in ("identifier_column", "name_column", "primary_grade_column"):
        if k != field and value and d[k] == value:
            d[k] = ""
    d[field] = value
    d["additional_grade_columns"] = [c for c in d["additional_grade_columns"] if c != value]
    return HeaderMapping.from_dict(d)


def available_grade_columns(mapping: HeaderMapping, headers: Sequence[str]) -> List[str]:
    used = set(mapping.used_columns())
    return [h for h in headers if h not in used]


def require_complete(mapping: Optional[HeaderMapping]) -> HeaderMapping:
    if mapping is None:
        raise MappingIncompleteError("no mapping to confirm", missing=["student identifier", "student name", "primary grade"])
    missing = mapping.missing_roles()
    if missing:
        raise MappingIncompleteError(f"mapping incomplete, unresolved: {', '.join(missing)}", missing=missing)
    shared = mapping.shared_roles()
    if shared:
        raise MappingIncompleteError(f"one column is assigned to more than one role: {', '.join(shared)}", missing=shared)
    return mapping


def column_is_numeric(rows: Sequence[RowRecord], column: str) -> bool:
    # blank cells are ignored; a column absent from the rows is not numeric
    if not rows or not column or column not in rows[0]:
        return False
    for row in rows:
        v = row.get(column, "")
        if is_blank(v):
            continue
        if parse_number(v) is None:
            return False
    return True
