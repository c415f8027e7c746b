from __future__ import annotations
import pandas as pd
from datetime import datetime, timezone
from io import BytesIO
from typing import List, Optional
from .grades import GradeStore
from .models import HeaderMapping, RowRecord, Sheet, grade, student_id
from .logger import get_logger

log = get_logger("ExportAssembler")

EXCEL_SHEET_NAME_MAX = 31
_INVALID_SHEET_CHARS = set("[]:*?/\\")


def _template_row(mapping: HeaderMapping) -> RowRecord:
    row: RowRecord = {}
    for col in [mapping.identifier_column, mapping.name_column] + mapping.grade_columns():
        if col:
            row[col] = ""
    return row


def assemble_export_rows(sheet: Sheet, mapping: HeaderMapping, store: GradeStore) -> List[RowRecord]:
    """
    Flat rows for the writer: identifier, name, then every grade column.
    Grade value: store (edited or seeded) -> original row -> "".
    An empty sheet exports a single blank template row.
    """
    grade_cols = mapping.grade_columns()
    if not sheet.rows:
        return [_template_row(mapping)]

    out: List[RowRecord] = []
    for row in sheet.rows:
        sid = student_id(row, mapping)
        rec: RowRecord = {}
        if mapping.identifier_column:
            rec[mapping.identifier_column] = row.get(mapping.identifier_column, "")
        if mapping.name_column:
            rec[mapping.name_column] = row.get(mapping.name_column, "")
        for col in grade_cols:
            if sid and store.has(sid, col):
                rec[col] = store.get(sid, col)
            else:
                rec[col] = grade(row, col)
        out.append(rec)
    return out


def safe_sheet_name(name: Optional[str]) -> str:
    s = "".join(ch for ch in (name or "") if ch not in _INVALID_SHEET_CHARS).strip()
    return (s or "Sheet1")[:EXCEL_SHEET_NAME_MAX]


def export_filename(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"grades_export_{now.strftime('%Y-%m-%dT%H-%M-%S')}.xlsx"


def export_to_excel_bytes(rows: List[RowRecord], sheet_name: Optional[str] = None) -> bytes:
    name = safe_sheet_name(sheet_name)
    df = pd.DataFrame(rows)
    bio = BytesIO()

    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        df.to_excel(writer, index=False, sheet_name=name)

        wb = writer.book
        ws = writer.sheets[name]
        fmt_header = wb.add_format({"bold": True, "bg_color": "#F2F2F2", "border": 1, "valign": "vcenter"})

        ws.freeze_panes(1, 0)
        ws.autofilter(0, 0, max(1, len(df)), max(0, len(df.columns) - 1))
        for col, label in enumerate(df.columns):
            ws.write(0, col, label, fmt_header)
            w = max(10, min(48, int(len(str(label)) * 1.2) + 8))
            ws.set_column(col, col, w)

    log.info("exported %d row(s) to sheet %r", len(rows), name)
    return bio.getvalue()
