from __future__ import annotations
import zipfile
from io import BytesIO
from typing import Any, List, Optional, Set, Tuple
import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from .config import DEFAULT_SETTINGS, Settings
from .errors import ParseError
from .header_detect import extract_header_labels, first_content_row, grid_width, scan_grid
from .infer import detect_headers, infer_empty_sheet_mapping
from .models import GridScanResult, HeaderMapping, IngestResult, RowRecord, Sheet
from .utils import is_blank, to_scalar
from .logger import get_logger

log = get_logger("WorkbookIngestor")

Grid = List[List[Any]]
# (sheet name, cell grid, 0-based cells filled in from a merged range)
SheetGrid = Tuple[str, Grid, Set[Tuple[int, int]]]
# =========================

# Readers: workbook bytes -> [(sheet name, cell grid, merged cells)]
# =========================
def _xlsx_grids(data: bytes) -> List[SheetGrid]:
    # merged ranges are expanded so every cell of the range carries the top-left value
    wb = load_workbook(BytesIO(data), read_only=False, data_only=True)
    out: List[SheetGrid] = []
    for ws in wb.worksheets:
        merged_map = {}
        filled: Set[Tuple[int, int]] = set()
        for rng in ws.merged_cells.ranges:
            min_col, min_row, max_col, max_row = rng.bounds
            top_val = ws.cell(min_row, min_col).value
            for rr in range(min_row, max_row + 1):
                for cc in range(min_col, max_col + 1):
                    merged_map[(rr, cc)] = top_val

        rows: Grid = []
        for r in range(1, ws.max_row + 1):
            row_vals = []
            for c in range(1, ws.max_column + 1):
                v = ws.cell(r, c).value
                if (r, c) in merged_map and (v is None or str(v).strip() == ""):
                    v = merged_map[(r, c)]
                    filled.add((r - 1, c - 1))
                row_vals.append(v)
            rows.append(row_vals)
        out.append((ws.title, rows, filled))
    return out


def _xls_grids(data: bytes) -> List[SheetGrid]:
    xls = pd.ExcelFile(BytesIO(data), engine="xlrd")
    out: List[SheetGrid] = []
    for name in xls.sheet_names:
        df = xls.parse(name, header=None)
        grid = [[None if pd.isna(v) else v for v in row] for row in df.itertuples(index=False, name=None)]
        out.append((str(name), grid, set()))
    return out


def file_extension(filename: str) -> str:
    if "." not in (filename or ""):
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def read_workbook_grids(data: bytes, extension: str) -> List[SheetGrid]:
    try:
        if extension == "xls":
            return _xls_grids(data)
        return _xlsx_grids(data)
    except (InvalidFileException, zipfile.BadZipFile) as e:
        raise ParseError("Failed to parse the Excel file. The file might be corrupted or in an unsupported format.") from e
    except Exception as e:
        raise ParseError(f"Failed to read the workbook: {type(e).__name__}: {e}") from e
# =========================

# Sheet processing
# =========================
def _row_record(labels: List[str], row: List[Any]) -> RowRecord:
    rec: RowRecord = {}
    for c, label in enumerate(labels):
        v = row[c] if c < len(row) else None
        rec[label] = to_scalar(v)
    return rec


def _rows_after(grid: Grid, start: int, labels: List[str], found: Optional[GridScanResult]) -> List[RowRecord]:
    rows: List[RowRecord] = []
    for r in range(max(0, start), len(grid)):
        row = grid[r]
        if found is not None:
            id_v = row[found.identifier_column_index] if found.identifier_column_index < len(row) else None
            name_v = row[found.name_column_index] if found.name_column_index < len(row) else None
            # a student row needs both an identifier and a name
            if is_blank(id_v) or is_blank(name_v):
                continue
        elif all(is_blank(v) for v in row):
            continue
        rows.append(_row_record(labels, row))
    return rows


def process_sheet(
    name: str,
    grid: Grid,
    settings: Settings = DEFAULT_SETTINGS,
    merged: Optional[Set[Tuple[int, int]]] = None,
) -> Sheet:
    """
    Grid -> Sheet. Labels are the sheet's own header cells ("Column N" for blanks),
    never renamed or dropped. Sheets without student rows are kept with their labels.
    `merged` lists cells copied from a merged range; they do not vote for the header row.
    """
    width = grid_width(grid)
    if width == 0:
        return Sheet(name=name, rows=[], headers=[])

    found = scan_grid(grid, id_magnitude_threshold=settings.id_magnitude_threshold, merged=merged)
    if found is not None:
        labels = extract_header_labels(grid, found.header_row_index, width)
        rows = _rows_after(grid, found.header_row_index + 1, labels, found)
        log.debug(
            "sheet %r: header row %d (%s), id col %d, name col %d, %d rows",
            name, found.header_row_index, found.method, found.identifier_column_index, found.name_column_index, len(rows),
        )
        return Sheet(name=name, rows=rows, headers=labels)

    # no structure found: first non-blank row is the header, everything below is kept
    top = first_content_row(grid)
    if top < 0:
        return Sheet(name=name, rows=[], headers=[])
    labels = extract_header_labels(grid, top, width)
    rows = _rows_after(grid, top + 1, labels, None)
    log.debug("sheet %r: no header keywords, raw layout from row %d, %d rows", name, top, len(rows))
    return Sheet(name=name, rows=rows, headers=labels)
# =========================

# Main: bytes -> IngestResult
# =========================
def _validate_payload(data: bytes, filename: str, settings: Settings) -> str:
    if not data:
        raise ParseError("The Excel file is empty")
    ext = file_extension(filename)
    if ext not in settings.allowed_extensions:
        allowed = ", ".join(f".{e}" for e in settings.allowed_extensions)
        raise ParseError(f"Invalid file format. Please upload an Excel file ({allowed})")
    return ext


def mapping_for_sheet(sheet: Sheet, settings: Settings = DEFAULT_SETTINGS) -> HeaderMapping:
    # empty sheets use their borrowed structure when they have one
    if sheet.is_empty and sheet.enhanced_mapping is not None:
        return sheet.enhanced_mapping
    return detect_headers(sheet.column_labels(), min_grade_columns=settings.min_grade_columns)


def ingest_workbook(data: bytes, filename: str, settings: Optional[Settings] = None) -> IngestResult:
    """
    Reads every sheet of a workbook and infers its structure.

    Returns IngestResult(sheets, current_sheet, headers, mapping):
      - every sheet is kept, including empty ones (with their header labels)
      - the first non-empty sheet provides the reference mapping; header-only
        sheets get an enhanced_mapping derived from their own labels
      - current_sheet is the first non-empty sheet, else the first sheet

    Raises ParseError; nothing partial is returned.
    """
    settings = settings or DEFAULT_SETTINGS
    ext = _validate_payload(data, filename, settings)
    log.info("Processing file: %s (%d bytes)", filename, len(data))

    grids = read_workbook_grids(data, ext)
    if not grids:
        raise ParseError("The file contains no sheets")

    try:
        sheets = [process_sheet(name, grid, settings, merged) for name, grid, merged in grids]
    except ParseError:
        raise
    except Exception as e:
        log.error("sheet processing failed for %s: %s", filename, e)
        raise ParseError(f"Failed to process the workbook: {type(e).__name__}: {e}") from e

    non_empty = [s for s in sheets if not s.is_empty]
    reference: Optional[HeaderMapping] = None
    if non_empty:
        reference = detect_headers(non_empty[0].column_labels(), min_grade_columns=settings.min_grade_columns)

    for s in sheets:
        if s.is_empty and s.headers:
            s.enhanced_mapping = infer_empty_sheet_mapping(s.headers, reference)

    current = non_empty[0] if non_empty else sheets[0]
    headers = current.column_labels()
    mapping = mapping_for_sheet(current, settings)

    log.info(
        "Parsed %d sheet(s), %d with data; current sheet %r with %d row(s)",
        len(sheets), len(non_empty), current.name, len(current.rows),
    )
    return IngestResult(sheets=sheets, current_sheet=current, headers=headers, mapping=mapping, source_name=filename)
