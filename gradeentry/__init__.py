"""
This package contains:
- workbook ingestion (XLSX/XLS, merged cells, empty sheets)
- header detection in raw grids and role mapping (id / name / grades)
- the grade store with validated edits
- a capped edit history with undo / redo / jump
- export of edited grades back to Excel
- session state with pluggable persistence
"""
from .ingest import ingest_workbook, read_workbook_grids
from .header_detect import scan_grid, extract_header_labels
from .infer import detect_headers, infer_empty_sheet_mapping, remap_field, require_complete
from .grades import GradeStore, parse_grade_text
from .history import EditHistory
from .export import assemble_export_rows, export_to_excel_bytes, export_filename
from .session import SessionController
from .storage import KeyValueStore, MemoryStore, JsonFileStore
from .config import Settings, load_settings
from .errors import GradeEntryError, ParseError, ValidationError, MappingIncompleteError

__all__ = [
    "ingest_workbook",
    "read_workbook_grids",
    "scan_grid",
    "extract_header_labels",
    "detect_headers",
    "infer_empty_sheet_mapping",
    "remap_field",
    "require_complete",
    "GradeStore",
    "parse_grade_text",
    "EditHistory",
    "assemble_export_rows",
    "export_to_excel_bytes",
    "export_filename",
    "SessionController",
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "Settings",
    "load_settings",
    "GradeEntryError",
    "ParseError",
    "ValidationError",
    "MappingIncompleteError",
]
