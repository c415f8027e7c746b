from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from dateutil import parser as dtparser
from .config import DEFAULT_SETTINGS, Settings
from .errors import MappingIncompleteError, ValidationError
from .export import assemble_export_rows, export_filename, export_to_excel_bytes
from .grades import GradeStore
from .history import EditHistory
from .infer import available_grade_columns, column_is_numeric, remap_field, require_complete
from .ingest import ingest_workbook, mapping_for_sheet
from .models import CommitResult, EditEntry, HeaderMapping, HistoryResult, IngestResult, RowRecord, Sheet, student_id, student_name
from .search import filter_rows_by_name, suggest_names
from .storage import KeyValueStore, MemoryStore
from .utils import display_value
from .logger import get_logger

log = get_logger("Session")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class OpenEdit:
    student_id: str
    column: str
    text: str
    # value when the edit was opened, for reverting the field
    previous: Any


class SessionController:
    """
    Owns one workbook session: ingested sheets, the current mapping, the grade
    store and the edit history, plus the persistence port they are saved to.
    Every UI event maps to one method here.
    """

    def __init__(self, store: Optional[KeyValueStore] = None, settings: Optional[Settings] = None,
                 clock: Callable[[], datetime] = _utcnow):
        self.settings = settings or DEFAULT_SETTINGS
        self.store = store if store is not None else MemoryStore()
        self.clock = clock

        self.workbook: Optional[IngestResult] = None
        self.current_sheet: Optional[Sheet] = None
        self.headers: List[str] = []
        self.mapping: Optional[HeaderMapping] = None
        self.mapping_confirmed = False

        self.grades = GradeStore()
        self.history = EditHistory(limit=self.settings.history_limit)
        self.editing: Optional[OpenEdit] = None
        self.last_saved: Optional[datetime] = None
        self._names: Dict[str, str] = {}

    # ---- persisted keys
    def _key(self, name: str) -> str:
        return f"{self.settings.session_prefix}{name}"

    @property
    def sheets(self) -> List[Sheet]:
        return self.workbook.sheets if self.workbook else []

    # =========================
    # Workbook / mapping
    # =========================
    def load_file(self, data: bytes, filename: str) -> IngestResult:
        # ParseError propagates and the previous workbook stays in place
        result = ingest_workbook(data, filename, self.settings)
        self.workbook = result
        self.current_sheet = result.current_sheet
        self.headers = list(result.headers)
        self.mapping = result.mapping
        self.mapping_confirmed = False
        self.editing = None
        if not any(not s.is_empty for s in result.sheets):
            log.warning("all sheets in %s are empty; structure only", filename)
        return result

    def select_sheet(self, name: str) -> Optional[Sheet]:
        sheet = self.workbook.find_sheet(name) if self.workbook else None
        if sheet is None:
            log.warning("no sheet named %r", name)
            return None
        self.current_sheet = sheet
        self.headers = sheet.column_labels()
        self.mapping = mapping_for_sheet(sheet, self.settings)
        self.mapping_confirmed = False
        self.editing = None
        if sheet.is_empty:
            log.info("empty sheet %r selected, %d header(s)", name, len(self.headers))
        return sheet

    def remap_field(self, field: str, value: Any) -> HeaderMapping:
        if self.mapping is None:
            raise MappingIncompleteError("no mapping to change")
        self.mapping = remap_field(self.mapping, field, value, self.headers)
        self.mapping_confirmed = False
        return self.mapping

    def add_grade_column(self) -> Optional[str]:
        if self.mapping is None:
            return None
        free = available_grade_columns(self.mapping, self.headers)
        if not free:
            return None
        self.remap_field("additional_grade_columns", list(self.mapping.additional_grade_columns) + [free[0]])
        return free[0]

    def remove_grade_column(self, index: int) -> None:
        if self.mapping is None:
            return
        cols = list(self.mapping.additional_grade_columns)
        if 0 <= index < len(cols):
            del cols[index]
            self.remap_field("additional_grade_columns", cols)

    def confirm_mapping(self) -> List[str]:
        """
        Locks the mapping and seeds the grade store (persisted grades merged in).
        Returns non-blocking warnings. Raises MappingIncompleteError.
        """
        if self.current_sheet is None:
            raise MappingIncompleteError("Cannot confirm mapping without data.")
        mapping = require_complete(self.mapping)

        warnings: List[str] = []
        sheet = self.current_sheet
        if sheet.is_empty:
            warnings.append("This sheet is empty. Mapping confirmed but no data to display.")
        elif not column_is_numeric(sheet.rows, mapping.primary_grade_column):
            warnings.append("Selected grade column contains invalid or non-numeric data.")

        persisted = self.store.get(self._key("Grades"))
        if persisted is not None and not isinstance(persisted, dict):
            log.warning("ignoring persisted grades of type %s", type(persisted).__name__)
            persisted = None
        self.grades.seed(sheet, mapping, persisted=persisted)
        self._names = {student_id(r, mapping): student_name(r, mapping) for r in sheet.rows}
        self.mapping_confirmed = True
        log.info("mapping confirmed for sheet %r: %s", sheet.name, mapping.to_dict())
        self.save()
        return warnings

    # =========================
    # Editing
    # =========================
    def _require_confirmed(self) -> HeaderMapping:
        if not self.mapping_confirmed or self.mapping is None:
            raise MappingIncompleteError("Please configure column mappings first to manage grades")
        return self.mapping

    def begin_edit(self, sid: str, column: str) -> str:
        self._require_confirmed()
        current = self.grades.get(sid, column)
        text = display_value(current)
        self.editing = OpenEdit(student_id=sid, column=column, text=text, previous=current)
        return text

    def update_edit_text(self, text: str) -> None:
        if self.editing is not None:
            self.editing.text = text

    def revert_edit_text(self) -> Optional[str]:
        # undo inside an open field only resets the field text
        if self.editing is None:
            return None
        self.editing.text = display_value(self.editing.previous)
        return self.editing.text

    def cancel_edit(self) -> None:
        self.editing = None

    def commit_edit(self, sid: str, column: str, text: str) -> CommitResult:
        """
        Applies one grade edit. On ValidationError the edit stays open with the
        rejected text and nothing changes. A no-op commit records no history.
        """
        self._require_confirmed()
        try:
            result = self.grades.commit_edit(sid, column, text)
        except ValidationError:
            self.editing = OpenEdit(student_id=sid, column=column, text=text, previous=self.grades.get(sid, column))
            log.warning("rejected grade %r for %s/%s", text, sid, column)
            raise

        self.editing = None
        if not result.changed:
            return result

        self.history.commit(EditEntry(
            student_id=sid,
            column=column,
            old_value=result.old_value,
            new_value=result.new_value,
            timestamp=self.clock(),
            student_display_name=self._names.get(sid) or "Unknown",
        ))
        log.info("grade %s/%s: %r -> %r", sid, column, result.old_value, result.new_value)
        self.save()
        return result

    def focus_grade(self, sid: str) -> Optional[Tuple[str, str]]:
        # opens the primary grade cell of a student (search selection)
        mapping = self._require_confirmed()
        cols = mapping.grade_columns()
        if not cols:
            return None
        self.begin_edit(sid, cols[0])
        return sid, cols[0]

    # =========================
    # History
    # =========================
    def undo(self) -> HistoryResult:
        res = self.history.undo(self.grades)
        if res.applied:
            self.save()
        return res

    def redo(self) -> HistoryResult:
        res = self.history.redo(self.grades)
        if res.applied:
            self.save()
        return res

    def jump(self, index: int) -> HistoryResult:
        res = self.history.jump_to(index, self.grades)
        if res.applied:
            self.save()
        return res

    def clear_history(self) -> None:
        self.history.clear()
        self.store.remove(self._key("EditHistory"))
        log.info("edit history cleared")

    # =========================
    # Search / export
    # =========================
    def search(self, term: str) -> List[RowRecord]:
        if self.current_sheet is None or self.mapping is None or not term:
            return []
        return filter_rows_by_name(self.current_sheet.rows, term, self.mapping.name_column)

    def suggestions(self, term: str) -> List[str]:
        if self.current_sheet is None or self.mapping is None:
            return []
        names = [student_name(r, self.mapping) for r in self.current_sheet.rows]
        return suggest_names([n for n in names if n], term, limit=self.settings.suggestion_limit)

    def export_snapshot(self) -> List[RowRecord]:
        if self.current_sheet is None or self.mapping is None:
            raise MappingIncompleteError("No data to export. Please upload and configure a sheet first.")
        return assemble_export_rows(self.current_sheet, self.mapping, self.grades)

    def export_workbook(self) -> Tuple[str, bytes]:
        rows = self.export_snapshot()
        name = self.current_sheet.name if self.current_sheet else None
        return export_filename(self.clock()), export_to_excel_bytes(rows, name)

    # =========================
    # Persistence
    # =========================
    def save(self) -> None:
        self.last_saved = self.clock()
        if len(self.grades):
            self.store.set(self._key("Grades"), self.grades.snapshot())
        if len(self.history):
            self.store.set(self._key("EditHistory"), self.history.to_list())
        self.store.set(self._key("MappingConfirmed"), self.mapping_confirmed)
        self.store.set(self._key("LastSaved"), self.last_saved.isoformat())

    def load(self) -> bool:
        """Restores edit history and the last-saved time. Grades merge in on confirm_mapping()."""
        restored = False
        items = self.store.get(self._key("EditHistory"))
        if isinstance(items, list):
            restored = self.history.load(items) > 0
        saved = self.store.get(self._key("LastSaved"))
        if isinstance(saved, str):
            try:
                self.last_saved = dtparser.isoparse(saved)
            except ValueError:
                log.warning("ignoring malformed last-saved time %r", saved)
        return restored

    def reset(self) -> None:
        for name in ("Grades", "EditHistory", "MappingConfirmed", "LastSaved"):
            self.store.remove(self._key(name))
        self.workbook = None
        self.current_sheet = None
        self.headers = []
        self.mapping = None
        self.mapping_confirmed = False
        self.grades.clear()
        self.history.clear()
        self.editing = None
        self.last_saved = None
        self._names = {}
        log.info("session cleared")
