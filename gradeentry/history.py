from __future__ import annotations
from typing import Any, Dict, Iterable, List, Tuple
from .grades import GradeStore
from .models import EditEntry, HistoryResult
from .utils import display_value
from .logger import get_logger

log = get_logger("EditHistory")

DEFAULT_HISTORY_LIMIT = 50


class EditHistory:
    """
    Capped, append-only log of grade edits with a cursor.

    cursor points at the last applied entry; -1 means nothing applied
    (the seeded state). A commit after undo cuts the undone branch.
    """

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT):
        if limit < 1:
            raise ValueError("history limit must be >= 1")
        self.limit = limit
        self._entries: List[EditEntry] = []
        self._cursor = -1

    @property
    def entries(self) -> Tuple[EditEntry, ...]:
        return tuple(self._entries)

    @property
    def cursor(self) -> int:
        return self._cursor

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def can_undo(self) -> bool:
        return self._cursor >= 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._entries) - 1

    def commit(self, entry: EditEntry) -> None:
        entries = self._entries[: self._cursor + 1]
        entries.append(entry)
        if len(entries) > self.limit:
            entries = entries[-self.limit:]
        self._entries = entries
        self._cursor = len(entries) - 1

    def undo(self, store: GradeStore) -> HistoryResult:
        if self._cursor < 0:
            return HistoryResult(applied=False, message="Nothing to undo", cursor=self._cursor)
        entry = self._entries[self._cursor]
        store.set_value(entry.student_id, entry.column, entry.old_value)
        self._cursor -= 1
        log.info("undo %s/%s -> %r", entry.student_id, entry.column, entry.old_value)
        return HistoryResult(
            applied=True,
            message=f'Restored "{display_value(entry.old_value)}" for column "{entry.column}" of student "{entry.student_display_name}"',
            entry=entry,
            cursor=self._cursor,
        )

    def redo(self, store: GradeStore) -> HistoryResult:
        if self._cursor >= len(self._entries) - 1:
            return HistoryResult(applied=False, message="Nothing to redo", cursor=self._cursor)
        entry = self._entries[self._cursor + 1]
        store.set_value(entry.student_id, entry.column, entry.new_value)
        self._cursor += 1
        log.info("redo %s/%s -> %r", entry.student_id, entry.column, entry.new_value)
        return HistoryResult(
            applied=True,
            message=f'Re-applied change to column "{entry.column}" for student "{entry.student_display_name}"',
            entry=entry,
            cursor=self._cursor,
        )

    def jump_to(self, index: int, store: GradeStore) -> HistoryResult:
        """
        Full rebuild: seeded values first, then entries[0..index] replayed in order.
        index == -1 returns to the seeded state; any other index outside the
        history is not applied and leaves the store untouched.
        """
        if index < -1 or index >= len(self._entries):
            return HistoryResult(applied=False, message=f"No history point {index + 1}", cursor=self._cursor)
        store.reset_to_baseline()
        for entry in self._entries[: index + 1]:
            store.set_value(entry.student_id, entry.column, entry.new_value)
        self._cursor = index
        log.info("jumped to history point %d", index + 1)
        return HistoryResult(
            applied=True,
            message=f"Jumped to history point {index + 1}",
            entry=self._entries[index] if index >= 0 else None,
            cursor=self._cursor,
        )

    def clear(self) -> None:
        self._entries = []
        self._cursor = -1

    def describe(self) -> List[Dict[str, Any]]:
        # rows for a history panel, oldest first
        out = []
        for i, e in enumerate(self._entries):
            out.append({
                "index": i,
                "student": e.student_display_name,
                "student_id": e.student_id,
                "column": e.column,
                "old": display_value(e.old_value),
                "new": display_value(e.new_value),
                "time": e.timestamp.strftime("%H:%M:%S"),
                "applied": i <= self._cursor,
            })
        return out

    def to_list(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self._entries]

    def load(self, items: Iterable[Any]) -> int:
        """
        Restores persisted entries; cursor goes to the last one.
        Malformed items are skipped. Returns the number of loaded entries.
        """
        entries: List[EditEntry] = []
        skipped = 0
        for item in items or []:
            if not isinstance(item, dict):
                skipped += 1
                continue
            try:
                entries.append(EditEntry.from_dict(item))
            except (KeyError, TypeError, ValueError, OverflowError):
                skipped += 1
        if skipped:
            log.warning("skipped %d malformed history entr%s", skipped, "y" if skipped == 1 else "ies")
        self._entries = entries[-self.limit:]
        self._cursor = len(self._entries) - 1
        return len(self._entries)
