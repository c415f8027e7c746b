from __future__ import annotations
from typing import Iterable, List, Sequence
from .models import RowRecord
from .utils import cell_text

# letter variants folded to one form so searches ignore hamza / ta marbuta spelling
ARABIC_REPLACEMENTS = {
    "أ": "ا",
    "إ": "ا",
    "آ": "ا",
    "ة": "ه",
    "ى": "ي",
    "ؤ": "و",
    "ئ": "ي",
}
_ARABIC_TABLE = str.maketrans(ARABIC_REPLACEMENTS)


def normalize_arabic(text: str) -> str:
    if not text:
        return ""
    return text.translate(_ARABIC_TABLE)


def _search_key(text) -> str:
    return normalize_arabic(cell_text(text).lower())


def arabic_contains(term: str, text) -> bool:
    if not term or not cell_text(text):
        return False
    return _search_key(term) in _search_key(text)


def filter_rows_by_name(rows: Sequence[RowRecord], term: str, name_column: str) -> List[RowRecord]:
    if not term:
        return list(rows)
    return [r for r in rows if arabic_contains(term, r.get(name_column, ""))]


def suggest_names(names: Iterable[str], term: str, limit: int = 5) -> List[str]:
    if not term:
        return []
    out = []
    for n in names:
        if arabic_contains(term, n):
            out.append(n)
            if len(out) >= limit:
                break
    return out


def sort_arabic(texts: Iterable[str]) -> List[str]:
    return sorted(texts, key=_search_key)
