from __future__ import annotations
from typing import AbstractSet, Any, List, Optional, Sequence, Tuple
from .models import GridScanResult
from .patterns import IDENTIFIER, NAME, header_keyword_hits, matches
from .utils import cell_text, is_number, norm_text

Grid = Sequence[Sequence[Any]]
# 0-based (row, col) cells that only repeat a merged range's top-left value
Cells = AbstractSet[Tuple[int, int]]

DEFAULT_ID_MAGNITUDE_THRESHOLD = 1000


def _cell(grid: Grid, r: int, c: int) -> Any:
    # sparse grids: short rows and missing cells read as None
    if r < 0 or r >= len(grid):
        return None
    row = grid[r]
    if c < 0 or c >= len(row):
        return None
    return row[c]


def grid_width(grid: Grid) -> int:
    return max((len(r) for r in grid), default=0)


def _row_keyword_score(row: Sequence[Any], r: int = 0, merged: Optional[Cells] = None) -> int:
    # number of cells carrying a header keyword; a merged range counts once
    score = 0
    for c, v in enumerate(row):
        if merged and (r, c) in merged:
            continue
        s = norm_text(v)
        if not s:
            continue
        if header_keyword_hits(s):
            score += 1
    return score


def _best_header_row(grid: Grid, merged: Optional[Cells] = None) -> Tuple[int, int]:
    """
    Single pass, running best:
    strictly higher count replaces the best, equal count keeps the earlier row.
    Returns (row_index, count); (-1, 0) when no row has a keyword.
    """
    best_row = -1
    best_count = 0
    for r, row in enumerate(grid):
        count = _row_keyword_score(row, r, merged)
        if count > 0 and count > best_count:
            best_row = r
            best_count = count
    return best_row, best_count


def _role_columns(row: Sequence[Any]) -> Tuple[int, int]:
    # identifier first, name only if the cell was not taken as identifier
    id_idx = -1
    name_idx = -1
    for c, v in enumerate(row):
        s = cell_text(v)
        if not s:
            continue
        if id_idx < 0 and matches(IDENTIFIER, s):
            id_idx = c
        elif name_idx < 0 and matches(NAME, s):
            name_idx = c

    if id_idx >= 0 and name_idx >= 0:
        return id_idx, name_idx

    filled = [c for c, v in enumerate(row) if cell_text(v)]
    if id_idx < 0:
        id_idx = next((c for c in filled if c != name_idx), -1)
    if name_idx < 0:
        name_idx = next((c for c in filled if c != id_idx), -1)
    return id_idx, name_idx


def _scan_keywords(grid: Grid, merged: Optional[Cells] = None) -> Optional[GridScanResult]:
    r, _ = _best_header_row(grid, merged)
    if r < 0:
        return None
    id_idx, name_idx = _role_columns(grid[r])
    if id_idx < 0 or name_idx < 0:
        return None
    return GridScanResult(header_row_index=r, identifier_column_index=id_idx, name_column_index=name_idx, method="keywords")


def _scan_content(grid: Grid, id_magnitude_threshold: float) -> Optional[GridScanResult]:
    # a large number followed by a multi-word string looks like "id | full name"
    for r, row in enumerate(grid):
        for c, v in enumerate(row):
            if not is_number(v) or float(v) <= id_magnitude_threshold:
                continue
            right = _cell(grid, r, c + 1)
            if isinstance(right, str) and " " in right.strip():
                return GridScanResult(header_row_index=r - 1, identifier_column_index=c, name_column_index=c + 1, method="content")
    return None


def scan_grid(
    grid: Grid,
    id_magnitude_threshold: float = DEFAULT_ID_MAGNITUDE_THRESHOLD,
    merged: Optional[Cells] = None,
) -> Optional[GridScanResult]:
    """
    Finds the header row and the identifier / name columns of a raw cell grid.

    1. keyword row scan (most header keywords, earliest row on ties)
       cells listed in `merged` (expanded copies of a merged range) are not counted
    2. content shape: numeric id above the threshold next to a multi-word name;
       the header is assumed one row above (may be -1)
    3. None: caller keeps all columns and rows unfiltered
    """
    if not grid:
        return None
    found = _scan_keywords(grid, merged)
    if found is not None:
        return found
    return _scan_content(grid, id_magnitude_threshold)


def _clean_header_cell(v: Any) -> str:
    if v is None:
        return ""
    s = str(v).replace("\ufeff", "").strip()
    if s.lower() == "nan":
        return ""
    return s


def _make_unique(labels: List[str]) -> List[str]:
    seen = {}
    out = []
    for base in labels:
        n = seen.get(base, 0) + 1
        seen[base] = n
        out.append(base if n == 1 else f"{base}__{n}")
    return out


def extract_header_labels(grid: Grid, header_row_index: int, width: Optional[int] = None) -> List[str]:
    """
    One label per column of the header row; blank cells (or a header row outside
    the grid) get a positional "Column N" label. Never drops a column.
    """
    if width is None:
        width = grid_width(grid)
    labels = []
    for c in range(width):
        s = _clean_header_cell(_cell(grid, header_row_index, c))
        labels.append(s if s else f"Column {c + 1}")
    return _make_unique(labels)


def first_content_row(grid: Grid) -> int:
    for r, row in enumerate(grid):
        if any(cell_text(v) for v in row):
            return r
    return -1
