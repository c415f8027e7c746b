import os
import re
import json
import math
from pathlib import Path
from typing import Any, Optional
import numpy as np

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DATA_DIR = BASE_DIR / "data"

APPDATA = os.environ.get("APPDATA")
if APPDATA:
    USER_DATA_DIR = Path(APPDATA) / "GradeEntry" / "data"
else:
    USER_DATA_DIR = Path.home() / ".grade-entry"

def load_json(path: Path, default: Any):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        return default

def save_json(path: Path, obj: Any):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(obj, f, ensure_ascii=False, indent=2)

_NBSP_RE = re.compile(r"[\u00A0\u2007\u202F]")  # NBSP variants
_TATWEEL = "\u0640"


def cell_text(v: Any) -> str:
    """
    Text of a raw cell for matching:
    - None / NaN -> ""
    - BOM, non-breaking spaces and tatweel removed
    - trimmed, case preserved
    """
    if v is None:
        return ""
    if isinstance(v, float) and math.isnan(v):
        return ""
    s = str(v)
    s = s.replace("\ufeff", "").replace(_TATWEEL, "")
    s = _NBSP_RE.sub(" ", s)
    return s.strip()


def norm_text(s: Any) -> str:
    # lower + collapsed whitespace, used for keyword matching
    s = cell_text(s).lower()
    return re.sub(r"\s+", " ", s).strip()


def is_blank(v: Any) -> bool:
    return cell_text(v) == ""


def to_scalar(v: Any):
    """
    Normalizes a raw cell value to the RowRecord scalar set (str | int | float):
    - None / NaN -> ""
    - numpy numbers -> python numbers
    - whole floats stay floats, Excel ids keep their int type
    - dates and anything else -> str
    """
    if v is None:
        return ""
    if isinstance(v, (bool, np.bool_)):
        return str(bool(v))
    if isinstance(v, np.integer):
        return int(v)
    if isinstance(v, (float, np.floating)):
        f = float(v)
        if math.isnan(f):
            return ""
        return f
    if isinstance(v, int):
        return v
    if isinstance(v, str):
        return v.strip()
    return str(v)


def is_number(v: Any) -> bool:
    # real numeric cells only; bool is excluded on purpose
    if isinstance(v, (bool, np.bool_)):
        return False
    if isinstance(v, (int, np.integer)):
        return True
    if isinstance(v, (float, np.floating)):
        return not math.isnan(float(v))
    return False


def parse_number(s: Any) -> Optional[float]:
    # "85", " 85.5 " -> float; separators ("1,000", "85,5", "1_000") and anything else -> None
    if is_number(s):
        return float(s)
    txt = cell_text(s)
    if not txt or "," in txt or "_" in txt:
        return None
    try:
        f = float(txt)
    except ValueError:
        return None
    if math.isnan(f) or math.isinf(f):
        return None
    return f


def display_value(v: Any) -> str:
    # 85.0 -> "85", 85.5 -> "85.5"
    if v is None or v == "":
        return ""
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def rules_path() -> Path:
    return DEFAULT_DATA_DIR / "rules.json"

def session_dir() -> Path:
    USER_DATA_DIR.mkdir(parents=True, exist_ok=True)
    return USER_DATA_DIR
