from __future__ import annotations
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from .utils import load_json, rules_path
from .logger import get_logger

log = get_logger("Config")


@dataclass(frozen=True)
class Settings:
    # content-shape fallback: numeric cell above this is taken as a student id
    id_magnitude_threshold: float = 1000.0
    # positional grade fallback needs at least this many headers
    min_grade_columns: int = 3
    history_limit: int = 50
    allowed_extensions: Tuple[str, ...] = ("xlsx", "xls")
    suggestion_limit: int = 5
    session_prefix: str = "gradeEntry"


DEFAULT_SETTINGS = Settings()


def _coerce(name: str, value: Any, default: Any) -> Any:
    if isinstance(default, tuple):
        if isinstance(value, (list, tuple)) and value:
            return tuple(str(v).lower().lstrip(".") for v in value)
        raise ValueError(f"{name}: expected a non-empty list")
    if isinstance(default, bool):
        return bool(value)
    if isinstance(default, int) and not isinstance(default, bool):
        if isinstance(value, bool):
            raise ValueError(f"{name}: expected a number")
        n = int(value)
        if n < 1:
            raise ValueError(f"{name}: must be >= 1")
        return n
    if isinstance(default, float):
        if isinstance(value, bool):
            raise ValueError(f"{name}: expected a number")
        return float(value)
    if isinstance(default, str):
        s = str(value).strip()
        if not s:
            raise ValueError(f"{name}: must not be empty")
        return s
    return value


def settings_from_dict(data: Dict[str, Any]) -> Settings:
    """Unknown keys are ignored, invalid values fall back to defaults."""
    if not isinstance(data, dict):
        return DEFAULT_SETTINGS
    values: Dict[str, Any] = {}
    for f in fields(Settings):
        if f.name not in data:
            continue
        default = getattr(DEFAULT_SETTINGS, f.name)
        try:
            values[f.name] = _coerce(f.name, data[f.name], default)
        except (TypeError, ValueError) as e:
            log.warning("ignoring setting %s: %s", f.name, e)
    return Settings(**values)


def load_settings(path: Optional[Path] = None) -> Settings:
    data = load_json(path or rules_path(), {})
    return settings_from_dict(data)
