# src/marks_linker/config_io.py
from __future__ import annotations
from pathlib import Path
from dataclasses import fields
from typing import Any, Callable, Dict, List, Mapping, Optional
import json

import yaml  # PyYAML

from .models import MARK_CATEGORY_NAMES, ExtractedRecord, MarkCategory
from .scoring_defaults import DEFAULTS, ScoringDefaults, SimilarityWeights, apply_overrides
from .tools.arabic_text import parse_number


def _read_any(path: str | Path) -> Any:
    """
    Prefer YAML, but transparently accept JSON.
    - If extension is .yml/.yaml -> use YAML
    - If extension is .json -> use JSON
    - Otherwise: try YAML first, then JSON
    """
    p = Path(path)
    data = p.read_text(encoding="utf-8")
    ext = p.suffix.lower()

    if ext in {".yml", ".yaml"}:
        return yaml.safe_load(data)
    if ext == ".json":
        return json.loads(data)
    try:
        return yaml.safe_load(data)
    except yaml.YAMLError:
        return json.loads(data)


def load_config_any(path: str | Path) -> Dict[str, Any]:
    cfg = _read_any(path)
    if not isinstance(cfg, dict):
        raise ValueError("Config root must be a mapping/object.")
    return cfg


def _as_int(value: Any) -> int:
    number = float(value)
    if not number.is_integer():
        raise ValueError(f"{value!r} is not a whole number")
    return int(number)


# setting name -> cast applied to values read from a file
_SETTING_TYPES: Dict[str, Callable[[Any], Any]] = {
    f.name: _as_int if isinstance(getattr(DEFAULTS, f.name), int) else float
    for f in fields(ScoringDefaults)
    if f.name != "weights"
}
_WEIGHT_TYPES: Dict[str, Callable[[Any], Any]] = {f.name: float for f in fields(SimilarityWeights)}


def _coerce(section: Mapping[str, Any], types: Mapping[str, Callable[[Any], Any]], what: str) -> Dict[str, Any]:
    unknown = set(section) - set(types)
    if unknown:
        raise ValueError(f"Unknown {what}(s): {', '.join(sorted(map(str, unknown)))}")
    out: Dict[str, Any] = {}
    for key, value in section.items():
        if value is None:
            continue
        if isinstance(value, bool):
            raise ValueError(f"{what} {key!r} must be a number, got {value!r}")
        try:
            out[key] = types[key](value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"{what} {key!r} must be a number, got {value!r}") from e
    return out


def load_defaults(path: str | Path, base: Optional[ScoringDefaults] = None) -> ScoringDefaults:
    """
    Threshold overrides from YAML/JSON, e.g.

        fuzzy_threshold: 0.85
        weights:
          exact_token: 0.5

    Values are cast to the setting's type ("0.85" reads as 0.85, "60" as 60).
    """
    cfg = load_config_any(path)
    weights = cfg.pop("weights", None)
    if weights is not None and not isinstance(weights, dict):
        raise ValueError("'weights' must be a mapping of similarity weight names to numbers.")
    settings = _coerce(cfg, _SETTING_TYPES, "scoring setting")
    weight_values = _coerce(weights or {}, _WEIGHT_TYPES, "similarity weight")
    return apply_overrides(base, weights=weight_values, **settings)


# ---- extracted records ----

_CATEGORY_KEYS: Dict[str, MarkCategory] = {c.value: c for c in MarkCategory}
_CATEGORY_KEYS.update({name: c for c, name in MARK_CATEGORY_NAMES.items()})


def _category(key: Any) -> Optional[MarkCategory]:
    if not isinstance(key, str):
        return None
    k = key.strip()
    return _CATEGORY_KEYS.get(k) or _CATEGORY_KEYS.get(k.lower())


def _record(item: Any, i: int) -> ExtractedRecord:
    if not isinstance(item, Mapping):
        raise ValueError(f"Record {i} must be a mapping with 'name' and 'marks'.")
    name = item.get("name")
    if name is None or not str(name).strip():
        raise ValueError(f"Record {i} has no name.")

    raw = item.get("marks") or {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Record {i}: 'marks' must be a mapping.")
    marks: Dict[MarkCategory, Optional[float]] = {}
    for key, value in raw.items():
        cat = _category(key)
        if cat is not None:  # unknown mark keys are ignored
            marks[cat] = parse_number(value)
    return ExtractedRecord(name=str(name).strip(), marks=marks)


def load_records(path: str | Path) -> List[ExtractedRecord]:
    """
    Extracted (name, marks) records from YAML/JSON: either a list of records
    or a mapping holding one under 'records' or 'students'.
    """
    data = _read_any(path)
    if isinstance(data, dict):
        data = data.get("records", data.get("students"))
    if not isinstance(data, list):
        raise ValueError("Records file must hold a list (or a mapping with a 'records'/'students' list).")
    return [_record(item, i) for i, item in enumerate(data)]
