"""Editor-side checks run before a compute.

The engine itself never rejects a config: unknown fields bucket as empty and
broken formulas yield None cells. These checks let a caller report the same
problems up front.
"""

from __future__ import annotations

from collections import Counter
from typing import Any, Iterable, List, Optional, Sequence, Union

from pivotcore.config import PivotConfig, normalize_config
from pivotcore.errors import ConfigValidationError, FormulaError
from pivotcore.formulas import parse_formula


def _duplicates(names: Iterable[str]) -> List[str]:
    counts = Counter(names)
    return [name for name, n in counts.items() if n > 1]


def _raw_measures(raw: Any) -> Sequence[Any]:
    if not isinstance(raw, dict):
        return ()
    return raw.get("calculated_measures", raw.get("calculatedMeasures")) or ()


def validate_config(config: Union[PivotConfig, dict, None], headers: Optional[Iterable[str]] = None) -> List[str]:
    """Return human-readable issues; an empty list means the config is usable.

    ``headers`` enables the unknown-field check. Without it only structural
    and formula problems are reported.
    """
    issues: List[str] = []
    for idx, item in enumerate(_raw_measures(config)):
        if isinstance(item, dict) and not str(item.get("name") or "").strip():
            issues.append(f"Calculated measure #{idx + 1} has no name")

    cfg = normalize_config(config)

    for area, names in (
        ("rows", cfg.row_fields),
        ("columns", cfg.column_fields),
        ("values", [v.field for v in cfg.values]),
    ):
        for name in _duplicates(names):
            issues.append(f"'{name}' appears more than once in {area}")

    for name in sorted(set(cfg.row_fields) & set(cfg.column_fields)):
        issues.append(f"'{name}' is used in both rows and columns")

    if headers is not None:
        known = set(headers)
        for area, names in (
            ("rows", cfg.row_fields),
            ("columns", cfg.column_fields),
            ("values", [v.field for v in cfg.values]),
            ("filters", [f.field for f in cfg.filters]),
        ):
            for name in dict.fromkeys(names):
                if name not in known:
                    issues.append(f"Unknown field '{name}' in {area}")

    value_keys = [v.key for v in cfg.values]
    value_fields = {v.field for v in cfg.values}
    available: List[str] = list(value_keys)
    seen_names: set = set()
    for measure in cfg.calculated_measures:
        name = measure.name
        if name in seen_names:
            issues.append(f"Calculated measure name '{name}' is used more than once")
        elif name in value_keys or name in value_fields:
            issues.append(f"Calculated measure name '{name}' collides with a value field")
        seen_names.add(name)

        if not measure.formula.strip():
            issues.append(f"Calculated measure '{name}' has an empty formula")
        else:
            try:
                compiled = parse_formula(measure.formula)
            except FormulaError as exc:
                issues.append(f"Calculated measure '{name}': {exc}")
            else:
                for ref in compiled.unresolved(available, cfg.values):
                    issues.append(f"Calculated measure '{name}' refers to unknown measure '{ref}'")
        # later measures may refer to this one
        available.append(name)

    return issues


def ensure_valid_config(config: Union[PivotConfig, dict, None], headers: Optional[Iterable[str]] = None) -> PivotConfig:
    issues = validate_config(config, headers)
    if issues:
        raise ConfigValidationError(issues)
    return normalize_config(config)
