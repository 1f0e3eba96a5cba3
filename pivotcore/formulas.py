"""Calculated measures: a small arithmetic language over already-aggregated values.

Supported:
- numbers, parentheses, unary ``+``/``-``
- binary ``+ - * / // % **``
- references to measures in the same cell, written as ``"name"``, ``[name]``,
  ``[SUM(field)]`` or, when the name is a plain identifier, bare ``name``

A reference resolves, in order, to an exact measure key in the cell (a value
measure such as ``"sales (sum)"`` or an earlier calculated measure), to
``"field (agg)"`` for the ``[AGG(field)]`` form, or to the first value measure
aggregating a field of that name.

Formulas never see raw rows. Anything outside the grammar, a reference with no
value, division by zero or a non-finite result makes the measure ``None`` for
that cell only.
"""

from __future__ import annotations

import ast
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Collection, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pivotcore.config import CalculatedMeasureConfig, PivotValueFieldConfig, measure_key, parse_aggregation
from pivotcore.errors import FormulaError

logger = logging.getLogger(__name__)

_REFERENCE = re.compile(r'"([^"]*)"|\[([^\]]*)\]')
_AGG_CALL = re.compile(r"^\s*([A-Za-z_]+)\s*\((.*)\)\s*$")
_PLACEHOLDER = "__ref{}__"

_ALLOWED_NODES = (
    ast.Expression,
    ast.BinOp,
    ast.UnaryOp,
    ast.Constant,
    ast.Name,
    ast.Load,
    ast.Add,
    ast.Sub,
    ast.Mult,
    ast.Div,
    ast.FloorDiv,
    ast.Mod,
    ast.Pow,
    ast.USub,
    ast.UAdd,
)


def resolve_key(
    reference: str,
    available: Collection[str],
    value_configs: Sequence[PivotValueFieldConfig],
) -> Optional[str]:
    """Map a reference as written in a formula to a measure key, or None."""
    ref = reference.strip()
    if ref in available:
        return ref
    match = _AGG_CALL.match(ref)
    if match:
        agg = parse_aggregation(match.group(1))
        if agg is not None:
            key = measure_key(match.group(2).strip(), agg)
            return key if key in available else None
    for vc in value_configs:
        if vc.field == ref and vc.key in available:
            return vc.key
    return None


@dataclass(frozen=True)
class CompiledFormula:
    formula: str
    tree: Optional[ast.Expression] = None
    # identifier in the tree -> reference text as written
    references: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.tree is not None

    def unresolved(self, available: Collection[str], value_configs: Sequence[PivotValueFieldConfig]) -> List[str]:
        return [ref for ref in self.references.values() if resolve_key(ref, available, value_configs) is None]

    def evaluate(self, cell: Mapping[str, object], value_configs: Sequence[PivotValueFieldConfig] = ()) -> float:
        """Evaluate against one cell. Raises FormulaError on any failure."""
        if self.tree is None:
            raise FormulaError(self.error or f"Formula '{self.formula}' did not compile")
        try:
            result = _evaluate(self.tree, self._bind(cell, value_configs))
        except (ZeroDivisionError, OverflowError, TypeError) as exc:
            raise FormulaError(f"Arithmetic error in '{self.formula}': {exc}") from exc
        if isinstance(result, complex) or not math.isfinite(result):
            raise FormulaError(f"Formula '{self.formula}' produced a non-finite result")
        return float(result)

    def evaluate_or_none(self, cell: Mapping[str, object], value_configs: Sequence[PivotValueFieldConfig] = ()) -> Optional[float]:
        try:
            return self.evaluate(cell, value_configs)
        except FormulaError:
            return None

    def _bind(self, cell: Mapping[str, object], value_configs: Sequence[PivotValueFieldConfig]) -> Dict[str, float]:
        bound: Dict[str, float] = {}
        for name, ref in self.references.items():
            key = resolve_key(ref, cell.keys(), value_configs)
            if key is None:
                raise FormulaError(f"Unknown measure '{ref}'")
            value = cell.get(key)
            if value is None or isinstance(value, bool):
                raise FormulaError(f"Measure '{ref}' has no value")
            try:
                bound[name] = float(value)  # type: ignore[arg-type]
            except (TypeError, ValueError) as exc:
                raise FormulaError(f"Measure '{ref}' is not numeric") from exc
        return bound


def _evaluate(node: ast.AST, values: Mapping[str, float]) -> float:
    if isinstance(node, ast.Expression):
        return _evaluate(node.body, values)
    if isinstance(node, ast.Constant):
        return float(node.value)
    if isinstance(node, ast.Name):
        return values[node.id]
    if isinstance(node, ast.UnaryOp):
        operand = _evaluate(node.operand, values)
        if isinstance(node.op, ast.USub):
            return -operand
        return +operand
    if isinstance(node, ast.BinOp):
        left = _evaluate(node.left, values)
        right = _evaluate(node.right, values)
        if isinstance(node.op, ast.Add):
            return left + right
        if isinstance(node.op, ast.Sub):
            return left - right
        if isinstance(node.op, ast.Mult):
            return left * right
        if isinstance(node.op, ast.Div):
            return left / right
        if isinstance(node.op, ast.FloorDiv):
            return left // right
        if isinstance(node.op, ast.Mod):
            return left % right
        if isinstance(node.op, ast.Pow):
            return left**right
    raise FormulaError(f"Unsupported expression node {node.__class__.__name__}")


def _substitute_references(formula: str) -> Tuple[str, Dict[str, str]]:
    references: Dict[str, str] = {}

    def repl(match: "re.Match[str]") -> str:
        name = _PLACEHOLDER.format(len(references))
        references[name] = match.group(1) if match.group(1) is not None else match.group(2)
        return f" {name} "

    return _REFERENCE.sub(repl, formula), references


def parse_formula(formula: str) -> CompiledFormula:
    """Parse without logging; raises FormulaError."""
    text = (formula or "").strip()
    if not text:
        raise FormulaError("Formula is empty")
    expr, references = _substitute_references(text)
    try:
        tree = ast.parse(expr.strip(), mode="eval")
    except SyntaxError as exc:
        raise FormulaError(f"Invalid formula '{formula}': {exc.msg}") from exc

    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            raise FormulaError(f"Unsupported expression in '{formula}': {node.__class__.__name__}")
        if isinstance(node, ast.Constant) and (isinstance(node.value, bool) or not isinstance(node.value, (int, float))):
            raise FormulaError(f"Unsupported constant in '{formula}': {node.value!r}")
        if isinstance(node, ast.Name) and node.id not in references:
            references[node.id] = node.id
    return CompiledFormula(formula=formula, tree=tree, references=references)


def compile_formula(formula: str) -> CompiledFormula:
    try:
        return parse_formula(formula)
    except FormulaError as exc:
        logger.warning("calculated measure formula rejected: %s", exc)
        return CompiledFormula(formula=formula, error=str(exc))


def compile_measures(measures: Iterable[CalculatedMeasureConfig]) -> List[Tuple[CalculatedMeasureConfig, CompiledFormula]]:
    return [(m, compile_formula(m.formula)) for m in measures]


def apply_calculated_measures(
    cell: Dict[str, Optional[float]],
    compiled: Sequence[Tuple[CalculatedMeasureConfig, CompiledFormula]],
    value_configs: Sequence[PivotValueFieldConfig],
) -> Dict[str, Optional[float]]:
    """Add each calculated measure to ``cell`` in order; later ones may use earlier ones."""
    for measure, formula in compiled:
        cell[measure.name] = formula.evaluate_or_none(cell, value_configs)
    return cell
