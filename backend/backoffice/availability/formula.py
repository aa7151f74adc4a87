"""Arithmetic formulas over the raw inventory fields.

Calculated fields are stored as short expressions such as
``incoming - committed`` or ``(on_hand + incoming) / 2``. Only the three raw
field names, numeric literals, ``+ - * /``, unary signs and parentheses are
accepted. Formulas are parsed with :mod:`ast` and the resulting tree is walked
node by node; nothing is ever handed to ``eval``.
"""

from __future__ import annotations

import ast
import logging
import math
import operator
from dataclasses import asdict, dataclass
from functools import lru_cache
from typing import Dict, Mapping, NamedTuple, Optional

logger = logging.getLogger(__name__)

FIELD_NAMES = ("on_hand", "incoming", "committed")
BLANK_SOURCES = frozenset({"(blank)", "blank"})
LEGACY_SOURCES = frozenset({"quantity", "onRoute"})
RESERVED_NAMES = frozenset(FIELD_NAMES) | BLANK_SOURCES | LEGACY_SOURCES
MAX_FORMULA_LENGTH = 200

_BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}
_UNARY_OPERATORS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}
_OPERATOR_NODES = tuple(_BINARY_OPERATORS) + tuple(_UNARY_OPERATORS)


class FormulaError(ValueError):
    """Raised when a formula cannot be parsed or uses unsupported syntax."""


@dataclass(frozen=True)
class FormulaInputs:
    on_hand: float = 0
    incoming: float = 0
    committed: float = 0

    @classmethod
    def from_values(
        cls,
        on_hand: Optional[float] = None,
        incoming: Optional[float] = None,
        committed: Optional[float] = None,
    ) -> "FormulaInputs":
        """Build inputs from nullable database columns; missing values count as zero."""
        return cls(
            on_hand=on_hand or 0,
            incoming=incoming or 0,
            committed=committed or 0,
        )

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


class FormulaValidation(NamedTuple):
    valid: bool
    error: Optional[str] = None


def _check_parentheses(text: str) -> None:
    depth = 0
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if depth < 0:
            raise FormulaError("Unbalanced parentheses")
    if depth != 0:
        raise FormulaError("Unbalanced parentheses")


def _check_node(node: ast.AST) -> None:
    if isinstance(node, (ast.Expression, ast.Load) + _OPERATOR_NODES):
        return
    if isinstance(node, ast.BinOp):
        if type(node.op) not in _BINARY_OPERATORS:
            raise FormulaError(f"Unsupported operator in formula: {ast.unparse(node)}")
        return
    if isinstance(node, ast.UnaryOp):
        if type(node.op) not in _UNARY_OPERATORS:
            raise FormulaError(f"Unsupported operator in formula: {ast.unparse(node)}")
        return
    if isinstance(node, ast.Name):
        if node.id not in FIELD_NAMES:
            raise FormulaError(
                f'Invalid token in formula: "{node.id}". '
                f"Valid fields are: {', '.join(FIELD_NAMES)}"
            )
        return
    if isinstance(node, ast.Constant):
        value = node.value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise FormulaError(f"Invalid token in formula: {value!r}")
        return
    if isinstance(node, ast.Call):
        raise FormulaError("Function calls are not allowed in formulas")
    raise FormulaError(f"Unsupported expression in formula: {ast.unparse(node)}")


@lru_cache(maxsize=256)
def compile_formula(formula: str) -> ast.Expression:
    """Parse and vet ``formula``, raising :class:`FormulaError` when it is not allowed."""

    text = (formula or "").strip()
    if not text:
        raise FormulaError("Formula cannot be empty")
    if len(text) > MAX_FORMULA_LENGTH:
        raise FormulaError(f"Formula is too long (maximum {MAX_FORMULA_LENGTH} characters)")

    _check_parentheses(text)

    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError as exc:
        raise FormulaError(f"Invalid formula syntax: {exc.msg}") from exc
    except (RecursionError, MemoryError) as exc:
        raise FormulaError("Formula is nested too deeply") from exc

    for node in ast.walk(tree):
        _check_node(node)
    return tree


def _evaluate(node: ast.AST, values: Mapping[str, float]) -> float:
    if isinstance(node, ast.Expression):
        return _evaluate(node.body, values)
    if isinstance(node, ast.BinOp):
        apply = _BINARY_OPERATORS[type(node.op)]
        return apply(_evaluate(node.left, values), _evaluate(node.right, values))
    if isinstance(node, ast.UnaryOp):
        return _UNARY_OPERATORS[type(node.op)](_evaluate(node.operand, values))
    if isinstance(node, ast.Name):
        return float(values[node.id])
    if isinstance(node, ast.Constant):
        return float(node.value)
    raise FormulaError(f"Unsupported expression in formula: {ast.unparse(node)}")


def validate_formula(formula: str) -> FormulaValidation:
    try:
        compile_formula(formula)
    except FormulaError as exc:
        return FormulaValidation(valid=False, error=str(exc))
    return FormulaValidation(valid=True)


def evaluate_formula(formula: str, inputs: FormulaInputs) -> Optional[float]:
    """Evaluate ``formula`` against ``inputs``.

    Returns ``None`` for empty or invalid formulas and for results that are not
    finite numbers (division by zero included).
    """

    if not formula or not formula.strip():
        return None

    try:
        result = _evaluate(compile_formula(formula), inputs.as_dict())
    except FormulaError as exc:
        logger.warning("Invalid formula %r: %s", formula, exc)
        return None
    except (ZeroDivisionError, OverflowError, RecursionError) as exc:
        logger.warning("Formula evaluation error for %r: %s", formula, exc)
        return None

    if not math.isfinite(result):
        return None
    return result


def get_field_value(
    field_source: Optional[str],
    inputs: FormulaInputs,
    formulas: Mapping[str, str],
) -> Optional[float]:
    """Resolve a rule's field source to a number.

    ``field_source`` is a raw field, a legacy alias (``quantity``, ``onRoute``)
    or the name of a calculated field found in ``formulas``.
    """

    if not field_source or field_source in BLANK_SOURCES:
        return None

    if field_source in ("on_hand", "quantity"):
        return inputs.on_hand
    if field_source == "incoming":
        return inputs.incoming
    if field_source == "committed":
        return inputs.committed
    if field_source == "onRoute":
        return max(0, inputs.incoming - inputs.committed)

    formula = formulas.get(field_source)
    if formula:
        return evaluate_formula(formula, inputs)

    logger.warning("Unknown field source: %s", field_source)
    return None


def is_known_field_source(field_source: str, formulas: Mapping[str, str]) -> bool:
    return field_source in RESERVED_NAMES or field_source in formulas
