"""Evaluate user-defined parameters.

Equations use a small arithmetic grammar parsed with :mod:`ast`: numbers,
parameter names, ``${Any Name}`` references, ``+ - * / // % **``, unary
signs, parentheses and a handful of math functions.  Nothing is ever
executed; the tree is walked node by node and anything outside the grammar
is rejected.  Arithmetic is done in floating point and an overflow is reported as
an error.
"""

from __future__ import annotations

import ast
import logging
import math
import operator
import re
from typing import Any, Callable, Iterable, Mapping

from bimtables.errors import EquationError
from bimtables.models.parameters import UserParameter

logger = logging.getLogger(__name__)

_REFERENCE = re.compile(r"\$\{([^}]+)\}")

# Larger exponents are refused
MAX_EXPONENT = 1000

_BINARY_OPS: dict[type, Callable[[float, float], float]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: math.pow,
}

_UNARY_OPS: dict[type, Callable[[float], float]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


def _checked_pow(base: float, exponent: float) -> float:
    if abs(exponent) > MAX_EXPONENT:
        raise EquationError("Exponent too large", {"exponent": exponent})
    return math.pow(base, exponent)


FUNCTIONS: dict[str, Callable[..., float]] = {
    "abs": abs,
    "ceil": math.ceil,
    "floor": math.floor,
    "round": round,
    "max": max,
    "min": min,
    "pow": _checked_pow,
    "sqrt": math.sqrt,
}


def _to_number(name: str, value: Any) -> float:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise EquationError(
            f"Parameter {name!r} is not numeric", {"name": name, "value": value}
        ) from None


class _Evaluator:
    def __init__(self, variables: Mapping[str, float]) -> None:
        self.variables = variables

    def visit(self, node: ast.AST) -> float:
        if isinstance(node, ast.Expression):
            return self.visit(node.body)

        if isinstance(node, ast.Constant):
            if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
                raise EquationError("Only numeric literals are allowed", {"value": node.value})
            return float(node.value)

        if isinstance(node, ast.Name):
            if node.id not in self.variables:
                raise EquationError(f"Unknown parameter {node.id!r}", {"name": node.id})
            return float(self.variables[node.id])

        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
            left = self.visit(node.left)
            right = self.visit(node.right)
            if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
                raise EquationError("Exponent too large", {"exponent": right})
            try:
                result = _BINARY_OPS[type(node.op)](left, right)
            except ZeroDivisionError:
                raise EquationError("Division by zero") from None
            except OverflowError:
                raise EquationError("Numeric overflow") from None
            except ValueError as exc:
                raise EquationError(f"Math domain error: {exc}") from None
            if math.isinf(result) and math.isfinite(left) and math.isfinite(right):
                raise EquationError("Numeric overflow")
            return result

        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
            return _UNARY_OPS[type(node.op)](self.visit(node.operand))

        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
                raise EquationError("Unsupported function call", {"node": ast.dump(node.func)})
            if node.keywords:
                raise EquationError("Keyword arguments are not allowed")
            args = [self.visit(arg) for arg in node.args]
            try:
                return float(FUNCTIONS[node.func.id](*args))
            except (TypeError, ValueError, OverflowError) as exc:
                raise EquationError(f"{node.func.id}() failed: {exc}") from exc

        raise EquationError(
            f"Unsupported expression element: {type(node).__name__}",
            {"node": type(node).__name__},
        )


def substitute_references(expression: str) -> tuple[str, dict[str, str]]:
    """Replace ``${Name}`` references by identifiers.

    Returns the rewritten expression and an identifier -> name map.
    """
    aliases: dict[str, str] = {}

    def _alias(match: re.Match) -> str:
        name = match.group(1).strip()
        alias = f"__ref{len(aliases)}"
        aliases[alias] = name
        return alias

    return _REFERENCE.sub(_alias, expression), aliases


def evaluate_expression(expression: str, variables: Mapping[str, Any] | None = None) -> float:
    """Evaluate *expression* against *variables*.

    Raises
    ------
    EquationError
        On a syntax error, an unknown name, a non-numeric value, or any
        construct outside the arithmetic grammar.
    """
    variables = variables or {}
    rewritten, aliases = substitute_references(expression)
    try:
        tree = ast.parse(rewritten.strip(), mode="eval")
    except SyntaxError as exc:
        raise EquationError(f"Invalid equation: {expression!r}", {"offset": exc.offset}) from exc

    bound: dict[str, float] = {}
    for name, value in variables.items():
        if value is None:
            continue
        try:
            bound[name] = _to_number(name, value)
        except EquationError:
            continue
    for alias, name in aliases.items():
        if name not in variables or variables[name] is None:
            raise EquationError(f"Unknown parameter {name!r}", {"name": name})
        bound[alias] = _to_number(name, variables[name])

    return _Evaluator(bound).visit(tree)


def evaluate_parameter(
    parameter: UserParameter,
    all_parameters: Iterable[UserParameter] = (),
    row: Mapping[str, Any] | None = None,
) -> Any:
    """Value of a user parameter for one row.

    Fixed parameters return their value.  Equations see the row's values
    and every fixed parameter with a numeric value; a failed evaluation
    returns ``nan``.
    """
    if parameter.type == "fixed":
        return parameter.value

    if not parameter.equation:
        return math.nan

    variables: dict[str, Any] = dict(row or {})
    for other in all_parameters:
        if other.type != "fixed" or other.value in (None, ""):
            continue
        try:
            variables[other.name] = _to_number(other.name, other.value)
        except EquationError:
            continue

    try:
        return evaluate_expression(parameter.equation, variables)
    except EquationError as exc:
        logger.warning("Evaluating %s failed: %s", parameter.name, exc)
        return math.nan
