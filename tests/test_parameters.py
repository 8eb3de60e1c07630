"""Tests for user-defined parameters and the equation evaluator."""

from __future__ import annotations

import math

import pytest

from bimtables.errors import EquationError
from bimtables.models.parameters import UserParameter
from bimtables.parameters.equations import (
    evaluate_expression,
    evaluate_parameter,
    substitute_references,
)


class TestEvaluateExpression:

    def test_arithmetic(self):
        assert evaluate_expression("1 + 2 * 3") == 7
        assert evaluate_expression("(1 + 2) * 3") == 9
        assert evaluate_expression("7 // 2 + 7 % 2") == 4
        assert evaluate_expression("-2 ** 2") == -4

    def test_variables_and_references(self):
        variables = {"width": 200, "Base Offset": "50"}
        assert evaluate_expression("width / 2", variables) == 100
        assert evaluate_expression("${Base Offset} + width", variables) == 250

    def test_functions(self):
        assert evaluate_expression("max(1, 5, 3)") == 5
        assert evaluate_expression("sqrt(16)") == 4
        assert evaluate_expression("round(2.6)") == 3
        assert evaluate_expression("ceil(1.2) + floor(1.8)") == 3

    def test_booleans_count_as_numbers(self):
        assert evaluate_expression("flag * 10", {"flag": True}) == 10

    @pytest.mark.parametrize(
        "expression",
        [
            "__import__('os')",
            "width.real",
            "[1, 2]",
            "'text'",
            "lambda: 1",
            "open('x')",
            "1 if True else 2",
            "max(key=1)",
        ],
    )
    def test_rejects_outside_grammar(self, expression):
        with pytest.raises(EquationError):
            evaluate_expression(expression, {"width": 1})

    def test_errors(self):
        with pytest.raises(EquationError, match="Division by zero"):
            evaluate_expression("1 / 0")
        with pytest.raises(EquationError, match="Unknown parameter"):
            evaluate_expression("missing + 1")
        with pytest.raises(EquationError, match="Unknown parameter"):
            evaluate_expression("${Not There}")
        with pytest.raises(EquationError):
            evaluate_expression("1 +")
        with pytest.raises(EquationError, match="Exponent"):
            evaluate_expression("2 ** 5000")
        with pytest.raises(EquationError):
            evaluate_expression("name * 2", {"name": "wall"})

    def test_nested_powers_overflow(self):
        with pytest.raises(EquationError, match="overflow"):
            evaluate_expression("(9 ** 999) ** 999")
        with pytest.raises(EquationError, match="overflow"):
            evaluate_expression("((9 ** 999) ** 999) ** 999")
        with pytest.raises(EquationError, match="overflow"):
            evaluate_expression("big * big", {"big": 10 ** 200})

    def test_results_are_floats(self):
        assert evaluate_expression("7 // 2") == 3.0
        assert isinstance(evaluate_expression("2 ** 10"), float)
        with pytest.raises(EquationError, match="domain"):
            evaluate_expression("(-8) ** 0.5")

    def test_substitute_references(self):
        rewritten, aliases = substitute_references("${A B} + ${C}")
        assert rewritten == "__ref0 + __ref1"
        assert aliases == {"__ref0": "A B", "__ref1": "C"}


class TestEvaluateParameter:

    def _params(self) -> list[UserParameter]:
        return [
            UserParameter(id="1", name="rate", type="fixed", value="2.5"),
            UserParameter(id="2", name="label", type="fixed", value="text"),
            UserParameter(id="3", name="cost", type="equation", equation="area * rate"),
        ]

    def test_fixed_returns_value(self):
        assert evaluate_parameter(self._params()[1]) == "text"

    def test_equation_uses_row_and_fixed(self):
        params = self._params()
        assert evaluate_parameter(params[2], params, {"area": 4}) == 10

    def test_failure_is_nan(self):
        params = self._params()
        assert math.isnan(evaluate_parameter(params[2], params, {}))

    def test_missing_equation_is_nan(self):
        assert math.isnan(evaluate_parameter(UserParameter(id="x", name="x", type="equation")))
