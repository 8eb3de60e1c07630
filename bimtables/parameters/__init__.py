"""User-defined parameters."""

from bimtables.parameters.equations import evaluate_expression, evaluate_parameter

__all__ = ["evaluate_expression", "evaluate_parameter"]
