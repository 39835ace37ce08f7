import math

from .ast_nodes import (
    BinaryOpNode, ConditionalNode, FunctionCallNode, NumberNode, StringNode, UnaryOpNode, VarNode,
)
from .errors import FormulaError, FormulaEvaluationError
from .functions import ALLOWED_FUNCTIONS, _mod, _pow

BINARY_OPERATIONS = {
    "PLUS": lambda a, b: a + b,
    "MINUS": lambda a, b: a - b,
    "MUL": lambda a, b: a * b,
    "DIV": lambda a, b: a / b,
    "MOD": _mod,
    "POW": _pow,
    "GT": lambda a, b: a > b,
    "LT": lambda a, b: a < b,
    "GTE": lambda a, b: a >= b,
    "LTE": lambda a, b: a <= b,
    "EQ": lambda a, b: a == b,
    "NE": lambda a, b: a != b,
}


class Evaluator:
    def __init__(self, context=None):
        self.context = context or {}  # {"Valor": 100.0, "Palets": 5.0}

    def evaluate(self, node):
        """Evaluate a parsed tree, turning host arithmetic errors into FormulaEvaluationError."""
        try:
            return self.eval(node)
        except FormulaError:
            raise
        except (ArithmeticError, TypeError, ValueError, RecursionError) as e:
            raise FormulaEvaluationError(f"{type(e).__name__}: {e}") from e

    def eval(self, node):
        if isinstance(node, NumberNode):
            return node.value

        if isinstance(node, StringNode):
            return node.value

        if isinstance(node, VarNode):
            if node.name not in self.context:
                raise FormulaEvaluationError(f"Unknown variable '{node.name}'")
            return self.context[node.name]

        if isinstance(node, FunctionCallNode):
            name = node.name.lower()
            if name not in ALLOWED_FUNCTIONS:
                raise FormulaEvaluationError(f"Unknown function '{node.name}'")
            func = ALLOWED_FUNCTIONS[name]
            args = [self.eval(a) for a in node.args]
            return func(*args)

        if isinstance(node, ConditionalNode):
            condition = self.eval(node.condition)
            if isinstance(condition, str):
                raise FormulaEvaluationError("Condition must be numeric or boolean")
            # Only the selected branch is evaluated
            if condition:
                return self.eval(node.when_true)
            return self.eval(node.when_false)

        if isinstance(node, UnaryOpNode):
            operand = self.eval(node.operand)
            if node.op.type.name == "MINUS":
                return -operand
            return +operand

        if isinstance(node, BinaryOpNode):
            left = self.eval(node.left)
            right = self.eval(node.right)

            operation = BINARY_OPERATIONS.get(node.op.type.name)
            if operation is None:
                raise FormulaEvaluationError(f"Unsupported operator {node.op}")
            return operation(left, right)

        raise FormulaEvaluationError("Invalid AST node")


def ensure_finite_number(value):
    """Accept only real, finite numbers; booleans and strings are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FormulaEvaluationError(f"Expression did not produce a number: {value!r}")
    if not math.isfinite(value):
        raise FormulaEvaluationError(f"Expression produced a non-finite number: {value}")
    return float(value)
