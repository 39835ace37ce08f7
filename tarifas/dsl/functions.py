import math
import statistics

from .errors import FormulaEvaluationError

MAX_ROUND_DECIMALS = 15


def _ensure_list(args):
    """Convert arguments to a list if needed."""
    if len(args) == 1 and isinstance(args[0], (list, tuple)):
        return list(args[0])
    return list(args)


def _round_half_away(value, decimals=0):
    """Round like a spreadsheet: halves move away from zero."""
    if abs(decimals) > MAX_ROUND_DECIMALS or decimals != int(decimals):
        raise FormulaEvaluationError(
            f"round() decimals must be an integer between -{MAX_ROUND_DECIMALS} and {MAX_ROUND_DECIMALS}"
        )
    factor = math.pow(10, decimals)
    scaled = abs(value) * factor
    rounded = math.floor(scaled + 0.5) / factor
    return math.copysign(rounded, value) if rounded else 0.0


def _pow(base, exponent):
    # math.pow raises on overflow and on complex results instead of hanging or returning complex
    return math.pow(base, exponent)


def _mod(x, y):
    if y == 0:
        raise ZeroDivisionError("mod by zero")
    return x - y * math.floor(x / y)


ALLOWED_FUNCTIONS = {
    "add": lambda a, b: a + b,
    "subtract": lambda a, b: a - b,
    "multiply": lambda a, b: a * b,
    "divide": lambda a, b: a / b,
    "pow": _pow,
    "sqrt": math.sqrt,
    "round": _round_half_away,
    "max": lambda *args: max(_ensure_list(args)),
    "min": lambda *args: min(_ensure_list(args)),
    "abs": abs,
    "ceil": lambda x: float(math.ceil(x)),
    "floor": lambda x: float(math.floor(x)),
    "mean": lambda *args: statistics.mean(_ensure_list(args)),
    "median": lambda *args: statistics.median(_ensure_list(args)),
    "std": lambda *args: statistics.stdev(_ensure_list(args)),
    "sum": lambda *args: sum(_ensure_list(args)),
    "mod": _mod,
}
