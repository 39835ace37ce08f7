"""
Numeric helpers shared by the tariff engine.
"""
import math
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENTS = Decimal("0.01")


def round_money(value: float) -> float:
    """
    Round a monetary amount to 2 decimals, halves away from zero.

    Uses the shortest repr of the float so 1.005 rounds to 1.01 as written.
    Non-finite input rounds to 0.0.
    """
    if value is None or not math.isfinite(value):
        return 0.0
    try:
        rounded = Decimal(repr(float(value))).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return 0.0
    return float(rounded) + 0.0  # normalises -0.0


def to_number(value: Any, default: float = 0.0) -> float:
    """Coerce a number or numeric string to a finite float, else return default."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(",", "."))
        except ValueError:
            return default
    else:
        return default
    return number if math.isfinite(number) else default


def format_number(value: float) -> str:
    """Render a number as an expression literal (integral floats without the trailing .0)."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)
