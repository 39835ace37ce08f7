"""
Variable normalization: every value becomes a finite number or an opaque string.
"""
import math
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Dict, Mapping, Union

NormalizedValue = Union[float, str]


def normalize_value(value: Any) -> NormalizedValue:
    """
    Normalize a single variable value.

    Rules, in order:
    - a string that fully parses as a float literal becomes that number
    - a date/datetime becomes epoch milliseconds
    - a boolean becomes 1 or 0
    - other numbers pass through
    - anything else is kept as an opaque string
    """
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return value
        return number if math.isfinite(number) else value

    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return float(int(moment.timestamp() * 1000))

    if isinstance(value, date):
        moment = datetime.combine(value, time.min, tzinfo=timezone.utc)
        return float(int(moment.timestamp() * 1000))

    if isinstance(value, bool):
        return 1.0 if value else 0.0

    if isinstance(value, (int, float, Decimal)):
        try:
            number = float(value)
        except OverflowError:
            return str(value)
        return number if math.isfinite(number) else str(value)

    return str(value)


def normalize_variables(variables: Mapping[str, Any]) -> Dict[str, NormalizedValue]:
    """Normalize a variable mapping. Pure; never raises."""
    return {name: normalize_value(value) for name, value in (variables or {}).items()}
