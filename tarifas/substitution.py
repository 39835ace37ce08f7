"""
Inline variable values into an expression.
"""
import re
from typing import Callable, Mapping

from .normalizer import NormalizedValue
from .utils import format_number

# A comma between two digits is a locale decimal separator ("12,5")
DECIMAL_COMMA_PATTERN = re.compile(r"(?<=\d),(?=\d)")
STRING_LITERAL_PATTERN = re.compile(r'"(?:[^"\\]|\\.)*"')


def to_literal(value: NormalizedValue) -> str:
    """Numbers as decimal text (negatives parenthesised), strings double-quoted."""
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    literal = format_number(value)
    return f"({literal})" if value < 0 else literal


def outside_string_literals(expression: str, rewrite: Callable[[str], str]) -> str:
    """Apply ``rewrite`` to the text between double-quoted literals; literals are copied as is."""
    pieces = []
    cursor = 0
    for match in STRING_LITERAL_PATTERN.finditer(expression):
        pieces.append(rewrite(expression[cursor:match.start()]))
        pieces.append(match.group(0))
        cursor = match.end()
    pieces.append(rewrite(expression[cursor:]))
    return "".join(pieces)


def substitute_variables(expression: str, variables: Mapping[str, NormalizedValue]) -> str:
    """
    Replace each variable identifier with its literal value.

    Matching is on word boundaries, so ``Valor`` never touches ``Valor2``.
    All names are replaced in a single pass and text inside string literals
    is never touched, so an inlined string is not substituted again. Locale
    decimal commas written in the formula become dots; commas that end up
    between two inlined numbers (``max(Valor,Palets)``) stay argument
    separators.
    """
    literals = {name: to_literal(value) for name, value in variables.items()}
    names = sorted((name for name in literals if name), key=len, reverse=True)
    pattern = re.compile(rf"\b(?:{'|'.join(map(re.escape, names))})\b") if names else None

    def rewrite(segment: str) -> str:
        segment = DECIMAL_COMMA_PATTERN.sub(".", segment)
        if pattern is None:
            return segment
        return pattern.sub(lambda match: literals[match.group(0)], segment)

    return outside_string_literals(expression, rewrite)
