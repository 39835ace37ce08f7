"""
Rewrites the spreadsheet-style functions users write (SI, REDONDEAR, PROMEDIO,
calendar helpers, TARIFAESCALONADA) into the arithmetic and ternary syntax the
DSL evaluator understands.

Arguments are split on top-level ``;`` only. A call whose arguments do not fit
is left untouched so the evaluator fails on it and the fallback chain takes over.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from .conf import get_setting
from .context import Clock, EvaluationContext, system_clock
from .dsl import FormulaLimitError
from .utils import format_number

logger = logging.getLogger(__name__)

CONDITIONAL = "SI"
ROUNDING = "REDONDEAR"
AVERAGE = "PROMEDIO"
TIERED_RATE = "TARIFAESCALONADA"
CALENDAR_FUNCTIONS = ("DIASEMANA", "MES", "TRIMESTRE", "ESFINDESEMANA")

CUSTOM_FUNCTIONS = (CONDITIONAL, ROUNDING, AVERAGE) + CALENDAR_FUNCTIONS + (TIERED_RATE,)

DECIMALS_PATTERN = re.compile(r"\d{1,2}")
ANY_CALL_PATTERN = re.compile(r"\b([A-Za-z]\w*)\s*\(")


@dataclass(frozen=True)
class CallSite:
    name: str
    start: int
    end: int
    body: str

    @property
    def arguments(self) -> List[str]:
        return split_arguments(self.body)


def split_arguments(body: str, separator: str = ";") -> List[str]:
    """Split a call body on separators that are not nested inside parentheses."""
    parts: List[str] = []
    current: List[str] = []
    depth = 0
    for char in body:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if char == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    parts.append("".join(current).strip())
    return parts


def _closing_paren(expression: str, open_index: int) -> Optional[int]:
    depth = 0
    for index in range(open_index, len(expression)):
        char = expression[index]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index
    return None


def _call_pattern(name: str) -> "re.Pattern[str]":
    return re.compile(rf"\b({re.escape(name)})\s*\(", re.IGNORECASE)


def iter_calls(expression: str, name: Optional[str] = None) -> Iterator[CallSite]:
    """
    Yield every balanced call site of ``name`` (or of any function when None).

    Call sites with no closing parenthesis are skipped.
    """
    pattern = _call_pattern(name) if name else ANY_CALL_PATTERN
    for match in pattern.finditer(expression):
        close = _closing_paren(expression, match.end() - 1)
        if close is None:
            continue
        yield CallSite(match.group(1), match.start(), close + 1, expression[match.end():close])


def _rewrite_calls(
    expression: str,
    name: str,
    build: Callable[[List[str]], Optional[str]],
) -> Tuple[str, int]:
    """
    Replace each call of ``name`` with ``build(arguments)``.

    Calls nested in the arguments of a rewritten call are copied verbatim and
    picked up by the next pass. ``build`` returns None to leave a call as is.
    """
    pieces: List[str] = []
    cursor = 0
    rewrites = 0
    for call in iter_calls(expression, name):
        if call.start < cursor:
            continue
        replacement = build(call.arguments)
        if replacement is None:
            continue
        pieces.append(expression[cursor:call.start])
        pieces.append(replacement)
        cursor = call.end
        rewrites += 1
    pieces.append(expression[cursor:])
    return "".join(pieces), rewrites


def _build_conditional(args: List[str]) -> Optional[str]:
    if len(args) != 3 or not all(args):
        return None
    condition, when_true, when_false = args
    return f"({condition} ? {when_true} : {when_false})"


def _build_rounding(args: List[str]) -> Optional[str]:
    if len(args) != 2 or not args[0] or not DECIMALS_PATTERN.fullmatch(args[1]):
        return None
    factor = 10 ** int(args[1])
    return f"(round({args[0]} * {factor}) / {factor})"


def _build_average(args: List[str]) -> Optional[str]:
    if not all(args) or len(args) > get_setting("MAX_FUNCTION_ARGUMENTS"):
        return None
    return f"(({' + '.join(args)}) / {len(args)})"


def _parse_tier(raw: str) -> Optional[Tuple[float, float]]:
    parts = [part.strip().replace(",", ".") for part in raw.split(":")]
    if len(parts) != 2:
        return None
    try:
        return float(parts[0]), float(parts[1])
    except ValueError:
        return None


def build_tier_chain(value: str, tiers: Sequence[Tuple[float, float]]) -> str:
    """
    Nested ternary for a tiered rate over (threshold, tariff) pairs.

    Thresholds are sorted ascending. ``value <= threshold`` selects that
    threshold's tariff, so a value on a boundary gets the lower tier; anything
    above the highest threshold gets the highest tariff.
    """
    ordered = sorted(tiers, key=lambda tier: tier[0])
    chain = format_number(ordered[-1][1])
    for threshold, tariff in reversed(ordered):
        chain = f"(({value}) <= {format_number(threshold)} ? {format_number(tariff)} : {chain})"
    return chain


def _build_tiered_rate(args: List[str]) -> Optional[str]:
    if len(args) < 2 or not args[0]:
        return None
    if len(args) - 1 > get_setting("MAX_FUNCTION_ARGUMENTS"):
        return None
    tiers = [_parse_tier(raw) for raw in args[1:]]
    if any(tier is None for tier in tiers):
        return None
    return build_tier_chain(args[0], tiers)


def _replace_calendar(expression: str, context: EvaluationContext, clock: Clock) -> Tuple[str, int]:
    resolvers = {
        "DIASEMANA": context.resolve_day_of_week,
        "MES": context.resolve_month,
        "TRIMESTRE": context.resolve_quarter,
        "ESFINDESEMANA": context.resolve_weekend,
    }
    total = 0
    for name, resolve in resolvers.items():
        pattern = re.compile(rf"\b{name}\s*\(\s*\)", re.IGNORECASE)
        expression, count = pattern.subn(lambda _match: str(resolve(clock)), expression)
        total += count
    return expression, total


def transpile_pass(expression: str, context: EvaluationContext, clock: Clock) -> Tuple[str, int]:
    """Apply every rewrite once, in the fixed order. Returns the new text and the rewrite count."""
    total = 0
    for name, build in (
        (CONDITIONAL, _build_conditional),
        (ROUNDING, _build_rounding),
        (AVERAGE, _build_average),
    ):
        expression, count = _rewrite_calls(expression, name, build)
        total += count

    expression, count = _replace_calendar(expression, context, clock)
    total += count

    expression, count = _rewrite_calls(expression, TIERED_RATE, _build_tiered_rate)
    return expression, total + count


def transpile(
    formula: str,
    context: Optional[EvaluationContext] = None,
    clock: Optional[Clock] = None,
    max_passes: Optional[int] = None,
) -> str:
    """
    Rewrite custom functions until nothing changes or the pass limit is hit.

    Args:
        formula: User formula, e.g. "SI(Distancia>100;Valor*1.2;Valor)".
        context: Supplies calendar values; missing ones come from the clock.
        clock: Source of "now" for calendar functions. Read once per call.
        max_passes: Overrides the MAX_TRANSPILE_PASSES setting.

    Returns:
        The rewritten expression. Unrecognised calls are left in place.

    Raises:
        FormulaLimitError: If the rewritten text grows past MAX_EXPANDED_LENGTH
            (nested TARIFAESCALONADA calls repeat their value once per tier).
    """
    if not formula:
        return formula

    context = context or EvaluationContext()
    now: datetime = (clock or system_clock)()
    frozen_clock: Clock = lambda: now
    limit = max_passes or get_setting("MAX_TRANSPILE_PASSES")
    max_length = get_setting("MAX_EXPANDED_LENGTH")

    expression = formula
    for pass_number in range(1, limit + 1):
        expression, rewrites = transpile_pass(expression, context, frozen_clock)
        if len(expression) > max_length:
            raise FormulaLimitError(
                f"Expanded formula is too long ({len(expression)} characters, maximum {max_length})"
            )
        if not rewrites:
            break
        logger.debug(f"Transpile pass {pass_number}: {rewrites} rewrite(s) -> {expression}")
    else:
        logger.debug(f"Transpile pass limit ({limit}) reached for formula: {formula}")

    return expression
