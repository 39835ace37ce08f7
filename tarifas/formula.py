"""
Formula evaluation with a fallback chain.

A formula goes through normalize -> transpile -> substitute -> safe evaluate.
If that fails, numeric ternaries are simplified and the evaluator is retried;
if that fails too, the basic pallet computation ``Valor * Palets + Peaje`` is
used. Callers of evaluate_formula always get a finite float.
"""
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .conf import get_setting
from .context import Clock, EvaluationContext
from .dsl import FormulaError, FormulaEvaluationError, safe_evaluate
from .normalizer import normalize_variables
from .substitution import substitute_variables
from .transpiler import transpile

logger = logging.getLogger(__name__)

PRIMARY = "primary"
ALTERNATIVE = "alternative"
BASIC = "basic"
EMPTY = "empty"

_UNSIGNED = r"\d+(?:\.\d+)?(?:[eE][+-]?\d+)?"
# Substitution parenthesises negatives, so "(-5)" counts as a literal too
NUMERIC_LITERAL = rf"(?:\(-{_UNSIGNED}\)|-?{_UNSIGNED})"
NUMERIC_TERNARY_PATTERN = re.compile(
    rf"\(\s*({NUMERIC_LITERAL})\s*\?\s*({NUMERIC_LITERAL})\s*:\s*({NUMERIC_LITERAL})\s*\)"
)

SafeEvaluator = Callable[[str], float]
Stage = Tuple[str, Callable[[], float]]


@dataclass(frozen=True)
class StageOutcome:
    name: str
    value: Optional[float] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {"stage": self.name, "value": self.value, "error": self.error}


@dataclass
class EvaluationReport:
    """What evaluate_formula computed, which stage produced it, and every attempt made."""

    value: float
    stage: str
    expression: Optional[str] = None
    attempts: List[StageOutcome] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.stage not in (PRIMARY, EMPTY)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "stage": self.stage,
            "expression": self.expression,
            "degraded": self.degraded,
            "attempts": [attempt.to_dict() for attempt in self.attempts],
        }


def prepare_expression(
    formula: str,
    variables: Mapping[str, Any],
    context: Optional[EvaluationContext] = None,
    clock: Optional[Clock] = None,
) -> str:
    """Normalize variables, rewrite custom functions and inline the values."""
    normalized = normalize_variables(variables)
    transpiled = transpile(formula, context, clock)
    expression = substitute_variables(transpiled, normalized)
    logger.debug(f"Expression to evaluate: {expression}")
    return expression


def _pick_branch(match: "re.Match[str]") -> str:
    condition, when_true, when_false = match.groups()
    return when_true if float(condition.strip("()")) > 0 else when_false


def simplify_numeric_ternaries(expression: str) -> str:
    """
    Collapse ``(N1 ? N2 : N3)`` with numeric literals into N2 when N1 > 0, else N3.

    Repeats until stable so chains built from nested ternaries collapse fully.
    """
    previous = None
    while previous != expression:
        previous = expression
        expression = NUMERIC_TERNARY_PATTERN.sub(_pick_branch, expression)
    return expression


def _numeric(value: Any) -> float:
    return value if isinstance(value, float) and math.isfinite(value) else 0.0


def basic_computation(variables: Mapping[str, Any]) -> float:
    """``Valor * Palets + Peaje`` with missing or non-numeric values taken as 0."""
    normalized = normalize_variables(variables)
    result = (
        _numeric(normalized.get("Valor")) * _numeric(normalized.get("Palets"))
        + _numeric(normalized.get("Peaje"))
    )
    return result if math.isfinite(result) else 0.0


def run_stages(stages: Sequence[Stage]) -> Tuple[Optional[float], Optional[str], List[StageOutcome]]:
    """
    Run stages in order and stop at the first one that returns a value.

    Every failure is recorded as a StageOutcome; nothing propagates.
    """
    attempts: List[StageOutcome] = []
    for name, stage in stages:
        logger.debug(f"Evaluation stage '{name}' started")
        try:
            value = stage()
        except FormulaError as e:
            logger.warning(f"Evaluation stage '{name}' failed: {e}")
            attempts.append(StageOutcome(name, error=str(e)))
            continue
        except Exception as e:
            # Not a formula problem: a defect in the pipeline itself
            logger.error(f"Evaluation stage '{name}' raised unexpectedly: {e!r}", exc_info=True)
            attempts.append(StageOutcome(name, error=f"{type(e).__name__}: {e}"))
            continue
        logger.debug(f"Evaluation stage '{name}' succeeded: {value}")
        attempts.append(StageOutcome(name, value=value))
        return value, name, attempts
    return None, None, attempts


def evaluate_formula_report(
    formula: str,
    variables: Optional[Mapping[str, Any]] = None,
    context: Optional[EvaluationContext] = None,
    clock: Optional[Clock] = None,
    evaluator: SafeEvaluator = safe_evaluate,
    strict: bool = False,
) -> EvaluationReport:
    """
    Evaluate a formula and report how the result was obtained.

    Args:
        formula: User formula.
        variables: Variable values (numbers, numeric strings, booleans, dates, strings).
        context: Calendar values for DIASEMANA(), MES(), TRIMESTRE(), ESFINDESEMANA().
        clock: Source of "now" when the context has no calendar values.
        evaluator: Sandboxed expression evaluator.
        strict: Skip the basic computation and raise FormulaEvaluationError
            when neither the primary nor the alternative stage succeeds.

    Returns:
        EvaluationReport whose value is always a finite float when strict is False.
    """
    variables = variables or {}

    if not formula or not formula.strip():
        if strict:
            raise FormulaEvaluationError("Formula is empty")
        return EvaluationReport(value=0.0, stage=EMPTY)

    max_length = get_setting("MAX_FORMULA_LENGTH")
    if len(formula) > max_length:
        message = f"Formula length {len(formula)} exceeds the maximum of {max_length}"
        if strict:
            raise FormulaEvaluationError(message)
        logger.warning(f"{message}; using basic computation")
        value = basic_computation(variables)
        return EvaluationReport(
            value=value,
            stage=BASIC,
            attempts=[StageOutcome(PRIMARY, error=message), StageOutcome(BASIC, value=value)],
        )

    prepared: Dict[str, str] = {}

    def primary() -> float:
        prepared["expression"] = prepare_expression(formula, variables, context, clock)
        return evaluator(prepared["expression"])

    def alternative() -> float:
        expression = prepared.get("expression")
        if expression is None:
            raise FormulaEvaluationError("No prepared expression to simplify")
        simplified = simplify_numeric_ternaries(expression)
        if simplified == expression:
            raise FormulaEvaluationError("No numeric ternary to simplify")
        logger.debug(f"Alternative expression: {simplified}")
        prepared["expression"] = simplified
        return evaluator(simplified)

    stages: List[Stage] = [(PRIMARY, primary), (ALTERNATIVE, alternative)]
    if not strict:
        stages.append((BASIC, lambda: basic_computation(variables)))

    value, stage, attempts = run_stages(stages)

    if value is None:
        if strict:
            raise FormulaEvaluationError(attempts[0].error if attempts else "Evaluation failed")
        logger.error(f"Every evaluation stage failed for formula: {formula}")
        return EvaluationReport(value=0.0, stage=BASIC, expression=prepared.get("expression"), attempts=attempts)

    if stage != PRIMARY:
        logger.warning(f"Formula '{formula}' resolved by the {stage} stage: {value}")

    return EvaluationReport(value=value, stage=stage, expression=prepared.get("expression"), attempts=attempts)


def evaluate_formula(
    formula: str,
    variables: Optional[Mapping[str, Any]] = None,
    context: Optional[EvaluationContext] = None,
    clock: Optional[Clock] = None,
) -> float:
    """
    Evaluate a tariff formula. Never raises; returns 0.0 as the last resort.

    Examples:
    - "Valor * Palets + Peaje"
    - "SI(Distancia>100;Valor*1.2;Valor)"
    - "TARIFAESCALONADA(Palets; 10:50; 20:45; 33:40)"
    """
    try:
        return evaluate_formula_report(formula, variables, context, clock).value
    except Exception as e:
        logger.error(f"Formula evaluation error: {e} for formula: {formula}", exc_info=True)
        return 0.0


def evaluate_strict(
    formula: str,
    variables: Optional[Mapping[str, Any]] = None,
    context: Optional[EvaluationContext] = None,
    clock: Optional[Clock] = None,
) -> float:
    """Evaluate without the basic computation; raises FormulaEvaluationError on failure."""
    return evaluate_formula_report(formula, variables, context, clock, strict=True).value
