"""
Formula validation and structural analysis.
"""
import logging
import math
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .conf import get_setting
from .context import EvaluationContext
from .dsl import ALLOWED_FUNCTIONS, FormulaLimitError
from .formula import evaluate_strict
from .substitution import STRING_LITERAL_PATTERN
from .transpiler import CONDITIONAL, CUSTOM_FUNCTIONS, iter_calls, split_arguments, transpile

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"\b[A-Za-z]\w*")
FUNCTION_NAME_PATTERN = re.compile(r"\b([A-Za-z]\w*)(?=\s*\()")
OPERATOR_PATTERN = re.compile(r"[+\-*/%^<>=!?:]")
CONSECUTIVE_OPERATORS_PATTERN = re.compile(r"[+\-*/%^]{2,}")
LITERAL_DIVISION_BY_ZERO_PATTERN = re.compile(r"/\s*0(?![\d.,])")
CONDITIONAL_PATTERN = re.compile(rf"\b{CONDITIONAL}\s*\(", re.IGNORECASE)

KNOWN_FUNCTIONS = frozenset(
    name.upper() for name in (*CUSTOM_FUNCTIONS, *ALLOWED_FUNCTIONS)
)

STANDARD_VARIABLES = (
    "Valor", "Peaje", "Cantidad", "Palets", "Distancia", "Peso", "Volumen",
    "DiaSemana", "Mes", "Trimestre", "EsFinDeSemana",
)

TEST_VALUES: Dict[str, float] = {
    "Valor": 100,
    "Peaje": 10,
    "Cantidad": 5,
    "Palets": 5,
    "Distancia": 50,
    "Peso": 1000,
    "Volumen": 20,
    "DiaSemana": 2,
    "Mes": 6,
    "Trimestre": 2,
    "EsFinDeSemana": 0,
}

# Tuesday in June, so calendar functions resolve the same way on every run
TEST_CONTEXT = EvaluationContext(dia_semana=2, mes=6, trimestre=2, es_fin_de_semana=False)
TEST_CLOCK_MOMENT = datetime(2024, 6, 4, 12, 0, 0)

LONG_FORMULA_WARNING = 500


@dataclass(frozen=True)
class ValidationOutcome:
    valid: bool
    message: str
    used_variables: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FormulaAnalysis:
    length: int
    variables: List[str]
    functions: List[str]
    operators: List[str]
    has_parentheses: bool
    has_conditionals: bool
    complexity: str
    complexity_score: int
    complexity_factors: List[str]
    warnings: List[str]
    suggestions: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def is_known_function(name: str) -> bool:
    return name.upper() in KNOWN_FUNCTIONS


def _unique(items: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(items))


def extract_variables(formula: str) -> List[str]:
    """Identifiers that are not known function names, in order of first appearance."""
    text = STRING_LITERAL_PATTERN.sub(" ", formula)
    return _unique(token for token in IDENTIFIER_PATTERN.findall(text) if not is_known_function(token))


def check_resource_limits(formula: str) -> Optional[str]:
    """Return a failure message when the formula exceeds the configured bounds."""
    max_length = get_setting("MAX_FORMULA_LENGTH")
    if len(formula) > max_length:
        return f"Formula is too long ({len(formula)} characters, maximum {max_length})"

    max_arguments = get_setting("MAX_FUNCTION_ARGUMENTS")
    for call in iter_calls(formula):
        count = max(len(call.arguments), len(split_arguments(call.body, ",")))
        if count > max_arguments:
            return f"Function {call.name} has {count} arguments (maximum {max_arguments})"

    try:
        transpile(formula, TEST_CONTEXT, lambda: TEST_CLOCK_MOMENT)
    except FormulaLimitError as e:
        return str(e)
    return None


def build_test_variables(available_variables: Iterable[str]) -> Dict[str, float]:
    variables = dict(TEST_VALUES)
    for name in available_variables:
        variables.setdefault(name, 1)
    return variables


def validate_formula(formula: str, available_variables: Optional[Iterable[str]] = None) -> ValidationOutcome:
    """
    Check that a formula only uses known variables and evaluates to a finite number.

    Args:
        formula: Formula to validate.
        available_variables: Extra variable names allowed besides STANDARD_VARIABLES.

    Returns:
        ValidationOutcome; never raises.
    """
    try:
        available = list(available_variables or [])

        if not formula or not formula.strip():
            return ValidationOutcome(valid=False, message="Formula is empty")

        limit_error = check_resource_limits(formula)
        if limit_error:
            return ValidationOutcome(valid=False, message=limit_error)

        used_variables = extract_variables(formula)
        allowed = set(STANDARD_VARIABLES) | set(available)
        unknown = [name for name in used_variables if name not in allowed]
        if unknown:
            return ValidationOutcome(
                valid=False,
                message=f"Unknown variables: {', '.join(unknown)}",
                used_variables=used_variables,
            )

        result = evaluate_strict(
            formula,
            build_test_variables(available),
            context=TEST_CONTEXT,
            clock=lambda: TEST_CLOCK_MOMENT,
        )
        if not math.isfinite(result):
            return ValidationOutcome(
                valid=False,
                message="Formula does not produce a valid number",
                used_variables=used_variables,
            )

        return ValidationOutcome(valid=True, message="Formula is valid", used_variables=used_variables)
    except Exception as e:
        logger.debug(f"Formula validation failed: {e} for formula: {formula}")
        return ValidationOutcome(valid=False, message=f"Formula error: {e}")


def _complexity(formula: str, variables: List[str]) -> Dict[str, Any]:
    score = 0
    factors = []

    if len(formula) > 100:
        score += 2
        factors.append("long formula")

    if formula.count("(") > 3:
        score += 3
        factors.append("nested functions")

    if CONDITIONAL_PATTERN.search(formula):
        score += 2
        factors.append("conditional logic")

    if len(variables) > 8:
        score += 2
        factors.append("many variables")

    if score <= 2:
        level = "low"
    elif score <= 5:
        level = "medium"
    elif score <= 8:
        level = "high"
    else:
        level = "very high"

    return {"level": level, "score": score, "factors": factors}


def _suggestions(formula: str, variables: List[str], functions: List[str]) -> List[str]:
    suggestions = []
    if len(formula) > 200:
        suggestions.append("Consider splitting this formula into several simpler ones")
    if "Valor" not in variables:
        suggestions.append('Consider using "Valor" as the base of the calculation')
    if len(variables) > 5:
        suggestions.append("With this many variables, make sure the formula is well documented")
    if not {"MAX", "MIN"} & {name.upper() for name in functions}:
        suggestions.append("Consider MAX() or MIN() to keep values within a valid range")
    if "/" in formula and not CONDITIONAL_PATTERN.search(formula):
        suggestions.append(f"Guard divisions with {CONDITIONAL}() so the divisor is never zero")
    return suggestions


def analyze_formula(formula: str) -> FormulaAnalysis:
    """Describe a formula's structure, complexity and likely mistakes."""
    formula = formula or ""
    variables = extract_variables(formula)
    functions = _unique(name for name in FUNCTION_NAME_PATTERN.findall(formula) if is_known_function(name))

    warnings = []
    if formula.count("(") != formula.count(")"):
        warnings.append("Unbalanced parentheses")
    if CONSECUTIVE_OPERATORS_PATTERN.search(formula):
        warnings.append("Consecutive operators")
    if LITERAL_DIVISION_BY_ZERO_PATTERN.search(formula):
        warnings.append("Possible division by zero")
    if len(formula) > LONG_FORMULA_WARNING:
        warnings.append("Formula is very long, consider simplifying it")

    complexity = _complexity(formula, variables)

    return FormulaAnalysis(
        length=len(formula),
        variables=variables,
        functions=functions,
        operators=_unique(OPERATOR_PATTERN.findall(formula)),
        has_parentheses="(" in formula or ")" in formula,
        has_conditionals=bool(CONDITIONAL_PATTERN.search(formula)),
        complexity=complexity["level"],
        complexity_score=complexity["score"],
        complexity_factors=complexity["factors"],
        warnings=warnings,
        suggestions=_suggestions(formula, variables, functions),
    )
