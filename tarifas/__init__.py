"""
Freight tariff formula engine.

Evaluates client formulas such as "Valor * Palets + Peaje" or
"SI(Distancia>100;Valor*1.2;Valor)" safely and turns them into tariffs.
"""

from .calculator import (
    RoutePrice,
    TariffResult,
    compute_context_tariff,
    compute_method_tariff,
    compute_pallet_tariff,
    compute_route_price,
)
from .context import EvaluationContext
from .formula import EvaluationReport, evaluate_formula, evaluate_formula_report, evaluate_strict
from .normalizer import normalize_variables
from .substitution import substitute_variables
from .transpiler import transpile
from .validator import FormulaAnalysis, ValidationOutcome, analyze_formula, validate_formula

__all__ = [
    'EvaluationContext',
    'EvaluationReport',
    'FormulaAnalysis',
    'RoutePrice',
    'TariffResult',
    'ValidationOutcome',
    'analyze_formula',
    'compute_context_tariff',
    'compute_method_tariff',
    'compute_pallet_tariff',
    'compute_route_price',
    'evaluate_formula',
    'evaluate_formula_report',
    'evaluate_strict',
    'normalize_variables',
    'substitute_variables',
    'transpile',
    'validate_formula',
]
