"""
Domain Specific Language for tariff formula evaluation.

This DSL provides a safe way to evaluate arithmetic expressions
(operators, ternaries and an allow-listed function set) without using eval().
"""

from .errors import FormulaError, FormulaEvaluationError, FormulaLimitError, FormulaSyntaxError
from .evaluator import Evaluator, ensure_finite_number
from .functions import ALLOWED_FUNCTIONS
from .parser import Parser
from .tokenizer import Tokenizer


def safe_evaluate(expression):
    """
    Evaluate a fully substituted expression with no free variables.

    Returns:
        The result as a finite float.

    Raises:
        FormulaSyntaxError: If the expression cannot be tokenized or parsed.
        FormulaEvaluationError: If evaluation fails or the result is not a finite number.
    """
    try:
        tokens = Tokenizer(expression).generate_tokens()
        ast = Parser(tokens).parse()
    except RecursionError as e:
        raise FormulaSyntaxError("Expression is nested too deeply") from e
    result = Evaluator().evaluate(ast)
    return ensure_finite_number(result)


__all__ = [
    'ALLOWED_FUNCTIONS',
    'Evaluator',
    'FormulaError',
    'FormulaEvaluationError',
    'FormulaLimitError',
    'FormulaSyntaxError',
    'Parser',
    'Tokenizer',
    'safe_evaluate',
]
