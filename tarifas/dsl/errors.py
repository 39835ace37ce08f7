class FormulaError(Exception):
    """Base error for anything the formula DSL rejects."""


class FormulaSyntaxError(FormulaError):
    """Raised by the tokenizer and parser on malformed input."""


class FormulaEvaluationError(FormulaError):
    """Raised when a well-formed expression cannot produce a usable number."""


class FormulaLimitError(FormulaError):
    """Raised when a formula exceeds a configured resource limit."""
