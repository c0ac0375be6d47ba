"""
Exceptions raised by the form engine.

Evaluation and validation never raise for bad data: missing references fail
closed and rule violations are returned as results. These exceptions cover
malformed input structure and expression errors only.
"""


class FormEngineError(Exception):
    """Base class for form engine errors"""
    pass


class InvalidLogicError(FormEngineError):
    """Raised when a logic or field payload is structurally invalid"""

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = list(errors or [])


class ExpressionError(FormEngineError):
    """Raised when a custom validation expression cannot be parsed or evaluated"""
    pass


class UnsafeExpressionError(ExpressionError):
    """Raised when an expression uses syntax outside the sandbox"""
    pass
