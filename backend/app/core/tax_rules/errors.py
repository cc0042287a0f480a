"""
Tax engine error taxonomy.

  - InputValidationError: malformed or missing input field. Raised before any
    calculation step runs, so no partial audit trail exists.
  - ConfigurationError: the rate schedule is missing a constant or a version is
    unknown. Always a system fault, never the taxpayer's data.
  - ArithmeticInvariantError: a finished result contradicts itself. The result
    is discarded instead of being returned.
"""


class TaxEngineError(Exception):
    """Base class for every error raised by the tax engine."""


class InputValidationError(TaxEngineError, ValueError):
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class ConfigurationError(TaxEngineError):
    pass


class ArithmeticInvariantError(TaxEngineError):
    def __init__(self, invariant: str, details: dict | None = None):
        self.invariant = invariant
        self.details = details or {}
        super().__init__(f"Calculation invariant violated: {invariant}")
