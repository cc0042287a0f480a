"""
Decimal helpers shared by the tax calculators.
Amounts are rounded half-up to fils (2 decimal places) when they become reported figures.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from app.core.tax_rules.errors import InputValidationError

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")

# Largest magnitude accepted for any input figure (one quadrillion).
# Sums of such figures stay inside the 28-digit decimal context.
MAX_AMOUNT = Decimal("1e15")


def to_decimal(value, field: str = "amount") -> Decimal:
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise InputValidationError(field, "must be a number, not a boolean")
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation:
            raise InputValidationError(field, f"not a valid decimal: {value!r}")
    elif isinstance(value, float):
        # str() keeps the shortest repr, so 0.1 becomes Decimal("0.1")
        result = Decimal(str(value))
    else:
        raise InputValidationError(field, f"unsupported type {type(value).__name__}")

    if not result.is_finite():
        raise InputValidationError(field, "must be a finite number")
    if abs(result) > MAX_AMOUNT:
        raise InputValidationError(field, f"magnitude exceeds {MAX_AMOUNT:,.0f}")
    return result


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def fmt(amount: Decimal) -> str:
    """Render an amount the way audit entries print it, e.g. 400,000.00"""
    return f"{quantize(amount):,.2f}"


def fmt_rate(rate: Decimal) -> str:
    return f"{(rate * HUNDRED).normalize():f}%"
