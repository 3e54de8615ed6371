# storefront/utils/money.py

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError

Money = Decimal
ZERO = Decimal("0")
CENT = Decimal("0.01")

def D(x) -> Money:
    if isinstance(x, Decimal):
        return x
    if isinstance(x, float):
        return Decimal(repr(x))
    try:
        return Decimal(str(x or "0").strip() or "0")
    except InvalidOperation:
        raise ValidationError(f"invalid amount: {x!r}")

def parse_money(x, field: str = "amount") -> Money:
    """Strict version of D(): rejects missing values, NaN, infinities and negatives."""
    if x is None or (isinstance(x, str) and not x.strip()):
        raise ValidationError(f"{field} is required")
    if isinstance(x, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        value = D(x)
    except ValidationError:
        raise ValidationError(f"{field} must be a number")
    if not value.is_finite():
        raise ValidationError(f"{field} must be finite")
    if value < 0:
        raise ValidationError(f"{field} must be >= 0")
    return value

def round_money(x: Money) -> Money:
    return D(x).quantize(CENT, rounding=ROUND_HALF_UP)

def to_string_money(x) -> str:
    return str(round_money(x))

def to_float_money(x) -> float:
    return float(round_money(x))
