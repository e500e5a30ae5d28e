"""Price conversion between the storefront's major-unit strings and integer minor units.

Prices travel inside the builder as integer cents. The storefront's product
feeds publish major-unit decimal strings ("19.99"), and everything written back
to the Cart Service uses the same two-decimal string form.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

_CENT = Decimal("0.01")


def to_cents(value) -> int:
    """Convert a storefront price (major units, string or number) to integer cents.

    Missing or unparseable values count as zero: catalog JSON is weakly typed and
    a product without a readable price must not break the whole catalog load.
    """
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        return 0
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        return 0
    if not amount.is_finite():
        return 0
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_price(cents: int) -> str:
    """Render integer cents as a major-unit string with exactly two decimals."""
    amount = (Decimal(int(cents)) / 100).quantize(_CENT, rounding=ROUND_HALF_UP)
    return f"{amount:.2f}"


def apply_discount(cents: int, percent: float) -> int:
    """Return ``cents`` reduced by ``percent`` %, rounded to the nearest cent."""
    if not percent:
        return int(cents)
    factor = (Decimal(100) - Decimal(str(percent))) / 100
    return int((Decimal(int(cents)) * factor).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
