"""
Metric Primitives

Safe arithmetic shared by every analyzer plus the default-resolution rules
for missing business data (cost price, payment method, region, category).
"""

import math
from typing import Iterable, Optional, Union

Number = Union[int, float]

COST_FALLBACK_RATIO = 0.6
UNSPECIFIED = "unspecified"
UNCATEGORIZED = "uncategorized"
UNKNOWN_PRODUCT = "unknown"


# =============================================================================
# ARITHMETIC
# =============================================================================

def round2(value: Optional[Number]) -> float:
    """Round a currency or percentage value to 2 decimals."""
    if value is None:
        return 0.0
    value = float(value)
    if not math.isfinite(value):
        return 0.0
    return round(value, 2) + 0.0


def safe_ratio(numerator: Number, denominator: Number) -> float:
    """
    Percentage of ``numerator`` over ``denominator``.

    Returns 0 when the denominator is not positive, so division by zero
    never reaches the output as NaN or Infinity.
    """
    if not denominator or denominator <= 0:
        return 0.0
    return round2(float(numerator) / float(denominator) * 100)


def safe_divide(numerator: Number, denominator: Number) -> float:
    """Plain quotient rounded to 2 decimals, 0 for a non-positive denominator."""
    if not denominator or denominator <= 0:
        return 0.0
    return round2(float(numerator) / float(denominator))


def safe_average(values: Iterable[Number]) -> float:
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)


def clamp_score(score: Number, upper: int = 100) -> int:
    return max(0, min(upper, int(score)))


# =============================================================================
# DEFAULT RESOLUTION
# =============================================================================

def estimated_unit_cost(cost_price: Optional[Number], price: Number) -> float:
    """
    Unit cost of a product.

    Uses the recorded cost price when present, otherwise estimates it as
    60% of the selling price. A recorded cost of 0 is kept as 0.
    """
    if cost_price is not None:
        return float(cost_price)
    return float(price or 0) * COST_FALLBACK_RATIO


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def resolve_payment_method(method: Optional[str]) -> str:
    return _clean(method) or UNSPECIFIED


def resolve_region(*candidates: Optional[str]) -> str:
    """First non-blank candidate, in the order given, or ``"unspecified"``."""
    for candidate in candidates:
        value = _clean(candidate)
        if value:
            return value
    return UNSPECIFIED


def resolve_category(name: Optional[str]) -> str:
    return _clean(name) or UNCATEGORIZED
