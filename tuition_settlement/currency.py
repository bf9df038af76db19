"""
Domestic to gateway currency conversion.

The gateway does not charge in the domestic currency, so every
tuition price is converted with one fixed, configured rate. The
same function is used to build a charge intent and to validate the
charge reported back, so the two can never disagree.
"""

from decimal import Decimal, ROUND_HALF_UP


def to_gateway_amount(domestic_amount: Decimal, rate: Decimal) -> int:
    """
    Convert a domestic amount to gateway minor units.

    gateway_amount = round(domestic_amount / rate * 100), halves
    rounded up. 5500 at a rate of 110 is 5000 minor units.
    """
    if rate <= 0:
        raise ValueError(f"Conversion rate must be positive, got {rate}")
    minor = Decimal(domestic_amount) / Decimal(rate) * 100
    return int(minor.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
