"""Integer-safe arithmetic on token amounts.

Amounts are ints in the token's smallest unit. Ratios (fees, slippage) are
floats and must never touch an amount directly: they are first turned into
an integer numerator over a power of ten.
"""

import math
from decimal import Decimal, localcontext

# Fee taken by the factory on every swap leg
FIXED_FEE = 0.01


def safe_mult(amount: int, ratio: float) -> int:
    """Multiply an amount by a non-integer ratio without float rounding.

    Keeps about 10 significant digits of the ratio (at least 2 decimals):

        safe_mult(10**21, 1.5)    -> 1500000000000000000000
        safe_mult(10**21, 0.25)   -> 250000000000000000000
        safe_mult(10**21, 398392) -> 398392000000000000000000000
    """
    if not amount or ratio == 1:
        return amount

    # log10(0) is undefined; a ratio of 0 gives 0 anyway
    if ratio <= 0:
        return 0

    precision = max(2, 10 - round(math.log10(ratio)))
    scaled_ratio = math.floor(ratio * 10**precision)
    return amount * scaled_ratio // 10**precision


def remove_fees(amount: int) -> int:
    """Amount left once the fixed fee is taken."""
    return safe_mult(amount, 1 - FIXED_FEE)


def add_fees(amount: int) -> int:
    """Amount needed so that `amount` is left once the fixed fee is taken."""
    return safe_mult(amount, 1 / (1 - FIXED_FEE))


def divide_amounts(numerator: int, denominator: int) -> Decimal:
    """Divide two amounts as a Decimal (for display prices only)."""
    if denominator == 0:
        return Decimal("0")
    with localcontext() as ctx:
        ctx.prec = 40
        return Decimal(numerator) / Decimal(denominator)


def to_base_units(amount: Decimal, decimals: int) -> int:
    """Convert a human-readable amount to smallest units (truncating)."""
    return int(Decimal(amount).scaleb(decimals))
