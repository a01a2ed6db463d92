from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal('0.01')
ZERO = Decimal('0.00')
HUNDRED = Decimal('100')


def to_money(value):
    """Coerce to a two-digit Decimal, rounding half up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def split_fee(amount, fee_percent):
    """
    Split a release amount into (platform_fee, expert_receives).

    The fee is rounded once, to the cent; the expert share is the exact
    remainder so the two parts always add back up to ``amount``.
    """
    amount = to_money(amount)
    percent = Decimal(str(fee_percent))
    if percent < 0 or percent > HUNDRED:
        raise ValueError("Fee percent must be between 0 and 100.")
    platform_fee = (amount * percent / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
    return platform_fee, amount - platform_fee
