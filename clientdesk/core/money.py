from decimal import Decimal, ROUND_HALF_UP

MONEY_QUANT = Decimal("0.01")
WHOLE_QUANT = Decimal("1")
ZERO_MONEY = Decimal("0.00")


def to_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def to_whole(value: Decimal | int | float | str) -> int:
    # Half-up to the nearest integer; used for day counts and percentages.
    return int(Decimal(str(value)).quantize(WHOLE_QUANT, rounding=ROUND_HALF_UP))
