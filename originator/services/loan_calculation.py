from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP


TWOPLACES = Decimal("0.01")


def as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def monthly_rate(annual_rate_percent: Decimal) -> Decimal:
    return as_decimal(annual_rate_percent) / Decimal("1200")


def monthly_payment(principal, annual_rate_percent, term_months: int) -> Decimal:
    """Level payment of a French amortization schedule, rounded to cents."""
    principal = as_decimal(principal)
    if term_months <= 0:
        return Decimal("0")
    rate = monthly_rate(as_decimal(annual_rate_percent or 0))
    if rate == 0:
        return (principal / Decimal(term_months)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    factor = (Decimal("1") + rate) ** term_months
    payment = principal * rate * factor / (factor - Decimal("1"))
    return payment.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def total_payable(principal, annual_rate_percent, term_months: int) -> Decimal:
    payment = monthly_payment(principal, annual_rate_percent, term_months)
    return (payment * Decimal(term_months)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
