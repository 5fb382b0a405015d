"""
Fixed-precision money.

Amounts are held as an integer number of cents. Anything that multiplies or
divides by a percentage works on unrounded Decimals and rounds exactly once,
with ROUND_HALF_UP, when the value is stored or displayed.

Usage:
    from erp_ledger.models.money import Money, to_decimal

    gross = to_decimal(quantity) * to_decimal(unit_price)
    total = Money.of(gross * (1 + to_decimal(tax_rate) / 100))
    print(total)  # "488.25"
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0")

# Headroom for quantity x price x (1 - d/100) x (1 + t/100) without truncation
WORKING_PRECISION = 40

Numeric = Union[Decimal, int, str, float, "Money"]


def to_decimal(value: Numeric) -> Decimal:
    """Convert raw input to an unrounded Decimal. Floats go through str() so 10.005 stays 10.005."""
    if isinstance(value, Money):
        return value.amount
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("bool is not a monetary value")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str):
        return Decimal(value.strip())
    raise TypeError(f"Cannot convert {type(value).__name__} to Decimal")


def round_money(value: Numeric) -> Decimal:
    """The single terminal rounding step: 2 places, half-up (ties away from zero)."""
    with localcontext() as ctx:
        ctx.prec = WORKING_PRECISION
        return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, order=True)
class Money:
    """
    A monetary amount in cents.

    Attributes:
        cents: Amount in the smallest currency unit
    """

    cents: int

    @classmethod
    def of(cls, value: Numeric) -> Money:
        if isinstance(value, Money):
            return value
        return cls(cents=int(round_money(value) * 100))

    @classmethod
    def zero(cls) -> Money:
        return cls(cents=0)

    @property
    def amount(self) -> Decimal:
        return (Decimal(self.cents) / 100).quantize(CENT)

    def is_zero(self) -> bool:
        return self.cents == 0

    def __add__(self, other: object) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(cents=self.cents + other.cents)

    def __radd__(self, other: object) -> Money:
        # lets sum() start from 0
        if other == 0:
            return self
        return NotImplemented

    def __sub__(self, other: object) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(cents=self.cents - other.cents)

    def __neg__(self) -> Money:
        return Money(cents=-self.cents)

    def __abs__(self) -> Money:
        return Money(cents=abs(self.cents))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Money):
            return self.cents == other.cents
        if isinstance(other, (Decimal, int)) and not isinstance(other, bool):
            return self.amount == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.cents)

    def __str__(self) -> str:
        return f"{self.amount:.2f}"

    def __repr__(self) -> str:
        return f"Money({self.amount})"
