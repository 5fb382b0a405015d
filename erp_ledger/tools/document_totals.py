"""
Document-level totals for quotes, sales orders and invoices.

Calculation flow:
1. Sum each line's (quantity x unit_price) less its line discount (line tax is left out)
2. Subtract the document discount (an absolute amount, not a percentage)
3. Apply the document tax rate to the discounted amount
4. Add shipping (sales orders)

Each of subtotal, tax_amount, discount_amount and total is rounded once, at the end.
"""

from dataclasses import dataclass
from decimal import Decimal, localcontext
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Union

from erp_ledger.errors import InvalidDocument
from erp_ledger.models.document import LineItem
from erp_ledger.models.money import Money, Numeric, WORKING_PRECISION, to_decimal
from erp_ledger.tools.line_calculator import HUNDRED, line_net_amount


class DiscountPolicy(str, Enum):
    """What to do when the document discount exceeds the subtotal."""
    ALLOW = "allow"    # after-discount amount may go negative (credit memo)
    CLAMP = "clamp"    # discount applied is capped at the subtotal
    REJECT = "reject"  # InvalidDocument


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Money
    tax_amount: Money
    discount_amount: Money
    total: Money

    def as_dict(self) -> Dict[str, Decimal]:
        return {
            "subtotal": self.subtotal.amount,
            "tax_amount": self.tax_amount.amount,
            "discount_amount": self.discount_amount.amount,
            "total": self.total.amount,
        }


LineInput = Union[LineItem, Mapping[str, Any]]


def _line_field(line: LineInput, name: str, default: Numeric = 0):
    if isinstance(line, Mapping):
        value = line.get(name)
    else:
        value = getattr(line, name, None)
    return default if value is None else value


def compute_subtotal(lines: Iterable[LineInput]) -> Decimal:
    """Unrounded sum of line net amounts."""
    subtotal = Decimal("0")
    with localcontext() as ctx:
        ctx.prec = WORKING_PRECISION
        for line in lines:
            subtotal += line_net_amount(
                _line_field(line, "quantity", 1),
                _line_field(line, "unit_price"),
                _line_field(line, "discount_percent"),
            )
    return subtotal


def compute_document_totals(lines: Iterable[LineInput],
                            document_discount: Numeric = 0,
                            document_tax_rate: Numeric = 0,
                            shipping: Numeric = 0,
                            *,
                            discount_policy: DiscountPolicy = DiscountPolicy.ALLOW) -> DocumentTotals:
    """
    Calculates document totals.

    Example:
        lines = [
            {"quantity": 2, "unit_price": 50},
            {"quantity": 1, "unit_price": 100, "discount_percent": 10},
        ]
        compute_document_totals(lines, 0, "8.5", 15)
        # subtotal 190.00, tax 16.15, total 221.15
    """
    discount = to_decimal(document_discount)
    rate = to_decimal(document_tax_rate)
    shipping_amount = to_decimal(shipping)

    if discount < 0:
        raise InvalidDocument(f"Document discount must not be negative, got {document_discount}",
                              details={"field": "discount_amount", "value": str(document_discount)})
    if rate < 0 or rate > HUNDRED:
        raise InvalidDocument(f"Document tax rate must be between 0 and 100, got {document_tax_rate}",
                              details={"field": "tax_rate", "value": str(document_tax_rate)})
    if shipping_amount < 0:
        raise InvalidDocument(f"Shipping must not be negative, got {shipping}",
                              details={"field": "shipping_amount", "value": str(shipping)})

    subtotal = compute_subtotal(lines)

    policy = DiscountPolicy(discount_policy)
    if discount > subtotal:
        if policy is DiscountPolicy.REJECT:
            raise InvalidDocument(
                f"Document discount {discount} exceeds subtotal {subtotal}",
                details={"field": "discount_amount", "value": str(discount), "subtotal": str(subtotal)},
            )
        if policy is DiscountPolicy.CLAMP:
            discount = max(subtotal, Decimal("0"))

    with localcontext() as ctx:
        ctx.prec = WORKING_PRECISION
        after_discount = subtotal - discount
        tax_amount = after_discount * (rate / HUNDRED)
        total = after_discount + tax_amount + shipping_amount

    return DocumentTotals(
        subtotal=Money.of(subtotal),
        tax_amount=Money.of(tax_amount),
        discount_amount=Money.of(discount),
        total=Money.of(total),
    )
