from decimal import Decimal, localcontext

from erp_ledger.errors import InvalidLineItem
from erp_ledger.models.document import LineItem
from erp_ledger.models.money import Money, Numeric, WORKING_PRECISION, to_decimal

HUNDRED = Decimal("100")


def _percent(name: str, value: Numeric) -> Decimal:
    pct = to_decimal(value)
    if pct < 0 or pct > HUNDRED:
        raise InvalidLineItem(name, value, "must be between 0 and 100")
    return pct


def validate_line_inputs(quantity: Numeric, unit_price: Numeric,
                         discount_percent: Numeric = 0, tax_rate: Numeric = 0):
    """Check every precondition before any arithmetic so a bad line never yields a partial result."""
    try:
        qty = to_decimal(quantity)
        price = to_decimal(unit_price)
    except (TypeError, ArithmeticError) as exc:
        raise InvalidLineItem("quantity/unit_price", (quantity, unit_price), str(exc)) from exc

    if not qty.is_finite() or qty <= 0:
        raise InvalidLineItem("quantity", quantity, "must be greater than 0")
    if not price.is_finite() or price < 0:
        raise InvalidLineItem("unit_price", unit_price, "must not be negative")

    try:
        discount = _percent("discount_percent", discount_percent)
        tax = _percent("tax_rate", tax_rate)
    except (TypeError, ArithmeticError) as exc:
        raise InvalidLineItem("discount_percent/tax_rate", (discount_percent, tax_rate), str(exc)) from exc
    return qty, price, discount, tax


def line_net_amount(quantity: Numeric, unit_price: Numeric, discount_percent: Numeric = 0) -> Decimal:
    """(quantity x unit_price) x (1 - discount/100), unrounded. Line tax is not included."""
    qty, price, discount, _ = validate_line_inputs(quantity, unit_price, discount_percent)
    with localcontext() as ctx:
        ctx.prec = WORKING_PRECISION
        return (qty * price) * (1 - discount / HUNDRED)


def compute_line_total(quantity: Numeric, unit_price: Numeric,
                       discount_percent: Numeric = 0, tax_rate: Numeric = 0) -> Money:
    """
    Calculates the total for a single line.

    Formula: (quantity x unit_price) x (1 - discount_percent/100) x (1 + tax_rate/100),
    rounded once at the end.

    Example:
        compute_line_total(5, 100, 10, "8.5")
        # 5 x 100 = 500; less 10% = 450; plus 8.5% tax = 488.25
    """
    qty, price, discount, tax = validate_line_inputs(quantity, unit_price, discount_percent, tax_rate)
    with localcontext() as ctx:
        ctx.prec = WORKING_PRECISION
        gross = qty * price
        after_discount = gross * (1 - discount / HUNDRED)
        with_tax = after_discount * (1 + tax / HUNDRED)
    return Money.of(with_tax)


def price_line(item: LineItem) -> LineItem:
    """Return a copy of the line with line_total recomputed."""
    total = compute_line_total(item.quantity, item.unit_price, item.discount_percent, item.tax_rate)
    return item.model_copy(update={"line_total": total.amount})
