import pytest
from decimal import Decimal
from erp_ledger.errors import InvalidLineItem
from erp_ledger.models.document import LineItem
from erp_ledger.models.money import Money
from erp_ledger.tools.line_calculator import compute_line_total, line_net_amount, price_line

def test_discount_then_tax():
    # 5 x 100 = 500; less 10% = 450; plus 8.5% = 488.25
    assert compute_line_total(5, 100, 10, "8.5") == Money.of("488.25")

def test_defaults_no_discount_no_tax():
    assert compute_line_total(3, "19.99") == Money.of("59.97")

def test_rounding_boundary_half_up():
    assert compute_line_total(1, "10.005") == Money.of("10.01")
    assert compute_line_total(1, 10.005) == Money.of("10.01")

def test_rounds_once_at_the_end():
    # 3 x 3.333 = 9.999, 15% off = 8.49915, 7% tax = 9.0940905 -> 9.09
    assert compute_line_total(3, "3.333", 15, 7) == Money.of("9.09")

def test_full_discount_is_zero():
    assert compute_line_total(2, 40, 100, 20).is_zero()

def test_deterministic():
    assert compute_line_total("1.5", "2.35", "12.5", "19") == compute_line_total("1.5", "2.35", "12.5", "19")

def test_net_amount_is_unrounded():
    assert line_net_amount(1, "0.333", 0) == Decimal("0.333")

@pytest.mark.parametrize("args,field", [
    ((0, 10), "quantity"),
    ((-1, 10), "quantity"),
    ((1, -5), "unit_price"),
    ((1, 10, -1), "discount_percent"),
    ((1, 10, 101), "discount_percent"),
    ((1, 10, 0, "100.01"), "tax_rate"),
])
def test_invalid_inputs(args, field):
    with pytest.raises(InvalidLineItem) as exc:
        compute_line_total(*args)
    assert exc.value.field == field
    assert exc.value.error_code == "INVALID_LINE_ITEM"

def test_garbage_input():
    with pytest.raises(InvalidLineItem):
        compute_line_total("abc", 10)

def test_price_line_sets_total_without_mutating():
    item = LineItem(description="Widget", quantity=4, unit_price="12.50", tax_rate=10)
    priced = price_line(item)
    assert priced.line_total == Decimal("55.00")
    assert item.line_total == Decimal("0.00")
