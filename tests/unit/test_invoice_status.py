import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal
from erp_ledger.models.document import InvoiceStatus
from erp_ledger.models.money import Money
from erp_ledger.tools.invoice_status import compute_amount_due, resolve_invoice_status

TODAY = date(2024, 6, 15)
PAST = date(2024, 6, 1)
FUTURE = date(2024, 7, 1)

def test_amount_due_clamped_at_zero():
    assert compute_amount_due(100, 40) == Money.of(60)
    assert compute_amount_due(100, 100).is_zero()
    assert compute_amount_due(100, 150).is_zero()

def test_paid_beats_overdue():
    assert resolve_invoice_status(100, 100, PAST, "overdue", TODAY) is InvoiceStatus.PAID

def test_overpayment_is_paid():
    assert resolve_invoice_status(100, "100.01", PAST, "sent", TODAY) is InvoiceStatus.PAID

def test_partial_beats_overdue():
    assert resolve_invoice_status(100, 1, PAST, "sent", TODAY) is InvoiceStatus.PARTIAL

def test_overdue():
    assert resolve_invoice_status(100, 0, PAST, "sent", TODAY) is InvoiceStatus.OVERDUE

def test_due_today_is_not_overdue():
    assert resolve_invoice_status(100, 0, TODAY, "sent", TODAY) is InvoiceStatus.SENT

def test_sent():
    assert resolve_invoice_status(100, 0, FUTURE, "sent", TODAY) is InvoiceStatus.SENT

def test_no_due_date_never_overdue():
    assert resolve_invoice_status(100, 0, None, "sent", TODAY) is InvoiceStatus.SENT

@pytest.mark.parametrize("status", [InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED])
def test_absorbing_statuses(status):
    assert resolve_invoice_status(100, 100, PAST, status, TODAY) is status
    assert resolve_invoice_status(100, 0, PAST, status.value, TODAY) is status

def test_accepts_datetimes():
    assert resolve_invoice_status(Decimal("50.00"), 0, datetime(2024, 6, 14, 23, 59),
                                  "sent", datetime(2024, 6, 15, 0, 1)) is InvoiceStatus.OVERDUE

def test_paid_back_to_partial_when_payment_removed():
    # The resolver has no memory: facts decide
    assert resolve_invoice_status(100, 50, FUTURE, "paid", TODAY) is InvoiceStatus.PARTIAL

def test_today_defaults_to_now():
    assert resolve_invoice_status(100, 0, date(2000, 1, 1), "sent") is InvoiceStatus.OVERDUE

def test_fully_paid_yesterday_due_is_paid():
    yesterday = TODAY - timedelta(days=1)
    assert resolve_invoice_status(1000, 1000, yesterday, "sent", TODAY) is InvoiceStatus.PAID
