from datetime import date, datetime, timezone
from typing import Optional, Union

from erp_ledger.models.document import InvoiceStatus
from erp_ledger.models.money import Money, Numeric

# Manual decisions the resolver never overrides
ABSORBING_STATUSES = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED})


def compute_amount_due(total: Numeric, amount_paid: Numeric) -> Money:
    """max(0, total - amount_paid)"""
    due = Money.of(total) - Money.of(amount_paid)
    return due if due.cents > 0 else Money.zero()


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def resolve_invoice_status(total: Numeric,
                           amount_paid: Numeric,
                           due_date: Optional[Union[date, datetime]],
                           current_status: Union[InvoiceStatus, str],
                           today: Optional[Union[date, datetime]] = None) -> InvoiceStatus:
    """
    Derives an invoice's status from its payment and due-date facts.

    Precedence: paid > partial > overdue > sent. A fully paid invoice is never
    reported overdue. Draft and cancelled invoices are returned unchanged.
    """
    status = InvoiceStatus(current_status)
    if status in ABSORBING_STATUSES:
        return status

    amount_due = compute_amount_due(total, amount_paid)
    if amount_due.is_zero():
        return InvoiceStatus.PAID

    if Money.of(amount_paid).cents > 0:
        return InvoiceStatus.PARTIAL

    if today is None:
        today = datetime.now(timezone.utc).date()
    if due_date is not None and _as_date(due_date) < _as_date(today):
        return InvoiceStatus.OVERDUE

    return InvoiceStatus.SENT
