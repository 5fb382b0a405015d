"""
Standard journal entries the engine posts on behalf of documents.

Invoice issued:
    DR  Accounts Receivable   total
    CR  Revenue               total - tax   (split by line account overrides)
    CR  Tax Payable           tax

Payment received:
    DR  Cash / Bank           amount
    CR  Accounts Receivable   amount

Reversal: same accounts and amounts with debit and credit swapped.

Amounts are handled signed (positive = debit) and only turned into a debit or
credit column at the end, so a credit-memo invoice with a negative total
comes out with its sides flipped instead of negative columns.
"""

import logging
from datetime import date
from typing import Dict, List, Optional

from erp_ledger.errors import InvalidDocument
from erp_ledger.models.accounting import JournalEntry, JournalLine
from erp_ledger.models.config import PostingAccounts
from erp_ledger.models.document import Invoice
from erp_ledger.models.money import Money
from erp_ledger.models.payment import Payment
from erp_ledger.tools.document_totals import compute_subtotal

logger = logging.getLogger(__name__)


def _signed_line(account_code: str, amount: Money, description: Optional[str] = None) -> JournalLine:
    if amount.cents >= 0:
        return JournalLine(account_code=account_code, debit=amount.amount, description=description)
    return JournalLine(account_code=account_code, credit=(-amount).amount, description=description)


def _revenue_split(invoice: Invoice, accounts: PostingAccounts, revenue: Money) -> Dict[str, Money]:
    """
    Lines with their own account_code are credited their net amount; the
    default revenue account takes the remainder (document discount and
    rounding included) so the split always adds up to ``revenue``.
    """
    split: Dict[str, Money] = {}
    for line in invoice.lines:
        if line.account_code and line.account_code != accounts.revenue_gl:
            split[line.account_code] = split.get(line.account_code, Money.zero()) + Money.of(
                compute_subtotal([line]))
    split[accounts.revenue_gl] = revenue - sum(split.values(), Money.zero())
    return split


def invoice_entry(invoice: Invoice, accounts: PostingAccounts) -> JournalEntry:
    total = Money.of(invoice.total)
    tax = Money.of(invoice.tax_amount)
    revenue = total - tax

    lines: List[JournalLine] = [_signed_line(accounts.receivable_gl, total, f"Invoice {invoice.number}")]
    for code, amount in _revenue_split(invoice, accounts, revenue).items():
        lines.append(_signed_line(code, -amount, "Sales revenue"))
    lines.append(_signed_line(accounts.tax_payable_gl, -tax, "Sales tax"))

    lines = [line for line in lines if line.debit or line.credit]
    if len(lines) < 2:
        raise InvalidDocument(f"Invoice {invoice.number} has nothing to post (total {total})",
                              details={"number": invoice.number, "total": str(total)})

    return JournalEntry(
        entry_date=invoice.issue_date,
        description=f"Invoice {invoice.number}",
        reference=invoice.customer_id,
        source_type="invoice",
        source_number=invoice.number,
        lines=lines,
    )


def payment_entry(payment: Payment, accounts: PostingAccounts) -> JournalEntry:
    amount = Money.of(payment.amount)
    applied_to = f" for {payment.invoice_number}" if payment.invoice_number else ""
    return JournalEntry(
        entry_date=payment.payment_date,
        description=f"Payment {payment.payment_number}{applied_to}",
        reference=payment.reference_number,
        source_type="payment",
        source_number=payment.payment_number,
        lines=[
            _signed_line(accounts.account_for_method(payment.method), amount, "Payment received"),
            _signed_line(accounts.receivable_gl, -amount, "Accounts receivable"),
        ],
    )


def reversing_entry(original: JournalEntry, entry_date: Optional[date] = None) -> JournalEntry:
    lines = [
        JournalLine(account_code=line.account_code, debit=line.credit, credit=line.debit,
                    description=line.description)
        for line in original.lines
    ]
    logger.debug(f"Built reversal for {original.entry_number} with {len(lines)} lines")
    return JournalEntry(
        entry_date=entry_date or date.today(),
        entry_type=original.entry_type,
        description=f"Reversal of {original.entry_number}",
        reference=original.reference,
        source_type=original.source_type,
        source_number=original.source_number,
        reversal_of=original.entry_number,
        lines=lines,
    )
