import sys
import os
sys.path.append(os.getcwd())
import pytest
from datetime import date, timedelta
from decimal import Decimal
from erp_ledger.models.document import InvoiceStatus
from erp_ledger.models.money import Money

@pytest.mark.asyncio
async def test_scenario_invoice_paid_in_full(engine, sample_lines):
    """
    Scenario: Invoice 2 x 50.00 + 1 x 100.00 (10% off) at 8.5% tax,
    posted to the ledger and paid in full by bank transfer.
    """
    print("\n--- Scenario: Invoice to Cash ---")

    # 1. Create
    invoice = await engine.create_document(
        "invoice", sample_lines, tax_rate="8.5",
        customer_id="CUST-001", due_date=date.today() + timedelta(days=30),
    )
    assert invoice.subtotal == Decimal("190.00")
    assert invoice.tax_amount == Decimal("16.15")
    assert invoice.total == Decimal("206.15")
    assert invoice.status is InvoiceStatus.DRAFT

    # 2. Post
    rows = await engine.post_invoice(invoice.number)
    assert sum(Money.of(r.debit) for r in rows) == sum(Money.of(r.credit) for r in rows)

    # 3. Pay in full
    result = await engine.record_payment(invoice.number, "206.15", method="bank_transfer",
                                         reference_number="TRX-881")
    assert result.invoice.status is InvoiceStatus.PAID
    assert result.invoice.amount_due == Decimal("0.00")
    assert result.payment.customer_id == "CUST-001"

    # 4. Ledger: receivable cleared, money in the bank, revenue and tax recognised
    assert await engine.account_balance("1200") == Decimal("0.00")
    assert await engine.account_balance("1120") == Decimal("206.15")
    assert await engine.account_balance("4000") == Decimal("190.00")
    assert await engine.account_balance("2200") == Decimal("16.15")

    # 5. Still paid after an overdue sweep long past the due date
    later = await engine.refresh_invoice_status(invoice.number, today=date.today() + timedelta(days=365))
    assert later.status is InvoiceStatus.PAID
    print("Scenario passed")

@pytest.mark.asyncio
async def test_scenario_correct_posted_invoice(engine, sample_lines):
    """
    Scenario: Posted invoice has a wrong price. Void the posting, fix the
    lines, repost. Ledger history keeps both the mistake and its reversal.
    """
    invoice = await engine.create_document("invoice", sample_lines, tax_rate=10)
    await engine.post_invoice(invoice.number)
    first_entry = (await engine.get_document(invoice.number)).journal_entry_number

    await engine.void_journal_entry(first_entry)
    fixed = await engine.update_document_lines(invoice.number, [{"description": "Consulting", "quantity": 2,
                                                                  "unit_price": 60}])
    assert fixed.total == Decimal("132.00")
    await engine.post_invoice(invoice.number)

    receivable = await engine.ledger_for_account("1200")
    assert [r.balance for r in receivable] == [Decimal("209.00"), Decimal("0.00"), Decimal("132.00")]
    assert [r.sequence for r in receivable] == [1, 2, 3]
