import asyncio
import argparse
import logging
from datetime import date, timedelta

from erp_ledger.config import settings
from erp_ledger.database import Database
from erp_ledger.models.config import default_chart
from erp_ledger.repositories.memory import InMemoryStore
from erp_ledger.services.accounting_engine import AccountingEngine

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

async def run_demo(engine: AccountingEngine):
    print("--- Invoice to cash ---")

    # 1. Invoice: 2 x 50.00 + 1 x 100.00 less 10%, 8.5% tax
    invoice = await engine.create_document(
        "invoice",
        [
            {"description": "Consulting hours", "quantity": 2, "unit_price": "50.00"},
            {"description": "Setup fee", "quantity": 1, "unit_price": "100.00", "discount_percent": 10},
        ],
        tax_rate="8.5",
        customer_id="CUST-001",
        due_date=date.today() + timedelta(days=30),
    )
    print(f"{invoice.number}: subtotal={invoice.subtotal} tax={invoice.tax_amount} total={invoice.total}")

    # 2. Post to the ledger: DR receivable, CR revenue, CR tax payable
    for row in await engine.post_invoice(invoice.number):
        print(f"  {row.account_code} DR {row.debit:>8} CR {row.credit:>8} balance {row.balance}")

    # 3. Partial then final payment
    first = await engine.record_payment(invoice.number, "100.00", method="bank_transfer")
    print(f"{first.payment.payment_number}: status={first.invoice.status.value} due={first.invoice.amount_due}")
    second = await engine.record_payment(invoice.number, first.invoice.amount_due, method="cash")
    print(f"{second.payment.payment_number}: status={second.invoice.status.value} due={second.invoice.amount_due}")

    # 4. Balances
    for code in (settings.CASH_ACCOUNT_CODE, settings.BANK_ACCOUNT_CODE, settings.RECEIVABLE_ACCOUNT_CODE,
                 settings.REVENUE_ACCOUNT_CODE, settings.TAX_PAYABLE_ACCOUNT_CODE):
        print(f"  balance {code}: {await engine.account_balance(code)}")

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run the ERP ledger demo flow")
    parser.add_argument("--mongo", action="store_true",
                        help="Run against MongoDB (init_db.py and seed_chart.py first) instead of in memory")
    args = parser.parse_args()

    if args.mongo:
        db = Database()
        db.connect()
        try:
            asyncio.run(run_demo(AccountingEngine(db.unit_of_work)))
        finally:
            db.close()
    else:
        asyncio.run(run_demo(AccountingEngine(InMemoryStore(default_chart()))))
