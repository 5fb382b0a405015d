import pytest
from datetime import date, datetime
from decimal import Decimal
from bson import Decimal128
from pydantic import ValidationError
from erp_ledger.models.account import Account, AccountType
from erp_ledger.models.accounting import JournalEntry, JournalLine, LedgerEntry
from erp_ledger.models.config import PostingAccounts, default_chart
from erp_ledger.models.document import Invoice, Quote, SalesOrder, SalesOrderStatus, parse_document
from erp_ledger.models.payment import Payment, PaymentMethod
from erp_ledger.tools.ledger_poster import validate_balanced

def test_account_type_is_frozen():
    account = Account(code=" 1110 ", name="Cash", type=AccountType.ASSET)
    assert account.code == "1110"
    with pytest.raises(ValidationError):
        account.type = AccountType.LIABILITY
    # Everything else stays editable (soft deactivation)
    account.active = False
    assert account.active is False

def test_account_rejects_unknown_type():
    with pytest.raises(ValidationError):
        Account(code="1", name="x", type="contra")

def test_money_fields_round_half_up():
    line = JournalLine(account_code="1110", debit="10.005")
    assert line.debit == Decimal("10.01")
    assert JournalLine(account_code="1110", debit=0.1).debit == Decimal("0.10")

def test_parse_document_resolves_family():
    assert isinstance(parse_document({"family": "quote", "number": "QT-000001"}), Quote)
    order = parse_document({"family": "sales_order", "number": "SO-000001", "shipping_amount": "5"})
    assert isinstance(order, SalesOrder)
    assert order.status is SalesOrderStatus.PENDING
    assert order.shipping == Decimal("5.00")
    with pytest.raises(ValidationError):
        parse_document({"family": "receipt", "number": "R-1"})

def test_quote_has_no_shipping():
    assert Quote(number="QT-000001").shipping == Decimal("0.00")

def test_to_mongo_round_trip_types():
    invoice = Invoice(number="INV-000001", total="206.15", due_date=date(2024, 7, 1))
    data = invoice.to_mongo()
    assert isinstance(data["total"], Decimal128)
    assert data["due_date"] == datetime(2024, 7, 1)
    assert data["status"] == "draft"
    assert "_id" not in data

    data["_id"] = "65a000000000000000000001"
    loaded = parse_document(data)
    assert isinstance(loaded, Invoice)
    assert loaded.total == Decimal("206.15")
    assert loaded.due_date == date(2024, 7, 1)
    assert loaded.id == "65a000000000000000000001"

def test_payment_amount_must_be_positive():
    with pytest.raises(ValidationError):
        Payment(payment_number="PAY-000001", amount=0)

def test_ledger_entry_is_immutable():
    row = LedgerEntry(account_code="1110", sequence=1, transaction_date=date(2024, 1, 1), balance=5)
    with pytest.raises(ValidationError):
        row.balance = Decimal("6")

def test_journal_entry_totals():
    entry = JournalEntry(lines=[JournalLine(account_code="1110", debit="10.10"),
                                JournalLine(account_code="4000", credit="10.10")])
    assert entry.total_debit == entry.total_credit == Decimal("10.10")
    assert validate_balanced(entry.lines)
    assert entry.lines[0].side.value == "DEBIT"

def test_posting_accounts_from_settings():
    accounts = PostingAccounts.from_settings()
    assert accounts.account_for_method(PaymentMethod.CASH) == "1110"
    assert accounts.account_for_method(PaymentMethod.BANK_TRANSFER) == "1120"
    assert accounts.account_for_method(None) == "1110"

def test_default_chart_has_posting_accounts():
    codes = {a.code: a for a in default_chart()}
    for code in ("1110", "1120", "1200", "2200", "4000"):
        assert code in codes
    assert codes["2200"].type is AccountType.LIABILITY
    assert codes["4000"].is_root
