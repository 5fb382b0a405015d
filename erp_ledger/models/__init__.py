from erp_ledger.models.base import MongoModel, MoneyAmount, DecimalValue
from erp_ledger.models.money import Money, to_decimal, round_money
from erp_ledger.models.account import Account, AccountType
from erp_ledger.models.document import Document, DocumentFamily, DocumentHeader, LineItem, Quote, QuoteStatus, Invoice, InvoiceStatus, SalesOrder, SalesOrderStatus, parse_document
from erp_ledger.models.payment import Payment, PaymentMethod, PaymentStatus
from erp_ledger.models.accounting import JournalEntry, JournalLine, JournalEntryType, JournalStatus, EntryType, LedgerEntry
from erp_ledger.models.config import PostingAccounts, default_chart
