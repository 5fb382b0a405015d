from erp_ledger.services.accounting_engine import AccountingEngine, PaymentResult
from erp_ledger.tools.document_totals import DiscountPolicy, compute_document_totals
from erp_ledger.tools.invoice_status import resolve_invoice_status
from erp_ledger.tools.ledger_poster import post_line, validate_balanced
from erp_ledger.tools.line_calculator import compute_line_total
from erp_ledger.tools.numbering import next_number
