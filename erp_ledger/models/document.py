from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import Field, TypeAdapter
from erp_ledger.models.base import MongoModel, MoneyAmount, DecimalValue

class DocumentFamily(str, Enum):
    """Each family has its own number sequence and status enum."""
    QUOTE = "quote"
    INVOICE = "invoice"
    SALES_ORDER = "sales_order"
    PAYMENT = "payment"
    JOURNAL_ENTRY = "journal_entry"

class QuoteStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"

class SalesOrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

class InvoiceStatus(str, Enum):
    """
    Status progression:
    - draft: Being prepared, not sent yet
    - sent: Sent to customer, awaiting payment
    - partial: Partially paid
    - paid: Fully paid
    - overdue: Past due date, not paid
    - cancelled: Voided/cancelled
    """
    DRAFT = "draft"
    SENT = "sent"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"

class LineItem(MongoModel):
    """A single product/service row on a quote, order or invoice."""
    description: str = Field(..., min_length=1)
    quantity: DecimalValue = Field(default=Decimal("1"))
    unit_price: DecimalValue = Field(default=Decimal("0"))
    discount_percent: DecimalValue = Field(default=Decimal("0"))
    tax_rate: DecimalValue = Field(default=Decimal("0"))
    line_total: MoneyAmount = Field(default=Decimal("0.00"), description="Derived, never authoritative input")
    sort_order: int = 0
    account_code: Optional[str] = Field(None, description="Revenue account override")

class DocumentHeader(MongoModel):
    """Header fields shared by every money-bearing document."""
    number: str = Field(..., min_length=1, description="Unique within its family, e.g. INV-000001")
    customer_id: Optional[str] = None
    issue_date: date = Field(default_factory=date.today)

    lines: List[LineItem] = []

    subtotal: MoneyAmount = Decimal("0.00")
    tax_rate: DecimalValue = Decimal("0")
    tax_amount: MoneyAmount = Decimal("0.00")
    discount_amount: MoneyAmount = Decimal("0.00")
    total: MoneyAmount = Decimal("0.00")

    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def shipping(self):
        return getattr(self, "shipping_amount", Decimal("0.00"))

class Quote(DocumentHeader):
    family: Literal["quote"] = "quote"
    status: QuoteStatus = QuoteStatus.DRAFT
    valid_until: Optional[date] = None

class SalesOrder(DocumentHeader):
    family: Literal["sales_order"] = "sales_order"
    status: SalesOrderStatus = SalesOrderStatus.PENDING
    shipping_amount: MoneyAmount = Decimal("0.00")
    expected_delivery_date: Optional[date] = None

class Invoice(DocumentHeader):
    family: Literal["invoice"] = "invoice"
    status: InvoiceStatus = InvoiceStatus.DRAFT
    due_date: Optional[date] = None
    amount_paid: MoneyAmount = Decimal("0.00")
    amount_due: MoneyAmount = Decimal("0.00")
    sales_order_number: Optional[str] = None
    terms: Optional[str] = None
    journal_entry_number: Optional[str] = Field(None, description="Set once the invoice is posted")

Document = Annotated[Union[Quote, Invoice, SalesOrder], Field(discriminator="family")]

DOCUMENT_MODELS = {
    DocumentFamily.QUOTE: Quote,
    DocumentFamily.INVOICE: Invoice,
    DocumentFamily.SALES_ORDER: SalesOrder,
}

STATUS_ENUMS = {
    DocumentFamily.QUOTE: QuoteStatus,
    DocumentFamily.INVOICE: InvoiceStatus,
    DocumentFamily.SALES_ORDER: SalesOrderStatus,
}

_document_adapter = TypeAdapter(Document)

def parse_document(data: Dict[str, Any]) -> Union[Quote, Invoice, SalesOrder]:
    """Resolve a raw row into its family variant (validation happens here, not at point of use)."""
    data = dict(data)
    if "_id" in data:
        data["id"] = data.pop("_id")
    return _document_adapter.validate_python(data)
