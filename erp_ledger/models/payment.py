from datetime import date, datetime
from enum import Enum
from typing import Optional
from pydantic import Field, field_validator
from erp_ledger.models.base import MongoModel, MoneyAmount

class PaymentMethod(str, Enum):
    CASH = "cash"
    CHECK = "check"
    CREDIT_CARD = "credit_card"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"

class PaymentStatus(str, Enum):
    RECORDED = "recorded"
    VOID = "void"

class Payment(MongoModel):
    """Money received, optionally applied to one invoice."""
    payment_number: str = Field(..., min_length=1, description="e.g. PAY-000001")
    customer_id: Optional[str] = None
    invoice_number: Optional[str] = None
    payment_date: date = Field(default_factory=date.today)
    amount: MoneyAmount
    method: Optional[PaymentMethod] = None
    reference_number: Optional[str] = Field(None, description="Check number, transaction ID, etc.")
    notes: Optional[str] = None
    journal_entry_number: Optional[str] = None
    status: PaymentStatus = PaymentStatus.RECORDED
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        if v <= 0:
            raise ValueError("Payment amount must be positive")
        return v
