from enum import Enum
from typing import Optional
from pydantic import Field, field_validator
from erp_ledger.models.base import MongoModel

class AccountType(str, Enum):
    """
    Account types and the side they normally increase on:
    - asset: Resources owned (cash, receivables, equipment) - debit
    - liability: Debts owed (payables, tax payable, loans) - credit
    - equity: Owner's stake (capital, retained earnings) - credit
    - revenue: Income from operations (sales, services) - credit
    - expense: Costs of running the business (rent, salaries) - debit
    """
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"

class Account(MongoModel):
    """A node in the chart of accounts."""
    code: str = Field(..., min_length=1, description="Unique sortable code, e.g. '1110' for Cash")
    name: str = Field(..., min_length=1)
    # Historical running balances depend on the sign convention of this type
    type: AccountType = Field(..., frozen=True)
    parent_code: Optional[str] = Field(None, description="Parent account code (tree)")
    description: Optional[str] = None
    active: bool = True

    @field_validator("code")
    @classmethod
    def strip_code(cls, v: str) -> str:
        return v.strip()

    @property
    def is_root(self) -> bool:
        return self.parent_code is None
