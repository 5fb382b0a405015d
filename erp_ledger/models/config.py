from typing import Dict, List, Optional
from pydantic import Field
from erp_ledger.config import Settings, settings as default_settings
from erp_ledger.models.account import Account, AccountType
from erp_ledger.models.base import MongoModel
from erp_ledger.models.payment import PaymentMethod

class PostingAccounts(MongoModel):
    """Chart of accounts codes used when the engine builds standard journal entries."""
    cash_gl: str = "1110"
    bank_gl: str = "1120"
    receivable_gl: str = "1200"
    tax_payable_gl: str = "2200"
    revenue_gl: str = "4000"

    # Payment method overrides, e.g. {"credit_card": "1120"}; unmapped methods land in cash
    method_map: Dict[PaymentMethod, str] = Field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings = None) -> "PostingAccounts":
        settings = settings or default_settings
        return cls(
            cash_gl=settings.CASH_ACCOUNT_CODE,
            bank_gl=settings.BANK_ACCOUNT_CODE,
            receivable_gl=settings.RECEIVABLE_ACCOUNT_CODE,
            tax_payable_gl=settings.TAX_PAYABLE_ACCOUNT_CODE,
            revenue_gl=settings.REVENUE_ACCOUNT_CODE,
            method_map={
                PaymentMethod.CHECK: settings.BANK_ACCOUNT_CODE,
                PaymentMethod.CREDIT_CARD: settings.BANK_ACCOUNT_CODE,
                PaymentMethod.BANK_TRANSFER: settings.BANK_ACCOUNT_CODE,
            },
        )

    def account_for_method(self, method: Optional[PaymentMethod]) -> str:
        if method is None:
            return self.cash_gl
        return self.method_map.get(method, self.cash_gl)


def default_chart(settings: Settings = None) -> List[Account]:
    """
    A minimal chart of accounts containing every account the engine posts to.
    Codes for the posting accounts come from Settings.
    """
    settings = settings or default_settings
    A, L, E, R, X = (AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY,
                     AccountType.REVENUE, AccountType.EXPENSE)
    rows = [
        ("1000", "Assets", A, None),
        ("1100", "Cash and Cash Equivalents", A, "1000"),
        (settings.CASH_ACCOUNT_CODE, "Cash", A, "1100"),
        (settings.BANK_ACCOUNT_CODE, "Bank", A, "1100"),
        (settings.RECEIVABLE_ACCOUNT_CODE, "Accounts Receivable", A, "1000"),
        ("2000", "Liabilities", L, None),
        ("2100", "Accounts Payable", L, "2000"),
        (settings.TAX_PAYABLE_ACCOUNT_CODE, "Sales Tax Payable", L, "2000"),
        ("3000", "Equity", E, None),
        ("3100", "Owner's Capital", E, "3000"),
        ("3200", "Retained Earnings", E, "3000"),
        (settings.REVENUE_ACCOUNT_CODE, "Sales Revenue", R, None),
        ("4100", "Service Revenue", R, settings.REVENUE_ACCOUNT_CODE),
        ("5000", "Expenses", X, None),
        ("5100", "Rent Expense", X, "5000"),
        ("5200", "Salaries Expense", X, "5000"),
    ]
    return [Account(code=code, name=name, type=kind, parent_code=parent)
            for code, name, kind, parent in rows]
