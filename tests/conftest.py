import sys
import os
sys.path.append(os.getcwd())

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from erp_ledger.config import Settings
from erp_ledger.models.account import Account, AccountType
from erp_ledger.models.config import default_chart
from erp_ledger.repositories.memory import InMemoryStore
from erp_ledger.services.accounting_engine import AccountingEngine


@pytest.fixture
def test_settings():
    return Settings(ENVIRONMENT="test", LOG_LEVEL="DEBUG", DOCUMENT_DISCOUNT_POLICY="allow")


@pytest.fixture
def chart():
    return default_chart()


@pytest.fixture
def accounts_by_code(chart):
    return {a.code: a for a in chart}


@pytest.fixture
def store(chart):
    store = InMemoryStore(chart)
    # Inactive account for rejection tests
    store.add_account(Account(code="1900", name="Old Petty Cash", type=AccountType.ASSET, active=False))
    return store


@pytest.fixture
def engine(store, test_settings):
    return AccountingEngine(store, settings=test_settings)


@pytest.fixture
def sample_lines():
    # subtotal 190.00: 2 x 50 + 1 x 100 less 10%
    return [
        {"description": "Consulting hours", "quantity": 2, "unit_price": Decimal("50.00")},
        {"description": "Setup fee", "quantity": 1, "unit_price": Decimal("100.00"), "discount_percent": 10},
    ]


@pytest.fixture
def mock_collection():
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock()
    collection.insert_many = AsyncMock()
    collection.update_one = AsyncMock()
    collection.replace_one = AsyncMock()
    return collection
