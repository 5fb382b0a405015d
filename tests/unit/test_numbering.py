import pytest
from erp_ledger.config import Settings
from erp_ledger.models.document import DocumentFamily
from erp_ledger.tools.numbering import is_sequence_number, next_number, prefixes_from_settings

@pytest.mark.parametrize("prefix,last,expected", [
    ("INV", None, "INV-000001"),
    ("INV", "", "INV-000001"),
    ("INV", "INV-000122", "INV-000123"),
    ("QT", "QT-000009", "QT-000010"),
    ("SO", "SO-999999", "SO-1000000"),
    ("QT", "garbage", "QT-000001"),
    ("JE", "JE-7", "JE-000008"),
])
def test_next_number(prefix, last, expected):
    assert next_number(prefix, last) == expected

def test_text_before_digits_is_kept():
    # The last number's own prefix wins over the one passed in
    assert next_number("INV", "INV2024-000041") == "INV2024-000042"
    assert next_number("INV", "OLD-000005") == "OLD-000006"

def test_prefixes_from_settings():
    prefixes = prefixes_from_settings(Settings(INVOICE_PREFIX="BILL"))
    assert prefixes[DocumentFamily.INVOICE] == "BILL"
    assert prefixes[DocumentFamily.QUOTE] == "QT"
    assert prefixes[DocumentFamily.JOURNAL_ENTRY] == "JE"

@pytest.mark.parametrize("number,expected", [
    ("JE-000001", True),
    ("JE-1000000", True),
    ("JE-MANUAL-1", False),
    ("XJE-000001", False),
    ("JE-000001a", False),
    (None, False),
])
def test_is_sequence_number(number, expected):
    assert is_sequence_number("JE", number) is expected
