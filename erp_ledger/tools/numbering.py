import re
from typing import Dict, Optional

from erp_ledger.config import Settings, settings as default_settings
from erp_ledger.models.document import DocumentFamily

_TRAILING_DIGITS = re.compile(r"(\d+)$")
PAD_WIDTH = 6


def next_number(prefix: str, last_issued_number: Optional[str]) -> str:
    """
    Generates the next document number in a sequence.

    Format: PREFIX-NNNNNN. Whatever precedes the trailing digits of the last
    number is kept verbatim; a last number without trailing digits restarts
    the sequence. ``prefix`` only seeds an empty or digitless sequence, so a
    sequence whose prefix was renamed in settings keeps issuing under the old
    head (next_number("INV", "OLD-000005") is "OLD-000006") rather than
    restarting as "INV-000006".

    Example:
        next_number("INV", "INV-000122")  # "INV-000123"
        next_number("QT", None)           # "QT-000001"
        next_number("QT", "garbage")      # "QT-000001"

    Not safe on its own under concurrent callers: it only computes the value
    following the number it is given.
    """
    first = f"{prefix}-{1:0{PAD_WIDTH}d}"
    if not last_issued_number:
        return first

    match = _TRAILING_DIGITS.search(last_issued_number)
    if not match:
        return first

    head = last_issued_number[:match.start()]
    return f"{head}{int(match.group(1)) + 1:0{PAD_WIDTH}d}"


def is_sequence_number(prefix: str, number: Optional[str]) -> bool:
    """True when ``number`` has the PREFIX-NNNNNN shape the sequence itself issues."""
    return bool(number) and re.fullmatch(rf"{re.escape(prefix)}-\d+", number) is not None


def prefixes_from_settings(settings: Settings = None) -> Dict[DocumentFamily, str]:
    settings = settings or default_settings
    return {
        DocumentFamily.QUOTE: settings.QUOTE_PREFIX,
        DocumentFamily.INVOICE: settings.INVOICE_PREFIX,
        DocumentFamily.SALES_ORDER: settings.SALES_ORDER_PREFIX,
        DocumentFamily.PAYMENT: settings.PAYMENT_PREFIX,
        DocumentFamily.JOURNAL_ENTRY: settings.JOURNAL_PREFIX,
    }
