import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from erp_ledger.config import Settings, settings as default_settings
from erp_ledger.errors import (
    AccountingError, DocumentNotFound, InvalidDocument, InvalidLineItem, InvalidPayment,
    InvalidStatusTransition, JournalEntryNotDraft, JournalEntryNotFound, SequenceConflict,
)
from erp_ledger.models.accounting import JournalEntry, JournalStatus, LedgerEntry
from erp_ledger.models.config import PostingAccounts
from erp_ledger.models.document import (
    DOCUMENT_MODELS, STATUS_ENUMS, DocumentFamily, DocumentHeader, Invoice, InvoiceStatus,
    LineItem, SalesOrder,
)
from erp_ledger.models.money import Money, Numeric, ZERO, to_decimal
from erp_ledger.models.payment import Payment, PaymentMethod, PaymentStatus
from erp_ledger.repositories.unit_of_work import AbstractUnitOfWork
from erp_ledger.services import journal_builder
from erp_ledger.tools.document_totals import DiscountPolicy, DocumentTotals, compute_document_totals
from erp_ledger.tools.invoice_status import compute_amount_due, resolve_invoice_status
from erp_ledger.tools.ledger_poster import build_ledger_entries, check_journal_lines
from erp_ledger.tools.line_calculator import price_line
from erp_ledger.tools.numbering import is_sequence_number, prefixes_from_settings

logger = logging.getLogger(__name__)

UnitOfWorkFactory = Callable[[], AbstractUnitOfWork]

# Header fields the engine derives; callers cannot supply them to create_document
_DERIVED_FIELDS = frozenset({
    "id", "_id", "family", "number", "status", "lines", "subtotal", "tax_rate", "tax_amount",
    "discount_amount", "total", "amount_paid", "amount_due", "shipping_amount",
    "journal_entry_number", "created_at", "updated_at",
})


@dataclass
class PaymentResult:
    """Everything record_payment changed, returned together."""
    payment: Payment
    invoice: Invoice
    ledger_entries: List[LedgerEntry] = field(default_factory=list)
    journal_entry: Optional[JournalEntry] = None


def _coerce_lines(lines: Iterable[Union[LineItem, Mapping[str, Any]]]) -> List[LineItem]:
    priced = []
    for index, line in enumerate(lines):
        if not isinstance(line, LineItem):
            try:
                line = LineItem.model_validate(dict(line))
            except ValidationError as e:
                err = e.errors()[0]
                name = ".".join(str(p) for p in err["loc"]) or "line"
                raise InvalidLineItem(name, err.get("input"), f"line {index}: {err['msg']}") from e
        priced.append(price_line(line).model_copy(update={"sort_order": line.sort_order or index}))
    return priced


def _now() -> datetime:
    return datetime.utcnow()


class AccountingEngine:
    """
    Facade over the pure calculators and the persistence boundary.

    Each mutating call opens one unit of work from the injected factory,
    validates everything before writing, and commits once. Any exception
    leaves the store as it was.

    Usage:
        engine = AccountingEngine(InMemoryStore(default_chart()))
        invoice = await engine.create_document("invoice", lines, tax_rate="8.5")
        await engine.post_invoice(invoice.number)
        result = await engine.record_payment(invoice.number, invoice.total, method="cash")
    """

    def __init__(self, uow_factory: UnitOfWorkFactory,
                 settings: Optional[Settings] = None,
                 posting_accounts: Optional[PostingAccounts] = None):
        self.uow_factory = uow_factory
        self.settings = settings or default_settings
        self.posting_accounts = posting_accounts or PostingAccounts.from_settings(self.settings)
        self.prefixes = prefixes_from_settings(self.settings)
        self.discount_policy = DiscountPolicy(self.settings.DOCUMENT_DISCOUNT_POLICY.lower())

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def _totals(self, family: DocumentFamily, lines: List[LineItem], discount: Numeric,
                tax_rate: Numeric, shipping: Numeric) -> DocumentTotals:
        if family is not DocumentFamily.SALES_ORDER and to_decimal(shipping) != 0:
            raise InvalidDocument(f"Only sales orders carry shipping, got {shipping} on a {family.value}",
                                  details={"field": "shipping_amount", "value": str(shipping)})
        return compute_document_totals(lines, discount, tax_rate, shipping,
                                       discount_policy=self.discount_policy)

    async def _find_document(self, uow: AbstractUnitOfWork, number: str,
                             family: Optional[Union[DocumentFamily, str]] = None) -> DocumentHeader:
        families = [DocumentFamily(family)] if family else list(DOCUMENT_MODELS)
        for candidate in families:
            document = await uow.documents.get(candidate, number)
            if document is not None:
                return document
        raise DocumentNotFound(f"Document {number} not found", details={"number": number})

    async def _get_invoice(self, uow: AbstractUnitOfWork, number: str) -> Invoice:
        return await self._find_document(uow, number, DocumentFamily.INVOICE)

    @staticmethod
    def _refresh_invoice(invoice: Invoice, today: Optional[date] = None) -> Invoice:
        invoice.amount_due = compute_amount_due(invoice.total, invoice.amount_paid).amount
        invoice.status = resolve_invoice_status(invoice.total, invoice.amount_paid,
                                                invoice.due_date, invoice.status, today)
        return invoice

    async def create_document(self, family: Union[DocumentFamily, str],
                              lines: Iterable[Union[LineItem, Mapping[str, Any]]],
                              discount: Numeric = 0,
                              tax_rate: Numeric = 0,
                              shipping: Numeric = 0,
                              **header: Any) -> DocumentHeader:
        """
        Prices the lines, totals the header, issues the next number for the
        family and stores the document in its initial status.
        """
        try:
            family = DocumentFamily(family)
            model_cls = DOCUMENT_MODELS[family]
        except (ValueError, KeyError):
            raise InvalidDocument(f"Unknown document family {family!r}",
                                  details={"family": str(family)}) from None

        derived = _DERIVED_FIELDS.intersection(header)
        if derived:
            raise InvalidDocument(f"Derived fields cannot be supplied: {sorted(derived)}",
                                  details={"fields": sorted(derived)})

        # 1. Price lines and compute totals before touching the store
        priced = _coerce_lines(lines)
        totals = self._totals(family, priced, discount, tax_rate, shipping)

        data: Dict[str, Any] = {
            "lines": priced,
            "tax_rate": to_decimal(tax_rate),
            **totals.as_dict(),
            **header,
        }
        if family is DocumentFamily.SALES_ORDER:
            data["shipping_amount"] = to_decimal(shipping)
        if family is DocumentFamily.INVOICE:
            data["amount_due"] = compute_amount_due(totals.total, 0).amount

        async with self.uow_factory() as uow:
            # 2. Issue the number inside the same unit of work as the insert
            number = await uow.sequences.issue(family, self.prefixes[family])
            try:
                document = model_cls(number=number, **data)
            except ValidationError as e:
                raise InvalidDocument(f"Invalid {family.value} header: {e.errors()[0]['msg']}",
                                      details={"errors": [err["msg"] for err in e.errors()]}) from e

            document = await uow.documents.add(document)
            await uow.commit()

        logger.info(f"Created {family.value} {document.number} total={document.total}")
        return document

    async def update_document_lines(self, number: str,
                                    lines: Iterable[Union[LineItem, Mapping[str, Any]]],
                                    discount: Optional[Numeric] = None,
                                    tax_rate: Optional[Numeric] = None,
                                    shipping: Optional[Numeric] = None,
                                    *, family: Optional[Union[DocumentFamily, str]] = None) -> DocumentHeader:
        """Replaces the lines and recomputes totals; number and status are kept."""
        priced = _coerce_lines(lines)

        async with self.uow_factory() as uow:
            document = await self._find_document(uow, number, family)
            doc_family = DocumentFamily(document.family)

            if isinstance(document, Invoice) and document.journal_entry_number:
                raise InvalidDocument(
                    f"Invoice {number} is posted as {document.journal_entry_number}; void the entry first",
                    details={"number": number, "journal_entry_number": document.journal_entry_number},
                )

            discount = document.discount_amount if discount is None else discount
            tax_rate = document.tax_rate if tax_rate is None else tax_rate
            shipping = document.shipping if shipping is None else shipping
            totals = self._totals(doc_family, priced, discount, tax_rate, shipping)

            update: Dict[str, Any] = {
                "lines": priced,
                "tax_rate": to_decimal(tax_rate),
                **totals.as_dict(),
                "updated_at": _now(),
            }
            if isinstance(document, SalesOrder):
                update["shipping_amount"] = Money.of(shipping).amount
            document = document.model_copy(update=update)
            if isinstance(document, Invoice):
                self._refresh_invoice(document)

            await uow.documents.save(document)
            await uow.commit()

        logger.info(f"Updated lines on {number}: total={document.total}")
        return document

    async def set_document_status(self, number: str, status: str,
                                  *, family: Optional[Union[DocumentFamily, str]] = None) -> DocumentHeader:
        """
        Manual status change, validated against the document family's enum.
        Invoices moved to a status the resolver owns are re-derived at once,
        so "paid" cannot be set on an unpaid invoice.
        """
        async with self.uow_factory() as uow:
            document = await self._find_document(uow, number, family)
            doc_family = DocumentFamily(document.family)
            status_enum = STATUS_ENUMS[doc_family]
            try:
                new_status = status_enum(status)
            except ValueError:
                logger.warning(f"Rejected status {status!r} for {doc_family.value} {number}")
                raise InvalidStatusTransition(
                    f"{status!r} is not a valid {doc_family.value} status",
                    details={"number": number, "status": str(status),
                             "allowed": [s.value for s in status_enum]},
                ) from None

            previous = document.status
            document.status = new_status
            if isinstance(document, Invoice):
                self._refresh_invoice(document)
            document.updated_at = _now()

            await uow.documents.save(document)
            await uow.commit()

        logger.info(f"{doc_family.value} {number}: {previous.value} -> {document.status.value}")
        return document

    async def refresh_invoice_status(self, number: str, today: Optional[date] = None) -> Invoice:
        """Re-derives status and amount_due, e.g. from a nightly overdue sweep."""
        async with self.uow_factory() as uow:
            invoice = await self._get_invoice(uow, number)
            previous = invoice.status
            self._refresh_invoice(invoice, today)
            if invoice.status != previous:
                invoice.updated_at = _now()
                await uow.documents.save(invoice)
                logger.info(f"Invoice {number}: {previous.value} -> {invoice.status.value}")
            await uow.commit()
        return invoice

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def record_payment(self, invoice_number: str, amount: Numeric, *,
                             payment_date: Optional[date] = None,
                             method: Optional[Union[PaymentMethod, str]] = None,
                             customer_id: Optional[str] = None,
                             reference_number: Optional[str] = None,
                             notes: Optional[str] = None,
                             post_to_ledger: bool = True) -> PaymentResult:
        """
        Applies a payment to an invoice.

        Creates the payment, updates amount_paid / amount_due, re-derives the
        invoice status and (optionally) posts DR cash-or-bank / CR receivable.
        Overpayment is accepted: amount_due bottoms out at zero.
        """
        try:
            paid = Money.of(amount)
        except (TypeError, ArithmeticError) as e:
            raise InvalidPayment(f"Invalid payment amount {amount!r}", details={"amount": str(amount)}) from e
        if paid.cents <= 0:
            raise InvalidPayment(f"Payment amount must be positive, got {paid}",
                                 details={"amount": str(paid)})
        try:
            method = PaymentMethod(method) if method is not None else None
        except ValueError:
            raise InvalidPayment(f"Unknown payment method {method!r}",
                                 details={"method": str(method)}) from None

        async with self.uow_factory() as uow:
            invoice = await self._get_invoice(uow, invoice_number)
            if invoice.status is InvoiceStatus.CANCELLED:
                logger.warning(f"Payment rejected: invoice {invoice_number} is cancelled")
                raise InvalidPayment(f"Invoice {invoice_number} is cancelled",
                                     details={"invoice_number": invoice_number})

            # 1. Payment record
            payment = Payment(
                payment_number=await uow.sequences.issue(DocumentFamily.PAYMENT,
                                                         self.prefixes[DocumentFamily.PAYMENT]),
                customer_id=customer_id or invoice.customer_id,
                invoice_number=invoice.number,
                payment_date=payment_date or date.today(),
                amount=paid.amount,
                method=method,
                reference_number=reference_number,
                notes=notes,
            )

            # 2. Ledger
            entry = None
            ledger_entries: List[LedgerEntry] = []
            if post_to_ledger:
                entry, ledger_entries = await self._post_entry(
                    uow, journal_builder.payment_entry(payment, self.posting_accounts), "payment")
                payment.journal_entry_number = entry.entry_number

            payment = await uow.payments.add(payment)

            # 3. Invoice
            invoice.amount_paid = (Money.of(invoice.amount_paid) + paid).amount
            self._refresh_invoice(invoice)
            invoice.updated_at = _now()
            await uow.documents.save(invoice)

            await uow.commit()

        logger.info(f"Recorded {payment.payment_number} of {paid} on {invoice.number}; "
                    f"status={invoice.status.value} due={invoice.amount_due}")
        return PaymentResult(payment=payment, invoice=invoice,
                             ledger_entries=ledger_entries, journal_entry=entry)

    # ------------------------------------------------------------------
    # Journal & ledger
    # ------------------------------------------------------------------

    async def _post_entry(self, uow: AbstractUnitOfWork, entry: JournalEntry,
                          transaction_type: str = "journal_entry") -> Tuple[JournalEntry, List[LedgerEntry]]:
        """Validate, number, store and append ledger rows for one entry, inside ``uow``."""
        if entry.status is not JournalStatus.DRAFT:
            raise JournalEntryNotDraft(f"Journal entry {entry.entry_number} is already {entry.status.value}",
                                       details={"entry_number": entry.entry_number,
                                                "status": entry.status.value})

        existing = await uow.journal.get(entry.entry_number) if entry.entry_number else None
        if existing is not None and existing.status is not JournalStatus.DRAFT:
            raise JournalEntryNotDraft(f"Journal entry {entry.entry_number} is already {existing.status.value}",
                                       details={"entry_number": entry.entry_number,
                                                "status": existing.status.value})

        je_prefix = self.prefixes[DocumentFamily.JOURNAL_ENTRY]
        if existing is None and is_sequence_number(je_prefix, entry.entry_number):
            # Only the sequence hands out numbers of its own shape
            raise SequenceConflict(f"Entry number {entry.entry_number} is reserved for issued numbers",
                                   details={"entry_number": entry.entry_number})

        check_journal_lines(entry.lines)

        entry_number = entry.entry_number or await uow.sequences.issue(DocumentFamily.JOURNAL_ENTRY, je_prefix)
        entry = entry.model_copy(update={"entry_number": entry_number}, deep=True)

        codes = [line.account_code for line in entry.lines]
        accounts = await uow.accounts.get_many(codes)
        opening = await uow.ledger.latest_for_accounts(codes)
        ledger_entries = build_ledger_entries(entry, accounts, opening, transaction_type)

        entry.status = JournalStatus.POSTED
        entry.posted_at = _now()
        if existing is not None:
            entry = await uow.journal.save(entry.model_copy(update={"id": existing.id}))
        else:
            entry = await uow.journal.add(entry)
        stored = await uow.ledger.append(ledger_entries)
        return entry, stored

    async def post_journal_entry(self, entry: JournalEntry) -> List[LedgerEntry]:
        """
        Posts a manual journal entry: one ledger row per line, in line order.

        Raises:
            InsufficientJournalLines, InvalidJournalLine, UnbalancedJournalEntry,
            AccountNotFound, InactiveAccount, UnknownAccountType, JournalEntryNotDraft
        """
        try:
            async with self.uow_factory() as uow:
                posted, ledger_entries = await self._post_entry(uow, entry)
                await uow.commit()
        except AccountingError as e:
            logger.warning(f"Journal entry {entry.entry_number or '(new)'} rejected: {e.message}")
            raise

        logger.info(f"Posted {posted.entry_number}: {len(ledger_entries)} ledger rows, "
                    f"{posted.total_debit} each side")
        return ledger_entries

    async def post_invoice(self, number: str) -> List[LedgerEntry]:
        """
        DR receivable (total), CR revenue (total - tax), CR tax payable (tax).
        An invoice posts once; a draft invoice moves to sent.
        """
        async with self.uow_factory() as uow:
            invoice = await self._get_invoice(uow, number)
            if invoice.journal_entry_number:
                raise InvalidDocument(f"Invoice {number} is already posted as {invoice.journal_entry_number}",
                                      details={"number": number,
                                               "journal_entry_number": invoice.journal_entry_number})
            if invoice.status is InvoiceStatus.CANCELLED:
                raise InvalidDocument(f"Invoice {number} is cancelled", details={"number": number})

            entry, ledger_entries = await self._post_entry(
                uow, journal_builder.invoice_entry(invoice, self.posting_accounts), "invoice")

            invoice.journal_entry_number = entry.entry_number
            if invoice.status is InvoiceStatus.DRAFT:
                invoice.status = InvoiceStatus.SENT
            self._refresh_invoice(invoice)
            invoice.updated_at = _now()
            await uow.documents.save(invoice)
            await uow.commit()

        logger.info(f"Posted invoice {number} as {entry.entry_number} (status={invoice.status.value})")
        return ledger_entries

    async def _void_payment(self, uow: AbstractUnitOfWork, payment_number: str, entry_number: str) -> None:
        payment = await uow.payments.get(payment_number)
        if payment is None or payment.journal_entry_number != entry_number:
            return
        payment.status = PaymentStatus.VOID
        await uow.payments.save(payment)

        if payment.invoice_number:
            invoice = await self._get_invoice(uow, payment.invoice_number)
            invoice.amount_paid = (Money.of(invoice.amount_paid) - Money.of(payment.amount)).amount
            self._refresh_invoice(invoice)
            invoice.updated_at = _now()
            await uow.documents.save(invoice)
            logger.info(f"Voided {payment_number}: {invoice.number} now {invoice.status.value}, "
                        f"due={invoice.amount_due}")

    async def void_journal_entry(self, entry_number: str) -> List[LedgerEntry]:
        """
        Posts a reversing entry and marks the original void. Ledger rows are
        never edited; the reversal brings every touched balance back.

        Voiding an invoice posting unlinks it so the invoice can be reposted.
        Voiding a payment posting voids the payment and takes its amount back
        off the invoice, which is then re-derived.
        """
        async with self.uow_factory() as uow:
            original = await uow.journal.get(entry_number)
            if original is None:
                raise JournalEntryNotFound(f"Journal entry {entry_number} not found",
                                           details={"entry_number": entry_number})
            if original.status is not JournalStatus.POSTED:
                raise InvalidStatusTransition(
                    f"Only posted entries can be voided; {entry_number} is {original.status.value}",
                    details={"entry_number": entry_number, "status": original.status.value},
                )

            reversal, ledger_entries = await self._post_entry(
                uow, journal_builder.reversing_entry(original), "reversal")

            original.status = JournalStatus.VOID
            original.reversed_by = reversal.entry_number
            await uow.journal.save(original)

            # A voided invoice posting frees the invoice to be corrected and reposted
            if original.source_type == "invoice" and original.source_number:
                invoice = await uow.documents.get(DocumentFamily.INVOICE, original.source_number)
                if invoice is not None and invoice.journal_entry_number == entry_number:
                    invoice.journal_entry_number = None
                    invoice.updated_at = _now()
                    await uow.documents.save(invoice)

            # A voided receipt is no longer money paid against its invoice
            if original.source_type == "payment" and original.source_number:
                await self._void_payment(uow, original.source_number, entry_number)

            await uow.commit()

        logger.info(f"Voided {entry_number} with reversal {reversal.entry_number}")
        return ledger_entries

    async def account_balance(self, account_code: str) -> Decimal:
        """Running balance after the account's latest posting; zero if it has none."""
        async with self.uow_factory() as uow:
            latest = await uow.ledger.latest_for_account(account_code)
        return latest.balance if latest else ZERO

    async def ledger_for_account(self, account_code: str) -> List[LedgerEntry]:
        async with self.uow_factory() as uow:
            return await uow.ledger.list_for_account(account_code)

    async def payments_for_invoice(self, invoice_number: str) -> List[Payment]:
        async with self.uow_factory() as uow:
            return await uow.payments.list_for_invoice(invoice_number)

    async def get_document(self, number: str,
                           family: Optional[Union[DocumentFamily, str]] = None) -> DocumentHeader:
        async with self.uow_factory() as uow:
            return await self._find_document(uow, number, family)
