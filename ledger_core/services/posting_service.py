import asyncio
import logging
from datetime import date
from typing import Any, Optional, Tuple, Type
from pydantic import BaseModel, ValidationError
from ledger_core.config import settings
from ledger_core.database import db
from ledger_core.guardrails.permissions import Actor
from ledger_core.models.currency import ExchangeRate
from ledger_core.models.documents import BillInput, InvoiceInput, JournalInput, PaymentInput
from ledger_core.models.reports import TrialBalanceParams
from ledger_core.posting.bill import validate_bill_posting
from ledger_core.posting.context import PostingContext
from ledger_core.posting.invoice import validate_invoice_posting
from ledger_core.posting.journal import validate_journal_posting
from ledger_core.posting.payment import validate_payment_processing_enhanced
from ledger_core.reporting.trial_balance import InMemoryLedger, generate_trial_balance
from ledger_core.repositories.journal import JournalCommitError
from ledger_core.tools.currency import InMemoryRateTable

logger = logging.getLogger(__name__)

# Field holding the document date for each input type
DATE_FIELDS = {
    InvoiceInput: "invoice_date",
    BillInput: "bill_date",
    PaymentInput: "payment_date",
    JournalInput: "journal_date",
}


class PostingService:
    """
    Async boundary around the pure validators: loads what a validation call
    needs from MongoDB, validates, and commits validated entries atomically.
    """

    def __init__(self, database=None, rate_timeout: Optional[float] = None):
        self.db = database or db
        self.rate_timeout = rate_timeout if rate_timeout is not None else settings.RATE_LOOKUP_TIMEOUT_SECONDS

    @staticmethod
    def _header(model: Type[BaseModel], document: Any) -> Optional[Tuple[str, Any, date]]:
        """(currency, explicit rate, document date), or None when the document is malformed."""
        if not isinstance(document, model):
            try:
                document = model.model_validate(document.model_dump() if isinstance(document, BaseModel) else document)
            except ValidationError:
                # The validator reports the structural errors
                return None
        return document.currency, document.exchange_rate, getattr(document, DATE_FIELDS[model])

    async def _lookup_rate(self, from_currency: str, to_currency: str, as_of: date) -> Optional[ExchangeRate]:
        """Bounded rate lookup. A timeout is reported as a missing rate, never as 1."""
        try:
            return await asyncio.wait_for(
                self.db.exchange_rates.get_latest(from_currency, to_currency, as_of),
                timeout=self.rate_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Exchange rate lookup {from_currency}/{to_currency} timed out after {self.rate_timeout}s"
            )
            return None

    async def build_context(self, model: Type[BaseModel], document: Any, company_id: Optional[str] = None,
                            actor: Optional[Actor] = None) -> PostingContext:
        # 1. Tenant config and chart of accounts
        config = await self.db.config.get_or_default(company_id)
        accounts = await self.db.accounts.load_directory(company_id)

        # 2. Rate, only when the document is foreign and carries none
        rates = InMemoryRateTable()
        header = self._header(model, document)
        if header is not None:
            currency, explicit_rate, as_of = header
            if currency != config.base_currency and explicit_rate is None:
                rate = await self._lookup_rate(currency, config.base_currency, as_of)
                if rate is not None:
                    rates.add(rate)

        return PostingContext.for_company(config, accounts, rates, actor=actor)

    async def _commit(self, result, company_id: Optional[str]):
        if not result.success:
            return result
        try:
            stored = await self.db.journals.commit(result.journal, company_id)
        except JournalCommitError as e:
            logger.error(f"Commit failed for {result.journal.source_type.value} {result.journal.source_document}: {e}")
            raise
        return result.model_copy(update={"journal": stored})

    async def post_invoice(self, invoice: Any, company_id: Optional[str] = None, actor: Optional[Actor] = None):
        context = await self.build_context(InvoiceInput, invoice, company_id, actor)
        return await self._commit(validate_invoice_posting(invoice, context), company_id)

    async def post_bill(self, bill: Any, company_id: Optional[str] = None, actor: Optional[Actor] = None):
        context = await self.build_context(BillInput, bill, company_id, actor)
        return await self._commit(validate_bill_posting(bill, context), company_id)

    async def post_journal(self, journal: Any, company_id: Optional[str] = None, actor: Optional[Actor] = None):
        context = await self.build_context(JournalInput, journal, company_id, actor)
        return await self._commit(validate_journal_posting(journal, context), company_id)

    async def post_payment(self, payment: Any, actor_id: str, actor_role: str, company_id: Optional[str] = None):
        actor = Actor(actor_id=actor_id, role=actor_role)
        context = await self.build_context(PaymentInput, payment, company_id, actor)
        result = validate_payment_processing_enhanced(payment, actor_id, actor_role, context.base_currency, context)
        return await self._commit(result, company_id)

    async def trial_balance(self, params: Any, company_id: Optional[str] = None, today: Optional[date] = None):
        """Loads accounts and posted entries, then aggregates in memory."""
        config = await self.db.config.get_or_default(company_id)
        if not isinstance(params, TrialBalanceParams):
            raw = params
            if isinstance(params, dict):
                raw = {
                    "company_id": company_id,
                    "base_currency": config.base_currency,
                    "fiscal_year_start_month": config.fiscal_year_start_month,
                    **params,
                }
            try:
                params = TrialBalanceParams.model_validate(raw)
            except ValidationError:
                # Let the report produce its INVALID_INPUT error
                return generate_trial_balance(raw, InMemoryLedger(), today=today)

        rates = InMemoryRateTable()
        display = params.display_currency
        if display and display != params.base_currency and params.display_rate is None:
            rate = await self._lookup_rate(params.base_currency, display, params.period_end)
            if rate is not None:
                rates.add(rate)

        accounts = await self.db.accounts.list_for_company(company_id)
        entries = await self.db.journals.list_posted(params.period_end, company_id)
        return generate_trial_balance(params, InMemoryLedger(accounts, entries), rates, today)
