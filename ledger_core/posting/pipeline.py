import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar
from pydantic import BaseModel, ValidationError
from ledger_core.guardrails.permissions import Actor, Permission
from ledger_core.models.account import Account, AccountType
from ledger_core.models.accounting import SourceType
from ledger_core.models.results import (
    ErrorCode, JournalSummary, PostingRejected, PostingStage, PostingValidated, ValidationIssue,
)
from ledger_core.posting.context import PostingContext
from ledger_core.tools.account_directory import is_postable
from ledger_core.tools.balancing import JournalBuilder
from ledger_core.tools.currency import InvalidExchangeRate, check_rate
from ledger_core.tools.money import minor_units, round_money

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _field_path(loc: Iterable[Any]) -> str:
    return ".".join(str(part) for part in loc)


class PostingPipeline:
    """
    Tracks one validation call through
    RECEIVED -> ACCOUNTS_RESOLVED -> LINES_EXPANDED -> BALANCED -> VALID.

    Independent checks add issues without stopping; `rejected()` is consulted
    at each stage boundary.
    """

    def __init__(self, context: PostingContext, source_type: SourceType):
        self.context = context
        self.source_type = source_type
        self.stage = PostingStage.RECEIVED
        self.errors: List[ValidationIssue] = []
        self.reference: str = ""

    # -- error accumulation -------------------------------------------------

    def add(self, code: ErrorCode, message: str, field: Optional[str] = None, **context) -> ValidationIssue:
        issue = ValidationIssue(code=code, message=message, field=field, context=context)
        self.errors.append(issue)
        return issue

    def add_issue(self, issue: ValidationIssue) -> None:
        self.errors.append(issue)

    def has_errors(self) -> bool:
        return bool(self.errors)

    def advance(self, stage: PostingStage) -> None:
        self.stage = stage

    def reject(self) -> PostingRejected:
        codes = sorted({e.code.value for e in self.errors})
        logger.warning(
            f"{self.source_type.value} {self.reference or '?'} rejected at {self.stage.value}: "
            f"{len(self.errors)} error(s) {codes}"
        )
        return PostingRejected(stage=self.stage, errors=self.errors)

    # -- stage 1: structure -------------------------------------------------

    def parse(self, model: Type[M], document: Any) -> Optional[M]:
        """
        Coerces a raw dict (or another model) into the document input type.
        Every pydantic error becomes a VALIDATION_ERROR with a dotted field path.
        """
        if isinstance(document, model):
            return document
        if isinstance(document, BaseModel):
            document = document.model_dump()
        try:
            return model.model_validate(document)
        except ValidationError as e:
            for err in e.errors():
                self.add(
                    ErrorCode.VALIDATION_ERROR,
                    err["msg"],
                    field=_field_path(err["loc"]) or None,
                    type=err["type"],
                )
            return None

    # -- stage 2: independent checks ---------------------------------------

    def require_account(self, account_id: str, field: str,
                        expected_types: Optional[Iterable[AccountType]] = None,
                        role: str = "account") -> Optional[Account]:
        account = self.context.accounts.resolve_account(account_id)
        if not is_postable(account):
            if account is None:
                reason, message = "missing", f"Account {account_id} not found"
            elif not account.is_active:
                reason, message = "inactive", f"Account {account_id} is inactive"
            else:
                reason, message = "header", f"Account {account_id} is a header account and cannot be posted to"
            self.add(ErrorCode.ACCOUNT_NOT_FOUND, message, field=field, account_id=account_id, reason=reason)
            return None

        if expected_types is not None:
            expected = list(expected_types)
            if account.account_type not in expected:
                names = " or ".join(t.value for t in expected)
                self.add(
                    ErrorCode.ACCOUNT_TYPE_MISMATCH,
                    f"{role.capitalize()} {account_id} must be {names}, got {account.account_type.value}",
                    field=field,
                    account_id=account_id,
                    account_type=account.account_type.value,
                    expected=[t.value for t in expected],
                )
        return account

    def resolve_rate(self, currency: str, explicit_rate: Optional[Decimal], as_of: date,
                     field: str = "exchange_rate") -> Optional[Decimal]:
        """
        Explicit document rate first, then the context's rate provider.
        A missing rate is never replaced by 1.
        """
        base = self.context.base_currency
        if currency == base:
            return Decimal("1")

        rate = explicit_rate
        if rate is None and self.context.rates is not None:
            rate = self.context.rates.get_exchange_rate(currency, base, as_of)

        if rate is None:
            self.add(
                ErrorCode.MISSING_EXCHANGE_RATE,
                f"No exchange rate available for {currency} to {base} on {as_of}",
                field=field,
                from_currency=currency,
                to_currency=base,
                as_of=as_of.isoformat(),
            )
            return None

        try:
            return check_rate(rate, currency, base)
        except InvalidExchangeRate as e:
            self.add(
                ErrorCode.INVALID_EXCHANGE_RATE,
                str(e),
                field=field,
                from_currency=currency,
                to_currency=base,
                rate=str(rate),
            )
            return None

    def check_minor_units(self, amount: Decimal, currency: str, field: str) -> None:
        """Entered amounts may not be finer than the currency's minor unit (100.004 MYR is refused)."""
        if amount != round_money(amount, currency):
            self.add(
                ErrorCode.VALIDATION_ERROR,
                f"Amount {amount} has more decimals than {currency} allows ({minor_units(currency)})",
                field=field,
                amount=amount,
                currency=currency,
                minor_units=minor_units(currency),
            )

    def check_not_future(self, value: date, field: str, label: str) -> None:
        if value > self.context.today:
            self.add(
                ErrorCode.VALIDATION_ERROR,
                f"{label} cannot be in the future",
                field=field,
                value=value.isoformat(),
                today=self.context.today.isoformat(),
            )

    def check_permission(self, actor: Optional[Actor], permission: Permission) -> None:
        if actor is None:
            return
        if not self.context.permissions.check_permission(actor, permission):
            self.add(
                ErrorCode.PERMISSION_DENIED,
                f"Role '{actor.role}' is not authorized to {permission.value.lower().replace('_', ' ')}",
                actor_id=actor.actor_id,
                role=actor.role,
                permission=permission.value,
            )

    # -- stages 3-5: expansion, balance, result ----------------------------

    def finish(self, builder: JournalBuilder, journal_number: str, source_document: str,
               entry_date: date, description: str = "",
               details: Optional[Dict[str, Any]] = None):
        if len(builder.lines) < 2:
            self.add(
                ErrorCode.VALIDATION_ERROR,
                "Document does not produce at least two non-zero ledger lines",
                lines_count=len(builder.lines),
            )
            return self.reject()
        self.advance(PostingStage.LINES_EXPANDED)
        details = dict(details or {})
        residual = builder.absorb_conversion_residual()
        if residual:
            details["fx_rounding"] = residual
        issue = builder.check_balance()
        if issue is not None:
            self.add_issue(issue)
            return self.reject()
        self.advance(PostingStage.BALANCED)

        journal = builder.build(
            journal_number=journal_number,
            source_type=self.source_type,
            source_document=source_document,
            entry_date=entry_date,
            description=description,
        )
        self.advance(PostingStage.VALID)
        logger.info(
            f"{self.source_type.value} {source_document} validated: {len(journal.lines)} lines, "
            f"DR {journal.total_debit} / CR {journal.total_credit} {journal.currency}"
        )
        return PostingValidated(
            journal=journal,
            summary=JournalSummary(
                lines_count=len(journal.lines),
                total_debit=journal.total_debit,
                total_credit=journal.total_credit,
            ),
            details=details,
        )
