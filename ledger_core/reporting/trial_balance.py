import logging
import time
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Protocol, Union
from pydantic import ValidationError
from ledger_core.models.account import Account, AccountType, NormalBalance
from ledger_core.models.accounting import JournalEntry
from ledger_core.models.reports import (
    AccountFilter, TrialBalanceAccount, TrialBalanceError, TrialBalanceErrorCode, TrialBalanceMetadata,
    TrialBalanceParams, TrialBalanceResult, TrialBalanceTotals,
)
from ledger_core.tools.currency import ExchangeRateProvider, InvalidExchangeRate, check_rate, convert
from ledger_core.tools.money import ZERO, is_balanced

logger = logging.getLogger(__name__)


class LedgerQuerySource(Protocol):
    def get_accounts(self) -> List[Account]:
        ...

    def get_posted_entries(self, until: date) -> List[JournalEntry]:
        ...


class InMemoryLedger:
    """Posted entries and the chart of accounts held in memory."""

    def __init__(self, accounts: Iterable[Account] = (), entries: Iterable[JournalEntry] = ()):
        self.accounts = list(accounts)
        self.entries = list(entries)

    def post(self, entry: JournalEntry) -> None:
        self.entries.append(entry)

    def get_accounts(self) -> List[Account]:
        return list(self.accounts)

    def get_posted_entries(self, until: date) -> List[JournalEntry]:
        return [e for e in self.entries if e.entry_date <= until]


class _Activity:
    __slots__ = ("opening_debits", "opening_credits", "period_debits", "period_credits")

    def __init__(self):
        self.opening_debits = ZERO
        self.opening_credits = ZERO
        self.period_debits = ZERO
        self.period_credits = ZERO


def _signed(debits: Decimal, credits: Decimal, normal_balance: NormalBalance) -> Decimal:
    return debits - credits if normal_balance == NormalBalance.DEBIT else credits - debits


def filter_accounts(accounts: Iterable[Account], account_filter: AccountFilter) -> List[Account]:
    """Active accounts matching every filter that is set, ordered by code."""
    selected = []
    for account in accounts:
        if not account.is_active:
            continue
        if account_filter.account_types and account.account_type not in account_filter.account_types:
            continue
        if account_filter.account_ids and account.account_id not in account_filter.account_ids:
            continue
        code_range = account_filter.code_range
        if code_range and not (code_range.code_from <= account.sort_key <= code_range.code_to):
            continue
        selected.append(account)
    return sorted(selected, key=lambda a: a.sort_key)


def calculate_totals(accounts: Iterable[TrialBalanceAccount]) -> TrialBalanceTotals:
    """
    Closing balances go to their normal side; a negative balance goes to the
    opposite side. Category totals are expressed in each category's natural sign.
    """
    totals = TrialBalanceTotals()
    for account in accounts:
        balance = account.closing_balance
        debit_normal = account.normal_balance == NormalBalance.DEBIT
        if balance > 0:
            if debit_normal:
                totals.total_debits += balance
            else:
                totals.total_credits += balance
        elif balance < 0:
            if debit_normal:
                totals.total_credits += -balance
            else:
                totals.total_debits += -balance

        debit_view = balance if debit_normal else -balance
        if account.account_type == AccountType.ASSET:
            totals.total_assets += debit_view
        elif account.account_type == AccountType.LIABILITY:
            totals.total_liabilities += -debit_view
        elif account.account_type == AccountType.EQUITY:
            totals.total_equity += -debit_view
        elif account.account_type == AccountType.INCOME:
            totals.total_income += -debit_view
        elif account.account_type == AccountType.EXPENSE:
            totals.total_expenses += debit_view

    totals.net_income = totals.total_income - totals.total_expenses
    return totals


def _error(code: TrialBalanceErrorCode, message: str, **details) -> TrialBalanceError:
    logger.warning(f"Trial balance failed ({code.value}): {message}")
    return TrialBalanceError(error=message, code=code, details=details)


def _parse_params(params: Any, today: date) -> Union[TrialBalanceParams, TrialBalanceError]:
    if not isinstance(params, TrialBalanceParams):
        try:
            params = TrialBalanceParams.model_validate(params)
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(p) for p in err['loc']) or 'params'}: {err['msg']}" for err in e.errors()
            ]
            return _error(TrialBalanceErrorCode.INVALID_INPUT,
                          f"Input validation failed: {', '.join(errors)}", errors=errors)
    if params.period_end > today:
        return _error(TrialBalanceErrorCode.INVALID_INPUT,
                      "Input validation failed: period end cannot be in the future",
                      errors=["period_end cannot be in the future"],
                      period_end=params.period_end.isoformat())
    return params


def _display_rate(params: TrialBalanceParams, rates: Optional[ExchangeRateProvider]):
    """Returns the base->display rate, or a TrialBalanceError."""
    base, display = params.base_currency, params.display_currency
    rate = params.display_rate
    if rate is None and rates is not None:
        rate = rates.get_exchange_rate(base, display, params.period_end)
    if rate is None:
        return _error(TrialBalanceErrorCode.MISSING_EXCHANGE_RATE,
                      f"No exchange rate available for {base} to {display} on {params.period_end}",
                      from_currency=base, to_currency=display, as_of=params.period_end.isoformat())
    try:
        return check_rate(rate, base, display)
    except InvalidExchangeRate as e:
        return _error(TrialBalanceErrorCode.INVALID_EXCHANGE_RATE, str(e),
                      from_currency=base, to_currency=display, rate=str(rate))


def _convert_account(account: TrialBalanceAccount, base: str, display: str, rate: Decimal) -> TrialBalanceAccount:
    return account.model_copy(update={
        "opening_balance": convert(account.opening_balance, base, display, rate),
        "period_debits": convert(account.period_debits, base, display, rate),
        "period_credits": convert(account.period_credits, base, display, rate),
        "closing_balance": convert(account.closing_balance, base, display, rate),
        "currency": display,
    })


def _convert_totals(totals: TrialBalanceTotals, base: str, display: str, rate: Decimal) -> TrialBalanceTotals:
    data: Dict[str, Decimal] = {
        name: convert(value, base, display, rate) for name, value in totals.model_dump().items()
    }
    return TrialBalanceTotals(**data)


def generate_trial_balance(params: Any, source: LedgerQuerySource,
                           rates: Optional[ExchangeRateProvider] = None,
                           today: Optional[date] = None) -> Union[TrialBalanceResult, TrialBalanceError]:
    """
    Generate Trial Balance from posted journal entries.
    """
    started = time.perf_counter()
    today = today or date.today()

    # 1. Validate input parameters
    params = _parse_params(params, today)
    if isinstance(params, TrialBalanceError):
        return params
    period_start = params.resolved_period_start()
    base = params.base_currency

    # 2. Chart of accounts
    accounts = filter_accounts(source.get_accounts(), params.account_filter)
    if not accounts:
        return _error(TrialBalanceErrorCode.NO_ACCOUNTS_FOUND, "No accounts found for the specified criteria")

    # 3. Display rate, resolved before any aggregation
    rate = Decimal("1")
    display = params.display_currency or base
    if display != base:
        rate = _display_rate(params, rates)
        if isinstance(rate, TrialBalanceError):
            return rate

    # 4. Aggregate posted lines per account
    activity: Dict[str, _Activity] = {a.account_id: _Activity() for a in accounts}
    oldest: Optional[date] = None
    newest: Optional[date] = None
    for entry in source.get_posted_entries(params.period_end):
        if entry.entry_date > params.period_end:
            continue
        touched = False
        for line in entry.lines:
            bucket = activity.get(line.account_id)
            if bucket is None:
                continue
            touched = True
            if entry.entry_date < period_start:
                bucket.opening_debits += line.debit
                bucket.opening_credits += line.credit
            else:
                bucket.period_debits += line.debit
                bucket.period_credits += line.credit
        if touched:
            oldest = entry.entry_date if oldest is None else min(oldest, entry.entry_date)
            newest = entry.entry_date if newest is None else max(newest, entry.entry_date)

    # 5. Signed balances
    rows: List[TrialBalanceAccount] = []
    for account in accounts:
        a = activity[account.account_id]
        opening = _signed(a.opening_debits, a.opening_credits, account.normal_balance)
        closing = _signed(a.opening_debits + a.period_debits, a.opening_credits + a.period_credits,
                          account.normal_balance)
        if not params.include_zero_balances and not (opening or a.period_debits or a.period_credits or closing):
            continue
        rows.append(TrialBalanceAccount(
            account_id=account.account_id,
            code=account.sort_key,
            name=account.name,
            account_type=account.account_type,
            normal_balance=account.normal_balance,
            parent_account_id=account.parent_account_id,
            is_header=account.is_header,
            opening_balance=opening,
            period_debits=a.period_debits if params.include_period_activity else ZERO,
            period_credits=a.period_credits if params.include_period_activity else ZERO,
            closing_balance=closing,
            currency=base,
        ))

    # 6. Totals and balance check, in base currency
    totals = calculate_totals(rows)
    balanced = is_balanced(totals.total_debits, totals.total_credits)
    if not balanced:
        logger.error(f"Trial balance out of balance: DR {totals.total_debits} != CR {totals.total_credits}")

    # 7. Re-express for display
    if display != base:
        rows = [_convert_account(r, base, display, rate) for r in rows]
        totals = _convert_totals(totals, base, display, rate)

    metadata = TrialBalanceMetadata(
        total_accounts=len(rows),
        accounts_with_activity=sum(1 for r in rows if r.has_activity),
        oldest_transaction=oldest,
        newest_transaction=newest,
        generation_time_ms=(time.perf_counter() - started) * 1000,
    )
    logger.info(f"Trial balance {period_start}..{params.period_end}: {len(rows)} accounts, balanced={balanced}")

    return TrialBalanceResult(
        company_id=params.company_id,
        period_start=period_start,
        period_end=params.period_end,
        base_currency=base,
        currency=display,
        exchange_rate=rate,
        accounts=rows,
        totals=totals,
        is_balanced=balanced,
        metadata=metadata,
    )
