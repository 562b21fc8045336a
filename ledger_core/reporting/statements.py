import logging
from decimal import Decimal
from typing import Callable, List
from ledger_core.models.account import AccountType, default_normal_balance
from ledger_core.models.reports import (
    BalanceSheet, ProfitAndLoss, StatementLine, StatementSection, TrialBalanceAccount, TrialBalanceResult,
)
from ledger_core.tools.money import BALANCE_EPSILON, is_balanced, sum_money

logger = logging.getLogger(__name__)


def _natural(account: TrialBalanceAccount, value: Decimal) -> Decimal:
    """Balances are signed by the account's normal side; statements use the type's natural side."""
    if account.normal_balance == default_normal_balance(account.account_type):
        return value
    return -value


def _section(title: str, tb: TrialBalanceResult, account_type: AccountType,
             amount: Callable[[TrialBalanceAccount], Decimal]) -> StatementSection:
    lines: List[StatementLine] = []
    for account in tb.accounts:
        if account.account_type != account_type or account.is_header:
            continue
        value = amount(account)
        if not value:
            continue
        lines.append(StatementLine(account_id=account.account_id, code=account.code, name=account.name, amount=value))
    return StatementSection(title=title, lines=lines, total=sum_money(l.amount for l in lines))


def _period_movement(account: TrialBalanceAccount) -> Decimal:
    return _natural(account, account.closing_balance - account.opening_balance)


def _closing(account: TrialBalanceAccount) -> Decimal:
    return _natural(account, account.closing_balance)


def build_profit_and_loss(tb: TrialBalanceResult) -> ProfitAndLoss:
    """Income and expenses for the trial balance period."""
    income = _section("Income", tb, AccountType.INCOME, _period_movement)
    expenses = _section("Expenses", tb, AccountType.EXPENSE, _period_movement)
    return ProfitAndLoss(
        period_start=tb.period_start,
        period_end=tb.period_end,
        currency=tb.currency,
        income=income,
        expenses=expenses,
        net_income=income.total - expenses.total,
    )


def build_balance_sheet(tb: TrialBalanceResult) -> BalanceSheet:
    """
    Position at period end. Income and expense accounts are not closed by this
    core, so their cumulative result is shown in equity as current earnings.
    """
    assets = _section("Assets", tb, AccountType.ASSET, _closing)
    liabilities = _section("Liabilities", tb, AccountType.LIABILITY, _closing)
    equity = _section("Equity", tb, AccountType.EQUITY, _closing)
    earnings = (
        _section("Income", tb, AccountType.INCOME, _closing).total
        - _section("Expenses", tb, AccountType.EXPENSE, _closing).total
    )
    liabilities_and_equity = liabilities.total + equity.total + earnings

    # Accounts converted one by one for display may drift by a cent each
    tolerance = BALANCE_EPSILON
    if tb.currency != tb.base_currency:
        tolerance = BALANCE_EPSILON * max(len(tb.accounts), 1)
    balanced = is_balanced(assets.total, liabilities_and_equity, tolerance)
    if not balanced:
        logger.warning(f"Balance sheet does not balance: assets {assets.total} != L+E {liabilities_and_equity}")

    return BalanceSheet(
        as_of=tb.period_end,
        currency=tb.currency,
        assets=assets,
        liabilities=liabilities,
        equity=equity,
        current_earnings=earnings,
        total_liabilities_and_equity=liabilities_and_equity,
        is_balanced=balanced,
    )
