from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, model_validator
from ledger_core.models.account import AccountType, NormalBalance
from ledger_core.tools.money import ZERO

# ---------------------------------------------------------------------------
# Trial balance
# ---------------------------------------------------------------------------

class CodeRange(BaseModel):
    code_from: str = Field(..., min_length=1)
    code_to: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def ordered(self):
        if self.code_from > self.code_to:
            raise ValueError("Account code range 'from' must be less than or equal to 'to'")
        return self

class AccountFilter(BaseModel):
    account_types: List[AccountType] = Field(default_factory=list)
    account_ids: List[str] = Field(default_factory=list)
    code_range: Optional[CodeRange] = None

class TrialBalanceParams(BaseModel):
    company_id: Optional[str] = None
    period_end: date
    period_start: Optional[date] = Field(None, description="Defaults to the start of the fiscal year containing period_end")
    fiscal_year_start_month: int = Field(1, ge=1, le=12)
    base_currency: str = Field("MYR", pattern=r"^[A-Z]{3}$")
    display_currency: Optional[str] = Field(None, pattern=r"^[A-Z]{3}$")
    display_rate: Optional[Decimal] = Field(None, allow_inf_nan=True)
    include_zero_balances: bool = False
    include_period_activity: bool = True
    account_filter: AccountFilter = Field(default_factory=AccountFilter)

    @model_validator(mode="after")
    def period_order(self):
        if self.period_start and self.period_start > self.period_end:
            raise ValueError("period_start must not be after period_end")
        return self

    def resolved_period_start(self) -> date:
        if self.period_start:
            return self.period_start
        year = self.period_end.year
        if self.period_end.month < self.fiscal_year_start_month:
            year -= 1
        return date(year, self.fiscal_year_start_month, 1)

class TrialBalanceAccount(BaseModel):
    account_id: str
    code: str
    name: str = ""
    account_type: AccountType
    normal_balance: NormalBalance
    parent_account_id: Optional[str] = None
    is_header: bool = False
    opening_balance: Decimal = ZERO
    period_debits: Decimal = ZERO
    period_credits: Decimal = ZERO
    closing_balance: Decimal = ZERO
    currency: str

    @property
    def has_activity(self) -> bool:
        return bool(self.period_debits or self.period_credits or self.closing_balance)

class TrialBalanceTotals(BaseModel):
    total_debits: Decimal = ZERO
    total_credits: Decimal = ZERO
    total_assets: Decimal = ZERO
    total_liabilities: Decimal = ZERO
    total_equity: Decimal = ZERO
    total_income: Decimal = ZERO
    total_expenses: Decimal = ZERO
    net_income: Decimal = ZERO

class TrialBalanceMetadata(BaseModel):
    total_accounts: int = 0
    accounts_with_activity: int = 0
    oldest_transaction: Optional[date] = None
    newest_transaction: Optional[date] = None
    generation_time_ms: float = 0.0

class TrialBalanceResult(BaseModel):
    success: Literal[True] = True
    company_id: Optional[str] = None
    period_start: date
    period_end: date
    generated_at: datetime = Field(default_factory=datetime.utcnow)
    base_currency: str
    currency: str  # display currency; equals base_currency when no conversion was requested
    exchange_rate: Decimal = Decimal("1")
    accounts: List[TrialBalanceAccount] = Field(default_factory=list)
    totals: TrialBalanceTotals = Field(default_factory=TrialBalanceTotals)
    is_balanced: bool
    metadata: TrialBalanceMetadata = Field(default_factory=TrialBalanceMetadata)

    def account(self, account_id: str) -> Optional[TrialBalanceAccount]:
        return next((a for a in self.accounts if a.account_id == account_id), None)

class TrialBalanceErrorCode(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    NO_ACCOUNTS_FOUND = "NO_ACCOUNTS_FOUND"
    MISSING_EXCHANGE_RATE = "MISSING_EXCHANGE_RATE"
    INVALID_EXCHANGE_RATE = "INVALID_EXCHANGE_RATE"

class TrialBalanceError(BaseModel):
    success: Literal[False] = False
    error: str
    code: TrialBalanceErrorCode
    details: Dict[str, Any] = Field(default_factory=dict)

# ---------------------------------------------------------------------------
# Financial statements
# ---------------------------------------------------------------------------

class StatementLine(BaseModel):
    account_id: str
    code: str
    name: str = ""
    amount: Decimal

class StatementSection(BaseModel):
    title: str
    lines: List[StatementLine] = Field(default_factory=list)
    total: Decimal = ZERO

class ProfitAndLoss(BaseModel):
    period_start: date
    period_end: date
    currency: str
    income: StatementSection
    expenses: StatementSection
    net_income: Decimal

class BalanceSheet(BaseModel):
    as_of: date
    currency: str
    assets: StatementSection
    liabilities: StatementSection
    equity: StatementSection
    current_earnings: Decimal
    total_liabilities_and_equity: Decimal
    is_balanced: bool
