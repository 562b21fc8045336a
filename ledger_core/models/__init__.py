from ledger_core.models.base import MongoModel
from ledger_core.models.account import Account, AccountType, NormalBalance
from ledger_core.models.currency import ExchangeRate
from ledger_core.models.accounting import JournalEntry, JournalLine, SourceType, LineRole
from ledger_core.models.config import CompanyConfig, GLMapping, ApprovalLimits
from ledger_core.models.documents import (
    InvoiceInput, InvoiceLineInput, BillInput, BillLineInput, PaymentInput, PaymentAllocationInput,
    BankChargeInput, WithholdingTaxInput, JournalInput, JournalLineInput, PaymentMethod, AllocationType
)
from ledger_core.models.results import (
    ErrorCode, PostingStage, ValidationIssue, JournalSummary, PostingValidated, PostingRejected, ValidationResult
)
from ledger_core.models.reports import (
    TrialBalanceParams, AccountFilter, CodeRange, TrialBalanceAccount, TrialBalanceTotals,
    TrialBalanceResult, TrialBalanceError, TrialBalanceErrorCode, ProfitAndLoss, BalanceSheet
)
