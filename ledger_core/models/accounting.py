from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import ConfigDict, Field, model_validator
from ledger_core.models.base import MongoModel
from ledger_core.tools.money import BALANCE_EPSILON, ZERO, is_balanced, sum_money

class SourceType(str, Enum):
    INVOICE = "INVOICE"
    BILL = "BILL"
    PAYMENT = "PAYMENT"
    JOURNAL = "JOURNAL"

class LineRole(str, Enum):
    """What a GL line represents within its source document."""
    RECEIVABLE = "RECEIVABLE"
    PAYABLE = "PAYABLE"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"
    TAX = "TAX"
    BANK = "BANK"
    ADVANCE = "ADVANCE"
    BANK_CHARGE = "BANK_CHARGE"
    WITHHOLDING_TAX = "WITHHOLDING_TAX"
    MANUAL = "MANUAL"

class JournalLine(MongoModel):
    model_config = ConfigDict(frozen=True)

    line_number: int
    account_id: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    currency: str
    base_amount: Decimal
    source_currency: str
    source_amount: Decimal
    exchange_rate: Decimal = Decimal("1")
    description: str = ""
    reference: Optional[str] = None
    role: LineRole = LineRole.MANUAL

    @model_validator(mode="after")
    def one_sided(self):
        if self.debit < 0 or self.credit < 0:
            raise ValueError("Debit and credit must be non-negative")
        if (self.debit > 0) == (self.credit > 0):
            raise ValueError("A GL line carries exactly one of debit or credit")
        return self

class JournalEntry(MongoModel):
    """Double-entry bookkeeping record. Immutable once built."""
    model_config = ConfigDict(frozen=True)

    entry_id: str
    company_id: Optional[str] = None
    journal_number: str
    source_type: SourceType
    source_document: str
    entry_date: date
    currency: str
    description: str = ""

    lines: List[JournalLine] = Field(..., min_length=2)

    total_debit: Decimal
    total_credit: Decimal

    created_at: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="after")
    def must_balance(self):
        debit = sum_money(l.debit for l in self.lines)
        credit = sum_money(l.credit for l in self.lines)
        if debit != self.total_debit or credit != self.total_credit:
            raise ValueError("Journal totals do not match its lines")
        if not self.validate_balance():
            raise ValueError(
                f"Journal Entry Imbalanced: DR {self.total_debit} != CR {self.total_credit}"
            )
        return self

    def validate_balance(self) -> bool:
        return is_balanced(self.total_debit, self.total_credit, BALANCE_EPSILON)

    def lines_for(self, account_id: str) -> List[JournalLine]:
        return [l for l in self.lines if l.account_id == account_id]
