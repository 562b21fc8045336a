from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field
from ledger_core.models.accounting import JournalEntry

class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    ACCOUNT_TYPE_MISMATCH = "ACCOUNT_TYPE_MISMATCH"
    MISSING_EXCHANGE_RATE = "MISSING_EXCHANGE_RATE"
    INVALID_EXCHANGE_RATE = "INVALID_EXCHANGE_RATE"
    UNBALANCED_ENTRY = "UNBALANCED_ENTRY"
    ALLOCATION_ERROR = "ALLOCATION_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    CURRENCY_MISMATCH = "CURRENCY_MISMATCH"

class PostingStage(str, Enum):
    RECEIVED = "RECEIVED"
    ACCOUNTS_RESOLVED = "ACCOUNTS_RESOLVED"
    LINES_EXPANDED = "LINES_EXPANDED"
    BALANCED = "BALANCED"
    VALID = "VALID"
    REJECTED = "REJECTED"

class ValidationIssue(BaseModel):
    """One structured error. `context` carries the numbers needed to render it."""
    code: ErrorCode
    message: str
    field: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)

class JournalSummary(BaseModel):
    lines_count: int
    total_debit: Decimal
    total_credit: Decimal

class PostingValidated(BaseModel):
    status: Literal["VALID"] = "VALID"
    journal: JournalEntry
    summary: JournalSummary
    details: Dict[str, Any] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return True

class PostingRejected(BaseModel):
    status: Literal["REJECTED"] = "REJECTED"
    stage: PostingStage
    errors: List[ValidationIssue] = Field(..., min_length=1)

    @property
    def success(self) -> bool:
        return False

    @property
    def codes(self) -> List[ErrorCode]:
        return [e.code for e in self.errors]

    def first(self, code: ErrorCode) -> Optional[ValidationIssue]:
        return next((e for e in self.errors if e.code == code), None)

ValidationResult = Annotated[Union[PostingValidated, PostingRejected], Field(discriminator="status")]
