from enum import Enum
from typing import Optional
from pydantic import Field, model_validator
from ledger_core.models.base import MongoModel

class AccountType(str, Enum):
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"

class NormalBalance(str, Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"

DEBIT_NORMAL_TYPES = {AccountType.ASSET, AccountType.EXPENSE}

def default_normal_balance(account_type: AccountType) -> NormalBalance:
    if account_type in DEBIT_NORMAL_TYPES:
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT

class Account(MongoModel):
    """Chart of accounts record. Maintained outside the posting core."""
    account_id: str
    company_id: Optional[str] = None
    code: Optional[str] = None
    name: str = ""
    account_type: AccountType
    normal_balance: Optional[NormalBalance] = None
    currency: str = Field("MYR", pattern=r"^[A-Z]{3}$")
    is_active: bool = True
    is_header: bool = False
    parent_account_id: Optional[str] = None

    @model_validator(mode="after")
    def fill_normal_balance(self):
        if self.normal_balance is None:
            self.normal_balance = default_normal_balance(self.account_type)
        return self

    @property
    def sort_key(self) -> str:
        return self.code or self.account_id
