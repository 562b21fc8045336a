from typing import Dict, Iterable, List, Optional, Protocol
from ledger_core.models.account import Account

class AccountDirectory(Protocol):
    def resolve_account(self, account_id: str) -> Optional[Account]:
        ...

class InMemoryAccountDirectory:
    """Chart of accounts held in memory, keyed by account_id."""

    def __init__(self, accounts: Iterable[Account] = ()):
        self._accounts: Dict[str, Account] = {a.account_id: a for a in accounts}

    def resolve_account(self, account_id: str) -> Optional[Account]:
        return self._accounts.get(account_id)

    def add(self, account: Account) -> None:
        self._accounts[account.account_id] = account

    def all(self) -> List[Account]:
        return sorted(self._accounts.values(), key=lambda a: a.sort_key)

    def __contains__(self, account_id: str) -> bool:
        return account_id in self._accounts

    def __len__(self) -> int:
        return len(self._accounts)


def is_postable(account: Optional[Account]) -> bool:
    """Lines may only hit accounts that exist, are active and are not headers."""
    return account is not None and account.is_active and not account.is_header
