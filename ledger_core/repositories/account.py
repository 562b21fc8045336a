from typing import List, Optional
from ledger_core.repositories.base import BaseRepository
from ledger_core.models.account import Account
from ledger_core.tools.account_directory import InMemoryAccountDirectory

class AccountRepository(BaseRepository[Account]):
    async def list_for_company(self, company_id: Optional[str] = None) -> List[Account]:
        return await self.list(self._scoped({}, company_id), sort=[("code", 1)])

    async def load_directory(self, company_id: Optional[str] = None) -> InMemoryAccountDirectory:
        """Snapshot of the chart of accounts for one validation call."""
        return InMemoryAccountDirectory(await self.list_for_company(company_id))
