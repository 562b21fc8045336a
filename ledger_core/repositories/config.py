import logging
from typing import Optional
from ledger_core.config import settings
from ledger_core.repositories.base import BaseRepository
from ledger_core.models.config import CompanyConfig

logger = logging.getLogger(__name__)

class ConfigRepository(BaseRepository[CompanyConfig]):
    async def get_by_company_id(self, company_id: str) -> Optional[CompanyConfig]:
        doc = await self.collection.find_one({"company_id": company_id})
        return self.model_cls.from_mongo(doc) if doc else None

    async def get_or_default(self, company_id: Optional[str]) -> CompanyConfig:
        """Stored tenant config, or one built from settings when none is stored."""
        if company_id:
            config = await self.get_by_company_id(company_id)
            if config:
                return config
            logger.warning(f"No config stored for company {company_id}; using defaults")
        return CompanyConfig(
            company_id=company_id or "default",
            company_name=company_id or "Default Company",
            base_currency=settings.BASE_CURRENCY,
            fiscal_year_start_month=settings.FISCAL_YEAR_START_MONTH,
        )
