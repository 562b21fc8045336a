from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional
from ledger_core.repositories.base import BaseRepository
from ledger_core.models.currency import ExchangeRate

class ExchangeRateRepository(BaseRepository[ExchangeRate]):
    async def get_latest(self, from_currency: str, to_currency: str, as_of: date) -> Optional[ExchangeRate]:
        """Latest rate effective on or before `as_of`."""
        doc = await self.collection.find_one(
            {
                "from_currency": from_currency,
                "to_currency": to_currency,
                "effective_date": {"$lte": datetime.combine(as_of, time())},
            },
            sort=[("effective_date", -1)],
        )
        return self.model_cls.from_mongo(doc) if doc else None

    async def get_exchange_rate(self, from_currency: str, to_currency: str, as_of: date) -> Optional[Decimal]:
        rate = await self.get_latest(from_currency, to_currency, as_of)
        return rate.rate if rate else None

    async def upsert(self, rate: ExchangeRate) -> None:
        data = rate.to_mongo()
        key = {k: data[k] for k in ("from_currency", "to_currency", "effective_date")}
        await self.collection.update_one(key, {"$set": data}, upsert=True)
