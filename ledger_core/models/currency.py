from datetime import date
from decimal import Decimal
from pydantic import Field
from ledger_core.models.base import MongoModel

class ExchangeRate(MongoModel):
    """Units of `to_currency` per one unit of `from_currency`, effective from `effective_date`."""
    from_currency: str = Field(..., pattern=r"^[A-Z]{3}$")
    to_currency: str = Field(..., pattern=r"^[A-Z]{3}$")
    effective_date: date
    rate: Decimal = Field(..., gt=0, allow_inf_nan=False)
    source: str = "manual"
