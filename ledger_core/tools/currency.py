import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Protocol, Tuple
from ledger_core.models.currency import ExchangeRate
from ledger_core.tools.money import round_money, to_decimal

logger = logging.getLogger(__name__)

class CurrencyConversionError(Exception):
    """Conversion between two currencies cannot proceed."""

    def __init__(self, message: str, from_currency: str = "", to_currency: str = "", rate=None):
        super().__init__(message)
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.rate = rate

class MissingExchangeRate(CurrencyConversionError):
    pass

class InvalidExchangeRate(CurrencyConversionError):
    pass


def check_rate(rate, from_currency: str = "", to_currency: str = "") -> Decimal:
    """Return `rate` as a Decimal, or raise InvalidExchangeRate if it is not finite and positive."""
    try:
        value = to_decimal(rate)
    except ValueError:
        raise InvalidExchangeRate(
            f"Exchange rate {rate!r} for {from_currency}/{to_currency} is not a number",
            from_currency, to_currency, rate,
        )
    if not value.is_finite() or value <= 0:
        raise InvalidExchangeRate(
            f"Exchange rate {rate} for {from_currency}/{to_currency} must be a positive finite number",
            from_currency, to_currency, rate,
        )
    return value


def convert(amount, from_currency: str, to_currency: str, rate=None) -> Decimal:
    """
    Converts `amount` into `to_currency`.
    Same currency returns the amount unchanged. Otherwise the rate is required and
    the product is rounded half-up to the target currency's minor unit.
    """
    amount = to_decimal(amount)
    if from_currency == to_currency:
        return amount
    if rate is None:
        raise MissingExchangeRate(
            f"No exchange rate available for {from_currency} to {to_currency}",
            from_currency, to_currency,
        )
    value = check_rate(rate, from_currency, to_currency)
    return round_money(amount * value, to_currency)


class ExchangeRateProvider(Protocol):
    def get_exchange_rate(self, from_currency: str, to_currency: str, as_of: date) -> Optional[Decimal]:
        ...


class InMemoryRateTable:
    """
    Rate history keyed by currency pair. Lookups return the latest rate
    effective on or before the requested date.
    """

    def __init__(self, rates: Iterable[ExchangeRate] = ()):
        self._rates: Dict[Tuple[str, str], List[ExchangeRate]] = {}
        for rate in rates:
            self.add(rate)

    def add(self, rate: ExchangeRate) -> None:
        history = self._rates.setdefault((rate.from_currency, rate.to_currency), [])
        history.append(rate)
        history.sort(key=lambda r: r.effective_date)

    def get_exchange_rate(self, from_currency: str, to_currency: str, as_of: date) -> Optional[Decimal]:
        if from_currency == to_currency:
            return Decimal("1")
        history = self._rates.get((from_currency, to_currency), [])
        effective = [r for r in history if r.effective_date <= as_of]
        if not effective:
            logger.debug(f"No {from_currency}/{to_currency} rate effective on {as_of}")
            return None
        return effective[-1].rate

    def __len__(self) -> int:
        return sum(len(h) for h in self._rates.values())
