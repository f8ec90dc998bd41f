"""Exchange-rate lookup used when a gateway charges in a different currency."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from ..core.config import Settings, settings as default_settings

CENT = Decimal("0.01")
WHOLE = Decimal("1")

# Currencies the gateways expect in whole units.
WHOLE_UNIT_CURRENCIES = frozenset({"UAH"})


@dataclass(frozen=True)
class ExchangeRate:
    base: str
    quote: str
    rate: Decimal
    as_of: datetime
    source: str

    @property
    def is_identity(self) -> bool:
        return self.base == self.quote


class ExchangeRateProvider(ABC):
    """Source of conversion rates between two ISO currency codes."""

    @abstractmethod
    def get_rate(self, base: str, quote: str) -> ExchangeRate:
        """Rate such that ``amount_in_base * rate == amount_in_quote``."""


class StaticExchangeRateProvider(ExchangeRateProvider):
    """USD/UAH rate taken from configuration."""

    SOURCE = "settings"

    def __init__(self, config: Settings | None = None):
        self.config = config or default_settings

    def get_rate(self, base: str, quote: str) -> ExchangeRate:
        base, quote = base.upper(), quote.upper()
        if base == quote:
            return ExchangeRate(base, quote, Decimal("1"), datetime.now(timezone.utc), "identity")

        usd_uah = Decimal(str(self.config.usd_uah_rate))
        source = self.config.usd_uah_rate_source or self.SOURCE
        as_of = self.config.usd_uah_rate_as_of
        if (base, quote) == ("USD", "UAH"):
            return ExchangeRate(base, quote, usd_uah, as_of, source)
        if (base, quote) == ("UAH", "USD"):
            return ExchangeRate(base, quote, Decimal("1") / usd_uah, as_of, source)
        raise ValueError(f"No exchange rate configured for {base}/{quote}")


def quantize_amount(amount: Decimal, currency: str) -> Decimal:
    """Round half-up to the smallest unit the gateway accepts for ``currency``."""
    step = WHOLE if currency.upper() in WHOLE_UNIT_CURRENCIES else CENT
    return amount.quantize(step, rounding=ROUND_HALF_UP)


def convert(amount: Decimal, rate: ExchangeRate) -> Decimal:
    return quantize_amount(amount * rate.rate, rate.quote)
