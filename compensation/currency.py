"""
USD <-> ILS conversion.

Rates come from an ordered chain of remote sources. The first one that answers
wins and refreshes the cache; when every source fails the last cached rate is
reused even if expired, and as a last resort a hardcoded constant is returned.
Only an unsupported currency pair is reported to the caller as an error.
"""

import logging
import math
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

import requests

from compensation import tax_rules

logger = logging.getLogger(__name__)

PRIMARY_RATE_URL = "https://api.exchangerate-api.com/v4/latest/USD"
HISTORICAL_RATE_URL = "https://api.exchangerate-api.com/v4/history/USD/{date}"
BOI_RATE_URL = (
    "https://edge.boi.gov.il/FusionEdgeServer/sdmx/v2/data/dataflow/"
    "BOI.STATISTICS/EXR/1.0/RER_USD_ILS.D"
)

CACHE_TTL_SECONDS = 60 * 60
REQUEST_TIMEOUT_SECONDS = 10

SUPPORTED_CURRENCIES = ("USD", "ILS")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RateFetchError(RuntimeError):
    """A rate source could not produce a usable rate."""


class CurrencyConversionError(ValueError):
    """Requested currency pair has no conversion path."""


@dataclass(frozen=True)
class ExchangeRate:
    rate: float  # ILS per 1 USD
    last_updated: datetime
    source: str


def fallback_rate() -> ExchangeRate:
    return ExchangeRate(
        rate=tax_rules.FALLBACK_USD_TO_ILS,
        last_updated=datetime.fromisoformat(tax_rules.FALLBACK_RATE_DATE).replace(tzinfo=timezone.utc),
        source="fallback",
    )


class RateCache:
    """Single cached rate with an expiry time."""

    def __init__(self, ttl_seconds: float = CACHE_TTL_SECONDS, clock: Clock = utc_now):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock
        self._rate: Optional[ExchangeRate] = None
        self._expires_at: Optional[datetime] = None

    def is_valid(self) -> bool:
        return self._rate is not None and self._expires_at is not None and self.clock() < self._expires_at

    def get(self) -> Optional[ExchangeRate]:
        """Cached rate if it has not expired, else None."""
        return self._rate if self.is_valid() else None

    def get_stale(self) -> Optional[ExchangeRate]:
        """Cached rate regardless of expiry."""
        return self._rate

    def set(self, rate: ExchangeRate) -> None:
        self._rate = rate
        self._expires_at = self.clock() + self.ttl

    def clear(self) -> None:
        self._rate = None
        self._expires_at = None


# Shared by every CurrencyService built without an explicit cache.
DEFAULT_CACHE = RateCache()


def _positive_rate(value) -> float:
    rate = float(value)
    if not math.isfinite(rate) or rate <= 0:
        raise ValueError(f"Exchange rate must be positive, got {value!r}")
    return rate


def _parse_date(value: Optional[str], default: datetime) -> datetime:
    if not value:
        return default
    parsed = datetime.fromisoformat(str(value)[:10])
    return parsed.replace(tzinfo=timezone.utc)


def _get_json(url: str, timeout: float, params: Optional[dict] = None) -> dict:
    response = requests.get(url, params=params, timeout=timeout)
    response.raise_for_status()
    return response.json()


class PrimaryRateSource:
    """ExchangeRate-API: {"rates": {"ILS": 3.7, ...}, "date": "2024-01-01"}"""

    name = "exchangerate-api.com"

    def __init__(self, url: str = PRIMARY_RATE_URL, timeout: float = REQUEST_TIMEOUT_SECONDS,
                 clock: Clock = utc_now):
        self.url = url
        self.timeout = timeout
        self.clock = clock

    def fetch(self) -> ExchangeRate:
        try:
            data = _get_json(self.url, self.timeout)
            rate = _positive_rate(data["rates"]["ILS"])
            last_updated = _parse_date(data.get("date"), self.clock())
        except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
            raise RateFetchError(f"{self.name}: {exc}") from exc
        return ExchangeRate(rate=rate, last_updated=last_updated, source=self.name)


class BankOfIsraelRateSource:
    """
    Bank of Israel SDMX endpoint. The rate sits in
    data.dataSets[0].observations[<key>][0].
    """

    name = "boi.gov.il"

    def __init__(self, url: str = BOI_RATE_URL, timeout: float = REQUEST_TIMEOUT_SECONDS,
                 clock: Clock = utc_now):
        self.url = url
        self.timeout = timeout
        self.clock = clock

    def fetch(self) -> ExchangeRate:
        today = self.clock().date().isoformat()
        params = {"startPeriod": today, "endPeriod": today, "format": "json"}
        try:
            data = _get_json(self.url, self.timeout, params=params)
            observations = data["data"]["dataSets"][0]["observations"]
            if not observations:
                raise ValueError("No exchange rate observations returned")
            first_key = next(iter(observations))
            rate = _positive_rate(observations[first_key][0])
        except (requests.RequestException, ValueError, KeyError, TypeError, IndexError) as exc:
            raise RateFetchError(f"{self.name}: {exc}") from exc
        return ExchangeRate(rate=rate, last_updated=self.clock(), source=self.name)


class HistoricalRateSource:
    """Same payload shape as the primary source, for a given day."""

    name = "exchangerate-api.com (historical)"

    def __init__(self, url_template: str = HISTORICAL_RATE_URL, timeout: float = REQUEST_TIMEOUT_SECONDS):
        self.url_template = url_template
        self.timeout = timeout

    def fetch(self, on: date) -> ExchangeRate:
        day = on.isoformat()
        try:
            data = _get_json(self.url_template.format(date=day), self.timeout)
            rate = _positive_rate(data["rates"]["ILS"])
            last_updated = _parse_date(data.get("date"), datetime(on.year, on.month, on.day, tzinfo=timezone.utc))
        except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
            raise RateFetchError(f"{self.name}: {exc}") from exc
        return ExchangeRate(rate=rate, last_updated=last_updated, source=self.name)


class CurrencyService:
    def __init__(self,
                 sources: Optional[Sequence] = None,
                 historical_source=None,
                 cache: Optional[RateCache] = None,
                 fallback: Optional[ExchangeRate] = None):
        self.cache = cache if cache is not None else DEFAULT_CACHE
        if sources is None:
            sources = [
                PrimaryRateSource(clock=self.cache.clock),
                BankOfIsraelRateSource(clock=self.cache.clock),
            ]
        self.sources: List = list(sources)
        self.historical_source = historical_source or HistoricalRateSource()
        self.fallback = fallback or fallback_rate()

    def get_current_rate(self) -> ExchangeRate:
        cached = self.cache.get()
        if cached is not None:
            return cached

        for source in self.sources:
            try:
                rate = source.fetch()
            except Exception as exc:
                logger.warning("Exchange rate source %s failed: %s", getattr(source, "name", source), exc)
                continue
            self.cache.set(rate)
            return rate

        stale = self.cache.get_stale()
        if stale is not None:
            logger.warning("All exchange rate sources failed, using expired cached rate from %s", stale.source)
            return stale

        logger.warning("All exchange rate sources failed, using hardcoded fallback rate %.2f", self.fallback.rate)
        return self.fallback

    def get_historical_rate(self, on: date) -> ExchangeRate:
        try:
            return self.historical_source.fetch(on)
        except Exception as exc:
            logger.warning("Historical exchange rate for %s unavailable: %s", on, exc)

        current = self.get_current_rate()
        return replace(current, source=f"{current.source} (current, historical unavailable)")

    def usd_to_ils(self, amount: float) -> float:
        return amount * self.get_current_rate().rate

    def ils_to_usd(self, amount: float) -> float:
        return amount / self.get_current_rate().rate

    def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        if from_currency == to_currency:
            return amount
        if from_currency == "USD" and to_currency == "ILS":
            return self.usd_to_ils(amount)
        if from_currency == "ILS" and to_currency == "USD":
            return self.ils_to_usd(amount)
        raise CurrencyConversionError(f"Unsupported currency conversion: {from_currency} to {to_currency}")

    def clear_cache(self) -> None:
        self.cache.clear()

    def is_cache_valid(self) -> bool:
        return self.cache.is_valid()

    def get_cached_rate(self) -> Optional[ExchangeRate]:
        return self.cache.get()


def format_currency(amount: float, currency: str) -> str:
    """Whole-unit display, e.g. ₪12,500 or -$1,200."""
    symbols = {"ILS": "₪", "USD": "$"}
    if currency not in symbols:
        raise CurrencyConversionError(f"Unsupported currency: {currency}")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbols[currency]}{abs(amount):,.0f}"
