from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Mapping, Protocol

from forecasting.config import REFERENCE_CURRENCY
from forecasting.money import coerce_amount

DEFAULT_RATES: dict[str, Decimal] = {
    "EUR": Decimal("1"),
    "USD": Decimal("0.93"),
    "GBP": Decimal("1.18"),
    "BTC": Decimal("65000"),
    "RON": Decimal("0.20"),
}


class RateProvider(Protocol):
    def get_rate(self, currency: str, date: date | str | None = None) -> Decimal:
        ...


@dataclass(frozen=True)
class StaticRateProvider:
    """Deterministic, in-memory FX rates.

    Rates are expressed as EUR per 1 unit of the currency, so converting
    between any two listed currencies goes through EUR.
    """

    rates: Mapping[str, Decimal] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "rates", dict(self.rates or DEFAULT_RATES))

    def get_rate(self, currency: str, date: date | str | None = None) -> Decimal:
        normalized = normalize_currency(currency)
        try:
            return self.rates[normalized]
        except KeyError as exc:
            raise ValueError(f"Unsupported currency: {normalized}") from exc


DEFAULT_PROVIDER = StaticRateProvider()


def convert_amount(
    amount: Decimal | int | float | str,
    source_currency: str,
    target_currency: str,
    rate_provider: RateProvider | None = None,
    date: date | str | None = None,
) -> Decimal:
    """Convert a monetary amount using the provider's fixed rate table."""
    provider = rate_provider or DEFAULT_PROVIDER
    normalized_source = normalize_currency(source_currency)
    normalized_target = normalize_currency(target_currency)
    coerced_amount = coerce_amount(amount)

    if normalized_source == normalized_target:
        return coerced_amount

    source_rate = provider.get_rate(normalized_source, date=date)
    target_rate = provider.get_rate(normalized_target, date=date)
    if target_rate == 0:
        raise ValueError(f"Zero rate for currency: {normalized_target}")
    return coerced_amount * source_rate / target_rate


def to_reference(
    amount: Decimal | int | float | str,
    currency: str,
    rate_provider: RateProvider | None = None,
    reference_currency: str | None = None,
) -> Decimal:
    return convert_amount(
        amount,
        currency,
        reference_currency or REFERENCE_CURRENCY,
        rate_provider=rate_provider,
    )


def normalize_currency(value: str) -> str:
    normalized = value.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValueError("Currency must be a 3-letter ISO 4217 code.")
    return normalized
