from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping

# Price of one unit of each currency expressed in USD.
EXCHANGE_RATES: dict[str, Decimal] = {
    "USD": Decimal("1.0"),
    "EUR": Decimal("1.09"),
    "JPY": Decimal("0.0067"),
    "GBP": Decimal("1.27"),
    "CNY": Decimal("0.14"),
    "AUD": Decimal("0.66"),
    "CAD": Decimal("0.74"),
    "CHF": Decimal("1.13"),
    "HKD": Decimal("0.13"),
    "SGD": Decimal("0.74"),
    "SEK": Decimal("0.097"),
    "KRW": Decimal("0.00075"),
    "NOK": Decimal("0.094"),
    "NZD": Decimal("0.61"),
    "INR": Decimal("0.012"),
    "MXN": Decimal("0.059"),
    "TWD": Decimal("0.031"),
    "ZAR": Decimal("0.053"),
    "BRL": Decimal("0.20"),
    "DKK": Decimal("0.15"),
    "PLN": Decimal("0.25"),
    "THB": Decimal("0.028"),
    "IDR": Decimal("0.000064"),
    "MYR": Decimal("0.21"),
    "VND": Decimal("0.00004"),
}

PIVOT_CURRENCY = "USD"
SUPPORTED_CURRENCIES: tuple[str, ...] = tuple(sorted(EXCHANGE_RATES))


class UnsupportedCurrency(ValueError):
    """Raised when a value is not a 3-letter currency code."""


class ConfigurationError(RuntimeError):
    """Raised when the rate table has no entry for a currency."""


@dataclass(frozen=True)
class StaticRateTable:
    """Fixed FX rates.

    Rates are expressed as USD per 1 unit of the currency, so the pivot
    currency is always 1.
    """

    rates: Mapping[str, Decimal] = None

    def __post_init__(self) -> None:
        source = self.rates if self.rates is not None else EXCHANGE_RATES
        normalized = {
            normalize_currency(code): _coerce_amount(rate) for code, rate in source.items()
        }
        object.__setattr__(self, "rates", normalized)

    def get_rate(self, currency: str) -> Decimal:
        normalized = normalize_currency(currency)
        try:
            return self.rates[normalized]
        except KeyError as exc:
            raise ConfigurationError(f"No exchange rate configured for {normalized}") from exc

    def supports(self, currency: str) -> bool:
        try:
            return normalize_currency(currency) in self.rates
        except UnsupportedCurrency:
            return False


def convert_amount(
    amount: Decimal | int | float | str,
    source_currency: str,
    target_currency: str,
    rate_table: StaticRateTable | None = None,
) -> Decimal:
    """Convert an amount between currencies by triangulating through USD."""
    table = rate_table or DEFAULT_RATE_TABLE
    normalized_source = normalize_currency(source_currency)
    normalized_target = normalize_currency(target_currency)
    coerced_amount = _coerce_amount(amount)

    if normalized_source == normalized_target:
        return coerced_amount

    source_rate = table.get_rate(normalized_source)
    target_rate = table.get_rate(normalized_target)
    amount_in_usd = coerced_amount * source_rate
    return amount_in_usd / target_rate


def normalize_currency(value: str) -> str:
    normalized = value.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise UnsupportedCurrency("Currency must be a 3-letter ISO 4217 code.")
    return normalized


def _coerce_amount(amount: Decimal | int | float | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


DEFAULT_RATE_TABLE = StaticRateTable()
