"""Demo exchange rates between fiat currencies and XLM.

Rates are constant for reproducible demos. In production they would come
from a market feed.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

DEFAULT_CURRENCY = "USD"

# fiat -> XLM: value units credited per one unit of fiat
RATES: dict[str, Decimal] = {
    "USD": Decimal("10"),
    "EUR": Decimal("11"),
    "INR": Decimal("0.12"),
    "GBP": Decimal("12.5"),
}

VALUE_QUANT = Decimal("0.0000001")  # Stellar 7-decimal precision
FIAT_QUANT = Decimal("0.01")
RATE_QUANT = Decimal("0.0000000001")


def normalize_currency(currency: Optional[str]) -> str:
    """Uppercase and strip a currency code, defaulting to USD."""
    if not currency:
        return DEFAULT_CURRENCY
    return currency.strip().upper() or DEFAULT_CURRENCY


def rate_for(currency: str) -> Decimal:
    """XLM per unit of fiat. Unknown currencies fall back to the USD rate."""
    return RATES.get(normalize_currency(currency), RATES[DEFAULT_CURRENCY])


def withdrawal_rate_for(currency: str) -> Decimal:
    """Fiat per XLM, the reciprocal of rate_for."""
    return (Decimal(1) / rate_for(currency)).quantize(RATE_QUANT, rounding=ROUND_HALF_UP)


def supported_currencies() -> list[str]:
    return list(RATES)


def is_supported(currency: str) -> bool:
    return normalize_currency(currency) in RATES


def round_value(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(VALUE_QUANT, rounding=ROUND_HALF_UP)


def round_fiat(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(FIAT_QUANT, rounding=ROUND_HALF_UP)


def plain_amount(amount: Decimal) -> str:
    """Amount without trailing zeros or exponent, e.g. 50.00 -> '50'."""
    return format(Decimal(amount).normalize(), "f")
