from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping

from groket.errors import ValidationError

BASE_CURRENCY = "KZ"
CENTS = Decimal("0.01")


@dataclass(frozen=True)
class CurrencyInfo:
    code: str
    symbol: str
    multiplier: Decimal


# Fixed display multipliers relative to the kwanza, not live exchange rates.
CURRENCIES: Mapping[str, CurrencyInfo] = {
    "KZ": CurrencyInfo(code="KZ", symbol="Kz", multiplier=Decimal("1")),
    "USD": CurrencyInfo(code="USD", symbol="$", multiplier=Decimal("0.0012")),
    "EUR": CurrencyInfo(code="EUR", symbol="€", multiplier=Decimal("0.0011")),
    "BRL": CurrencyInfo(code="BRL", symbol="R$", multiplier=Decimal("0.0060")),
}


def normalize_currency(value: str) -> str:
    normalized = (value or "").strip().upper()
    if normalized not in CURRENCIES:
        raise ValidationError(f"Unsupported currency: {normalized or value!r}")
    return normalized


def get_currency(code: str) -> CurrencyInfo:
    return CURRENCIES[normalize_currency(code)]


def convert(amount: Decimal | int | float | str, code: str) -> Decimal:
    """Convert a base-unit amount for display, rounded to two decimal places."""
    info = get_currency(code)
    return (_coerce_amount(amount) * info.multiplier).quantize(CENTS, rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal | int | float | str, code: str) -> str:
    info = get_currency(code)
    return f"{info.symbol}{convert(amount, info.code)}"


def resolve_default_currency(value: str | None) -> str:
    if not value:
        return BASE_CURRENCY
    try:
        return normalize_currency(value)
    except ValidationError:
        return BASE_CURRENCY


def _coerce_amount(amount: Decimal | int | float | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))
