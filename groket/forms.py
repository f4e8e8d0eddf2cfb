from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping

from groket.errors import ValidationError
from groket.models import EXPENSE, INCOME, TransactionFields
from groket.periods import parse_date_value

REQUIRED_FIELDS = ("kind", "amount", "category", "date")
CENTS = Decimal("0.01")
# the amount column is Numeric(14, 2): twelve integer digits
MAX_AMOUNT = Decimal("999999999999.99")


class TransactionKind:
    values = {INCOME, EXPENSE}
    aliases = {"receita": INCOME, "despesa": EXPENSE}

    @classmethod
    def validate(cls, value: str) -> str:
        normalized = value.strip().lower()
        normalized = cls.aliases.get(normalized, normalized)
        if normalized not in cls.values:
            raise ValidationError("Invalid transaction kind.")
        return normalized


def parse_transaction_form(form: Mapping[str, Any]) -> TransactionFields:
    """Turn user-entered form values into validated transaction fields.

    Only presence of the required fields is checked beyond the amount and
    date formats; the amount is rejected outright when it is not a finite,
    non-negative number.
    """
    cleaned = {key: _clean(form.get(key)) for key in (*REQUIRED_FIELDS, "description")}
    missing = [key for key in REQUIRED_FIELDS if not cleaned[key]]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}.")

    return TransactionFields(
        kind=TransactionKind.validate(cleaned["kind"]),
        amount=parse_amount(cleaned["amount"]),
        category=cleaned["category"],
        description=cleaned["description"],
        date=parse_date_value(cleaned["date"]),
    )


def parse_amount(value: Decimal | int | float | str) -> Decimal:
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValidationError("Amount must be a number.") from exc
    if not amount.is_finite():
        raise ValidationError("Amount must be a number.")
    if amount < 0:
        raise ValidationError("Amount must not be negative.")
    try:
        # quantizing past the context precision raises rather than rounding
        amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValidationError("Amount is too large.") from exc
    if amount > MAX_AMOUNT:
        raise ValidationError("Amount is too large.")
    return amount


def _clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()
