from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List

from groket.models import EXPENSE, INCOME, Transaction

ZERO = Decimal("0")
CHART_LABEL_FORMAT = "%d/%m"


@dataclass(frozen=True)
class ChartPoint:
    label: str
    value: Decimal


@dataclass(frozen=True)
class Summary:
    total_income: Decimal = ZERO
    total_expense: Decimal = ZERO
    balance: Decimal = ZERO
    chart_series: List[ChartPoint] = field(default_factory=list)


def aggregate(transactions: Iterable[Transaction]) -> Summary:
    loaded = list(transactions)
    total_income = _sum_kind(loaded, INCOME)
    total_expense = _sum_kind(loaded, EXPENSE)
    return Summary(
        total_income=total_income,
        total_expense=total_expense,
        balance=total_income - total_expense,
        chart_series=chart_series(loaded),
    )


def chart_series(transactions: Iterable[Transaction]) -> List[ChartPoint]:
    """Oldest first; income plots above zero and expenses below."""
    ordered = sorted(transactions, key=lambda txn: txn.date)
    return [
        ChartPoint(label=txn.date.strftime(CHART_LABEL_FORMAT), value=signed_amount(txn))
        for txn in ordered
    ]


def signed_amount(txn: Transaction) -> Decimal:
    return txn.amount if txn.kind == INCOME else -txn.amount


def _sum_kind(transactions: Iterable[Transaction], kind: str) -> Decimal:
    total = ZERO
    for txn in transactions:
        if txn.kind != kind:
            continue
        total += txn.amount
    return total
