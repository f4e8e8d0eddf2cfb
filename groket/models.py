from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

INCOME = "income"
EXPENSE = "expense"


@dataclass(frozen=True)
class Transaction:
    id: str
    user_id: str
    kind: str
    amount: Decimal
    category: str
    date: date
    description: str = ""
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class TransactionFields:
    kind: str
    amount: Decimal
    category: str
    date: date
    description: str = ""


@dataclass(frozen=True)
class User:
    id: str
    email: str
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Session:
    token: str
    user_id: str
    email: str
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Profile:
    user_id: str
    name: str
    surname: str
    created_at: Optional[datetime] = None
