from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from groket.db import profiles, transactions
from groket.errors import StoreError, ValidationError
from groket.models import Profile, Transaction, TransactionFields
from groket.periods import DateRange

TRANSACTION_COLUMNS = (
    transactions.c.id,
    transactions.c.user_id,
    transactions.c.kind,
    transactions.c.amount,
    transactions.c.category,
    transactions.c.description,
    transactions.c.date,
    transactions.c.created_at,
)


class TransactionStore:
    """Owner-scoped access to the transactions table.

    Every statement filters on, or writes, the owner identifier so one user
    can never read or delete another user's rows through this client.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def list(self, owner_id: str, date_range: DateRange | None = None) -> list[Transaction]:
        conditions = [transactions.c.user_id == owner_id]
        if date_range is not None:
            if date_range.start is not None:
                conditions.append(transactions.c.date >= date_range.start)
            if date_range.end is not None:
                conditions.append(transactions.c.date <= date_range.end)
        stmt = (
            select(*TRANSACTION_COLUMNS)
            .where(*conditions)
            .order_by(transactions.c.date.desc(), transactions.c.created_at.desc())
        )
        try:
            with self.engine.begin() as conn:
                rows = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as exc:
            raise StoreError("Failed to load transactions.") from exc
        return [_row_to_transaction(row) for row in rows]

    def create(self, owner_id: str, fields: TransactionFields) -> Transaction:
        stmt = (
            insert(transactions)
            .values(
                id=str(uuid.uuid4()),
                user_id=owner_id,
                kind=fields.kind,
                amount=fields.amount,
                category=fields.category,
                description=fields.description or "",
                date=fields.date,
            )
            .returning(*TRANSACTION_COLUMNS)
        )
        try:
            with self.engine.begin() as conn:
                row = conn.execute(stmt).mappings().first()
        except SQLAlchemyError as exc:
            raise StoreError("Failed to create transaction.") from exc
        if not row:
            raise StoreError("Failed to create transaction.")
        return _row_to_transaction(row)

    def remove(self, owner_id: str, transaction_id: str) -> bool:
        stmt = transactions.delete().where(
            transactions.c.id == transaction_id,
            transactions.c.user_id == owner_id,
        )
        try:
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreError("Failed to remove transaction.") from exc
        return result.rowcount > 0


class ProfileStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create(self, owner_id: str, name: str, surname: str) -> Profile:
        name = (name or "").strip()
        surname = (surname or "").strip()
        if not name or not surname:
            raise ValidationError("Name and surname required.")
        stmt = (
            insert(profiles)
            .values(user_id=owner_id, name=name, surname=surname)
            .returning(profiles.c.user_id, profiles.c.name, profiles.c.surname, profiles.c.created_at)
        )
        try:
            with self.engine.begin() as conn:
                row = conn.execute(stmt).mappings().first()
        except IntegrityError as exc:
            raise StoreError("Profile already exists.") from exc
        except SQLAlchemyError as exc:
            raise StoreError("Failed to save profile.") from exc
        if not row:
            raise StoreError("Failed to save profile.")
        return Profile(
            user_id=row["user_id"],
            name=row["name"],
            surname=row["surname"],
            created_at=row["created_at"],
        )


def _row_to_transaction(row) -> Transaction:
    amount = row["amount"]
    return Transaction(
        id=row["id"],
        user_id=row["user_id"],
        kind=row["kind"],
        amount=amount if isinstance(amount, Decimal) else Decimal(str(amount)),
        category=row["category"],
        description=row["description"] or "",
        date=row["date"],
        created_at=row["created_at"],
    )
