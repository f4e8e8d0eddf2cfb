from __future__ import annotations

import logging
import threading
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping

from pydantic import BaseModel

from groket.aggregator import aggregate
from groket.auth import SessionContext
from groket.currency import BASE_CURRENCY, convert, format_amount, get_currency, normalize_currency
from groket.errors import AuthError, StoreError, ValidationError
from groket.forms import parse_transaction_form
from groket.models import Transaction
from groket.periods import DateRange, Period, parse_date_value, resolve_period
from groket.store import TransactionStore

logger = logging.getLogger(__name__)

LOAD_ERROR = "Could not load transactions."
CREATE_ERROR = "Could not add transaction."
REMOVE_ERROR = "Could not remove transaction."
ROW_DATE_FORMAT = "%d/%m/%Y"


class SummaryCard(BaseModel):
    label: str
    amount: Decimal
    display: str


class ChartEntry(BaseModel):
    date: str
    value: Decimal


class TransactionRow(BaseModel):
    id: str
    date: str
    description: str
    category: str
    kind: str
    amount: Decimal
    display: str


class DashboardSnapshot(BaseModel):
    currency: str
    symbol: str
    period: str
    start: date | None = None
    end: date | None = None
    balance: SummaryCard
    income: SummaryCard
    expenses: SummaryCard
    chart: list[ChartEntry]
    transactions: list[TransactionRow]
    loading: bool
    error: str


class DashboardView:
    """In-memory state behind the transaction dashboard.

    Loads are tagged with increasing sequence numbers; only the newest load
    issued is applied. Creates and removals made after a load was issued are
    replayed on top of that load's rows, so a slow response never undoes a
    change the user already saw.
    """

    def __init__(
        self,
        store: TransactionStore,
        context: SessionContext,
        today: Callable[[], date] = date.today,
        currency: str = BASE_CURRENCY,
        period: str = Period.CURRENT_MONTH,
    ) -> None:
        self.store = store
        self.context = context
        self.today = today
        self.currency = normalize_currency(currency)
        self.period = Period.validate(period)
        self.custom_start: date | None = None
        self.custom_end: date | None = None
        self.date_range = DateRange()
        self.transactions: list[Transaction] = []
        self.loading = False
        self.error = ""
        self._owner_id: str | None = None
        self._lock = threading.Lock()
        self._sequence = 0
        self._latest_load = 0
        self._mutations: list[tuple[int, str, Any]] = []

    def select_period(
        self,
        period: str,
        start: date | str | None = None,
        end: date | str | None = None,
    ) -> bool:
        try:
            normalized = Period.validate(period)
            custom_start = parse_date_value(start) if normalized == Period.CUSTOM else None
            custom_end = parse_date_value(end) if normalized == Period.CUSTOM else None
        except ValidationError as exc:
            logger.warning("Rejected period selection: %s", exc)
            self.error = str(exc)
            return False
        self.period = normalized
        self.custom_start = custom_start
        self.custom_end = custom_end
        return self.refresh()

    def select_currency(self, code: str) -> bool:
        try:
            self.currency = normalize_currency(code)
        except ValidationError as exc:
            logger.warning("Rejected currency selection: %s", exc)
            self.error = str(exc)
            return False
        return True

    def refresh(self) -> bool:
        try:
            session = self.context.require()
        except AuthError as exc:
            logger.warning("Dashboard refresh without session: %s", exc)
            self.error = str(exc)
            return False
        self._sync_owner(session.user_id)
        self.date_range = resolve_period(
            self.period, self.today(), self.custom_start, self.custom_end
        )
        ticket = self.begin_load()
        try:
            rows = self.store.list(session.user_id, self.date_range)
        except StoreError:
            logger.exception("Failed to load transactions")
            self._abandon_load(ticket)
            self.error = LOAD_ERROR
            return False
        if self.finish_load(ticket, rows):
            self.error = ""
        return True

    def begin_load(self) -> int:
        with self._lock:
            self._sequence += 1
            self._latest_load = self._sequence
            self.loading = True
            return self._sequence

    def finish_load(self, ticket: int, rows: Iterable[Transaction]) -> bool:
        """Apply a load response; returns False when a newer load superseded it."""
        with self._lock:
            if ticket != self._latest_load:
                logger.debug("Discarding stale load %s (latest %s)", ticket, self._latest_load)
                return False
            loaded = list(rows)
            for sequence, action, value in self._mutations:
                if sequence < ticket:
                    continue
                if action == "create":
                    if all(txn.id != value.id for txn in loaded):
                        loaded.insert(0, value)
                else:
                    loaded = [txn for txn in loaded if txn.id != value]
            self._mutations = [entry for entry in self._mutations if entry[0] > ticket]
            self.transactions = loaded
            self.loading = False
            return True

    def submit(self, form: Mapping[str, Any]) -> Transaction | None:
        try:
            session = self.context.require()
            fields = parse_transaction_form(form)
        except (AuthError, ValidationError) as exc:
            logger.warning("Rejected transaction form: %s", exc)
            self.error = str(exc)
            return None
        self._sync_owner(session.user_id)
        try:
            created = self.store.create(session.user_id, fields)
        except StoreError:
            logger.exception("Failed to create transaction")
            self.error = CREATE_ERROR
            return None
        with self._lock:
            self._record_mutation("create", created)
            self.transactions = [created, *self.transactions]
        self.error = ""
        return created

    def remove(self, transaction_id: str) -> bool:
        try:
            session = self.context.require()
        except AuthError as exc:
            logger.warning("Rejected removal without session: %s", exc)
            self.error = str(exc)
            return False
        self._sync_owner(session.user_id)
        try:
            deleted = self.store.remove(session.user_id, transaction_id)
        except StoreError:
            logger.exception("Failed to remove transaction %s", transaction_id)
            self.error = REMOVE_ERROR
            return False
        with self._lock:
            self._record_mutation("remove", transaction_id)
            self.transactions = [txn for txn in self.transactions if txn.id != transaction_id]
        self.error = ""
        return deleted

    def render(self) -> DashboardSnapshot:
        summary = aggregate(self.transactions)
        info = get_currency(self.currency)
        return DashboardSnapshot(
            currency=info.code,
            symbol=info.symbol,
            period=self.period,
            start=self.date_range.start,
            end=self.date_range.end,
            balance=self._card("Balance", summary.balance),
            income=self._card("Income", summary.total_income),
            expenses=self._card("Expenses", summary.total_expense),
            chart=[
                ChartEntry(date=point.label, value=convert(point.value, info.code))
                for point in summary.chart_series
            ],
            transactions=[
                TransactionRow(
                    id=txn.id,
                    date=txn.date.strftime(ROW_DATE_FORMAT),
                    description=txn.description,
                    category=txn.category,
                    kind=txn.kind,
                    amount=convert(txn.amount, info.code),
                    display=format_amount(txn.amount, info.code),
                )
                for txn in self.transactions
            ],
            loading=self.loading,
            error=self.error,
        )

    def _card(self, label: str, amount: Decimal) -> SummaryCard:
        return SummaryCard(
            label=label,
            amount=convert(amount, self.currency),
            display=format_amount(amount, self.currency),
        )

    def _sync_owner(self, owner_id: str) -> None:
        with self._lock:
            if owner_id == self._owner_id:
                return
            self._owner_id = owner_id
            self.transactions = []
            self._mutations = []

    def _abandon_load(self, ticket: int) -> None:
        with self._lock:
            if ticket == self._latest_load:
                self.loading = False

    def _record_mutation(self, action: str, value: Any) -> None:
        self._sequence += 1
        self._mutations.append((self._sequence, action, value))
