import unittest
from datetime import date
from decimal import Decimal
from unittest import mock

from sqlalchemy.exc import OperationalError

from groket.auth import AuthService
from groket.db import init_db, make_engine
from groket.errors import StoreError, ValidationError
from groket.models import TransactionFields
from groket.periods import DateRange, resolve_period
from groket.store import ProfileStore, TransactionStore


def fields(kind: str, amount: str, day: date, category: str = "General") -> TransactionFields:
    return TransactionFields(kind=kind, amount=Decimal(amount), category=category, date=day)


class TransactionStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine("sqlite://")
        init_db(self.engine)
        auth = AuthService(self.engine)
        self.owner = auth.sign_up("owner@example.com", "secret").id
        self.other = auth.sign_up("other@example.com", "secret").id
        self.store = TransactionStore(self.engine)

    def tearDown(self) -> None:
        self.engine.dispose()

    def test_create_returns_stored_record(self) -> None:
        created = self.store.create(self.owner, fields("income", "100", date(2024, 1, 1)))

        self.assertTrue(created.id)
        self.assertEqual(created.user_id, self.owner)
        self.assertEqual(created.kind, "income")
        self.assertEqual(created.amount, Decimal("100"))
        self.assertEqual(created.description, "")
        self.assertIsNotNone(created.created_at)

    def test_list_orders_by_date_descending(self) -> None:
        self.store.create(self.owner, fields("income", "100", date(2024, 1, 1)))
        self.store.create(self.owner, fields("expense", "40", date(2024, 1, 5)))
        self.store.create(self.owner, fields("expense", "10", date(2024, 1, 3)))

        rows = self.store.list(self.owner, DateRange())

        self.assertEqual(
            [row.date for row in rows],
            [date(2024, 1, 5), date(2024, 1, 3), date(2024, 1, 1)],
        )

    def test_list_filters_by_range_bounds_inclusively(self) -> None:
        for day in (date(2024, 2, 29), date(2024, 3, 1), date(2024, 3, 15), date(2024, 3, 16)):
            self.store.create(self.owner, fields("expense", "1", day))

        rows = self.store.list(self.owner, resolve_period("current-month", date(2024, 3, 15)))

        self.assertEqual([row.date for row in rows], [date(2024, 3, 15), date(2024, 3, 1)])

    def test_inverted_custom_range_returns_nothing(self) -> None:
        self.store.create(self.owner, fields("income", "100", date(2024, 1, 15)))

        date_range = resolve_period("custom", date(2024, 3, 1), "2024-02-01", "2024-01-01")

        self.assertEqual(self.store.list(self.owner, date_range), [])

    def test_records_are_scoped_to_owner(self) -> None:
        mine = self.store.create(self.owner, fields("income", "100", date(2024, 1, 1)))
        self.store.create(self.other, fields("income", "999", date(2024, 1, 1)))

        self.assertEqual([row.id for row in self.store.list(self.owner)], [mine.id])
        self.assertFalse(self.store.remove(self.other, mine.id))
        self.assertEqual(len(self.store.list(self.owner)), 1)

    def test_remove_deletes_by_id(self) -> None:
        created = self.store.create(self.owner, fields("expense", "40", date(2024, 1, 5)))

        self.assertTrue(self.store.remove(self.owner, created.id))
        self.assertFalse(self.store.remove(self.owner, created.id))
        self.assertEqual(self.store.list(self.owner), [])

    def test_database_failure_raises_store_error(self) -> None:
        with mock.patch.object(
            self.engine, "begin", side_effect=OperationalError("select", {}, Exception("down"))
        ):
            with self.assertRaises(StoreError):
                self.store.list(self.owner)


class ProfileStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine("sqlite://")
        init_db(self.engine)
        self.owner = AuthService(self.engine).sign_up("owner@example.com", "secret").id
        self.profiles = ProfileStore(self.engine)

    def tearDown(self) -> None:
        self.engine.dispose()

    def test_create_profile(self) -> None:
        profile = self.profiles.create(self.owner, " Ana ", "Silva")

        self.assertEqual(profile.user_id, self.owner)
        self.assertEqual(profile.name, "Ana")
        self.assertEqual(profile.surname, "Silva")

    def test_duplicate_profile_raises(self) -> None:
        self.profiles.create(self.owner, "Ana", "Silva")

        with self.assertRaises(StoreError):
            self.profiles.create(self.owner, "Ana", "Costa")

    def test_missing_name_raises(self) -> None:
        with self.assertRaises(ValidationError):
            self.profiles.create(self.owner, "", "Silva")


if __name__ == "__main__":
    unittest.main()
