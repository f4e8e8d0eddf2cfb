import unittest
from datetime import date
from decimal import Decimal

from groket.errors import ValidationError
from groket.forms import parse_transaction_form


class TransactionFormTests(unittest.TestCase):
    def setUp(self) -> None:
        self.form = {
            "kind": "expense",
            "amount": "40.5",
            "category": " Food ",
            "description": "",
            "date": "2024-01-05",
        }

    def test_parses_entered_text(self) -> None:
        fields = parse_transaction_form(self.form)

        self.assertEqual(fields.kind, "expense")
        self.assertEqual(fields.amount, Decimal("40.50"))
        self.assertEqual(fields.category, "Food")
        self.assertEqual(fields.description, "")
        self.assertEqual(fields.date, date(2024, 1, 5))

    def test_accepts_original_kind_labels(self) -> None:
        self.form["kind"] = "Receita"

        self.assertEqual(parse_transaction_form(self.form).kind, "income")

    def test_missing_required_fields_raise(self) -> None:
        for key in ("kind", "amount", "category", "date"):
            form = dict(self.form)
            form[key] = "  "
            with self.assertRaises(ValidationError):
                parse_transaction_form(form)

    def test_description_is_optional(self) -> None:
        del self.form["description"]

        self.assertEqual(parse_transaction_form(self.form).description, "")

    def test_rejects_non_numeric_amounts(self) -> None:
        for value in ("abc", "NaN", "Infinity", "-5"):
            self.form["amount"] = value
            with self.assertRaises(ValidationError):
                parse_transaction_form(self.form)

    def test_rejects_amounts_beyond_column_precision(self) -> None:
        for value in ("1e30", "1000000000000", "999999999999.995"):
            self.form["amount"] = value
            with self.assertRaises(ValidationError):
                parse_transaction_form(self.form)

    def test_accepts_largest_storable_amount(self) -> None:
        self.form["amount"] = "999999999999.99"

        self.assertEqual(parse_transaction_form(self.form).amount, Decimal("999999999999.99"))

    def test_rejects_unknown_kind_and_bad_date(self) -> None:
        with self.assertRaises(ValidationError):
            parse_transaction_form({**self.form, "kind": "transfer"})
        with self.assertRaises(ValidationError):
            parse_transaction_form({**self.form, "date": "05/01/2024"})


if __name__ == "__main__":
    unittest.main()
