import unittest

from sqlalchemy import select

from groket.auth import AuthService, SessionContext
from groket.db import init_db, make_engine, password_resets
from groket.errors import AuthError, ValidationError
from groket.models import Session


class AuthServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine("sqlite://")
        init_db(self.engine)
        self.auth = AuthService(self.engine)

    def tearDown(self) -> None:
        self.engine.dispose()

    def test_sign_up_normalizes_email_and_hashes_password(self) -> None:
        user = self.auth.sign_up("  Ana@Example.com ", "secret")

        self.assertEqual(user.email, "ana@example.com")
        session = self.auth.sign_in("ana@example.com", "secret")
        self.assertEqual(session.user_id, user.id)

    def test_sign_up_requires_email_and_password(self) -> None:
        with self.assertRaises(ValidationError):
            self.auth.sign_up("", "secret")
        with self.assertRaises(ValidationError):
            self.auth.sign_up("ana@example.com", "")

    def test_duplicate_sign_up_raises(self) -> None:
        self.auth.sign_up("ana@example.com", "secret")

        with self.assertRaises(AuthError):
            self.auth.sign_up("ANA@example.com", "other")

    def test_sign_in_rejects_bad_credentials(self) -> None:
        self.auth.sign_up("ana@example.com", "secret")

        with self.assertRaises(AuthError):
            self.auth.sign_in("ana@example.com", "wrong")
        with self.assertRaises(AuthError):
            self.auth.sign_in("nobody@example.com", "secret")

    def test_passwords_longer_than_bcrypt_limit(self) -> None:
        with self.assertRaises(ValidationError):
            self.auth.sign_up("ana@example.com", "x" * 80)
        # multi-byte characters count by their encoded size
        with self.assertRaises(ValidationError):
            self.auth.sign_up("ana@example.com", "é" * 37)

        self.auth.sign_up("ana@example.com", "x" * 72)
        with self.assertRaises(AuthError):
            self.auth.sign_in("ana@example.com", "x" * 80)
        self.assertTrue(self.auth.sign_in("ana@example.com", "x" * 72).token)

    def test_session_lifecycle(self) -> None:
        self.auth.sign_up("ana@example.com", "secret")
        session = self.auth.sign_in("ana@example.com", "secret")

        self.assertEqual(self.auth.get_session(session.token).user_id, session.user_id)

        self.auth.sign_out(session.token)
        with self.assertRaises(AuthError):
            self.auth.get_session(session.token)
        with self.assertRaises(AuthError):
            self.auth.get_session(None)

    def test_password_reset_is_recorded_for_known_email_only(self) -> None:
        user = self.auth.sign_up("ana@example.com", "secret")

        self.auth.request_password_reset("ana@example.com")
        self.auth.request_password_reset("nobody@example.com")

        with self.engine.begin() as conn:
            owners = conn.execute(select(password_resets.c.user_id)).scalars().all()
        self.assertEqual(owners, [user.id])


class SessionContextTests(unittest.TestCase):
    def test_require_raises_when_signed_out(self) -> None:
        context = SessionContext()

        with self.assertRaises(AuthError):
            context.require()

    def test_establish_and_clear(self) -> None:
        context = SessionContext()
        session = Session(token="t", user_id="u", email="e@example.com")

        context.establish(session)
        self.assertIs(context.require(), session)

        context.clear()
        self.assertIsNone(context.current)


if __name__ == "__main__":
    unittest.main()
