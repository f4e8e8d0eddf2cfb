from __future__ import annotations

import logging
import secrets
import uuid

import bcrypt
from sqlalchemy import insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from groket.db import password_resets, sessions, users
from groket.errors import AuthError, StoreError, ValidationError
from groket.models import Session, User

logger = logging.getLogger(__name__)

# bcrypt only hashes the first 72 bytes; newer releases reject anything longer
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))


def password_fits(password: str) -> bool:
    return len(password.encode("utf-8")) <= MAX_PASSWORD_BYTES


def normalize_email(value: str | None) -> str:
    return (value or "").strip().lower()


class AuthService:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def sign_up(self, email: str, password: str) -> User:
        email = normalize_email(email)
        if not email or not password:
            raise ValidationError("Email and password required.")
        if not password_fits(password):
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        stmt = (
            insert(users)
            .values(id=str(uuid.uuid4()), email=email, hashed_password=hash_password(password))
            .returning(users.c.id, users.c.email, users.c.created_at)
        )
        try:
            with self.engine.begin() as conn:
                row = conn.execute(stmt).mappings().first()
        except IntegrityError as exc:
            raise AuthError("Email already exists.") from exc
        except SQLAlchemyError as exc:
            raise StoreError("Failed to create user.") from exc
        if not row:
            raise StoreError("Failed to create user.")
        logger.info("Created user %s", row["id"])
        return User(id=row["id"], email=row["email"], created_at=row["created_at"])

    def sign_in(self, email: str, password: str) -> Session:
        email = normalize_email(email)
        if not password or not password_fits(password):
            logger.info("Rejected sign-in for %s", email)
            raise AuthError("Invalid credentials.")
        try:
            with self.engine.begin() as conn:
                row = conn.execute(select(users).where(users.c.email == email)).mappings().first()
                if not row or not verify_password(password, row["hashed_password"]):
                    logger.info("Rejected sign-in for %s", email)
                    raise AuthError("Invalid credentials.")
                token = secrets.token_urlsafe(32)
                created = conn.execute(
                    insert(sessions)
                    .values(token=token, user_id=row["id"])
                    .returning(sessions.c.created_at)
                ).scalar_one()
        except SQLAlchemyError as exc:
            raise StoreError("Failed to sign in.") from exc
        return Session(token=token, user_id=row["id"], email=row["email"], created_at=created)

    def get_session(self, token: str | None) -> Session:
        if not token:
            raise AuthError("Missing session.")
        stmt = (
            select(sessions.c.token, sessions.c.user_id, sessions.c.created_at, users.c.email)
            .select_from(sessions.join(users, sessions.c.user_id == users.c.id))
            .where(sessions.c.token == token)
        )
        try:
            with self.engine.begin() as conn:
                row = conn.execute(stmt).mappings().first()
        except SQLAlchemyError as exc:
            raise StoreError("Failed to load session.") from exc
        if not row:
            raise AuthError("Session not found.")
        return Session(
            token=row["token"],
            user_id=row["user_id"],
            email=row["email"],
            created_at=row["created_at"],
        )

    def sign_out(self, token: str | None) -> None:
        if not token:
            return
        try:
            with self.engine.begin() as conn:
                conn.execute(sessions.delete().where(sessions.c.token == token))
        except SQLAlchemyError as exc:
            raise StoreError("Failed to sign out.") from exc
        logger.info("Session ended")

    def request_password_reset(self, email: str) -> None:
        """Record a reset token; delivering it by email happens elsewhere."""
        email = normalize_email(email)
        if not email:
            raise ValidationError("Email required.")
        try:
            with self.engine.begin() as conn:
                user_id = conn.execute(
                    select(users.c.id).where(users.c.email == email)
                ).scalar_one_or_none()
                if user_id is None:
                    logger.info("Password reset requested for unknown email")
                    return
                conn.execute(
                    insert(password_resets).values(token=secrets.token_urlsafe(32), user_id=user_id)
                )
        except SQLAlchemyError as exc:
            raise StoreError("Failed to request password reset.") from exc
        logger.info("Password reset requested for user %s", user_id)


class SessionContext:
    """The signed-in session, passed explicitly to whatever needs an owner."""

    def __init__(self, session: Session | None = None) -> None:
        self._session = session

    @property
    def current(self) -> Session | None:
        return self._session

    def establish(self, session: Session) -> None:
        self._session = session

    def clear(self) -> None:
        self._session = None

    def require(self) -> Session:
        if self._session is None:
            raise AuthError("Not signed in.")
        return self._session
