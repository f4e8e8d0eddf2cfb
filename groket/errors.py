class GroketError(Exception):
    """Base class for errors raised by the finance application."""


class AuthError(GroketError):
    """Invalid credentials or a missing/unknown session."""


class StoreError(GroketError):
    """A read or write against the persistence layer failed."""


class ValidationError(GroketError, ValueError):
    """User input is missing a required field or is malformed."""
