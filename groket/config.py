from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DATABASE_URL = "sqlite:///./groket.db"
DEFAULT_FRONTEND_ORIGIN = "http://localhost:3000"
DEFAULT_DASHBOARD_VIEW_LIMIT = 1024


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    frontend_origin: str = DEFAULT_FRONTEND_ORIGIN
    default_currency: str = "KZ"
    log_level: str = "INFO"
    dashboard_view_limit: int = DEFAULT_DASHBOARD_VIEW_LIMIT

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            frontend_origin=os.getenv("FRONTEND_ORIGIN", DEFAULT_FRONTEND_ORIGIN),
            default_currency=os.getenv("DEFAULT_CURRENCY", "KZ"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            dashboard_view_limit=int(
                os.getenv("DASHBOARD_VIEW_LIMIT", str(DEFAULT_DASHBOARD_VIEW_LIMIT))
            ),
        )
