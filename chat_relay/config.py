"""Runtime configuration for the chat relay"""

import os
from dotenv import load_dotenv

from .constants import DEFAULT_HISTORY_LIMIT

load_dotenv()


def _as_bool(value: str) -> bool:
    return value.lower() in {"1", "true", "yes", "on"}


class Settings:
    """Environment-backed settings, read once at construction."""

    def __init__(self, **overrides):
        self.HOST = os.getenv("CHAT_HOST", "0.0.0.0")
        self.PORT = int(os.getenv("CHAT_PORT", "8000"))

        # Unset means in-process stores
        self.DATABASE_URL = os.getenv("DATABASE_URL") or None
        self.DB_ECHO = _as_bool(os.getenv("DB_ECHO", "false"))

        self.HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", str(DEFAULT_HISTORY_LIMIT)))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.CORS_ORIGINS = [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        ]

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)


settings = Settings()
