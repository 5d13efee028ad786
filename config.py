"""Environment-driven settings."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from logging_utils import DEFAULT_FORMAT

load_dotenv()


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str


def parse_credentials(value: str | None, name: str = "ADMIN_CREDENTIALS") -> Credentials:
    """Parse ``username:password``. Raises ValueError on anything else."""
    username, sep, password = (value or "").partition(":")
    if not sep:
        raise ValueError(
            f"invalid credentials format in {name!r}, expected username:password"
        )
    return Credentials(username=username, password=password)


def load_config() -> dict:
    """Read settings from the environment (and a .env file, if present)."""
    return {
        "DATABASE_PATH": os.environ.get("DATABASE_PATH") or "./subbed.db",
        "ADMIN_CREDENTIALS": os.environ.get("ADMIN_CREDENTIALS", ""),
        "DEBUG": os.environ.get("DEBUG") == "true",
        "LOG_LEVEL": os.environ.get("LOG_LEVEL", "INFO"),
        "LOG_FORMAT": os.environ.get("LOG_FORMAT") or DEFAULT_FORMAT,
        "REQUEST_TIMEOUT": float(os.environ.get("REQUEST_TIMEOUT", "10")),
        "SQLITE_BUSY_TIMEOUT_MS": int(os.environ.get("SQLITE_BUSY_TIMEOUT_MS", "5000")),
        "PORT": int(os.environ.get("PORT", "3000")),
    }
