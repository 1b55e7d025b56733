"""Simple configuration management.

This module defines a ``Settings`` class that reads configuration
values from environment variables and provides sensible defaults.
``.env`` support is implemented by loading files from the repository
root in a defined order.  You can override any value via environment
variables; list values (the keyword sets) are given as JSON arrays,
e.g. ``YES_KEYWORDS='["tak", "yes"]'``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from dotenv import load_dotenv, find_dotenv

# -----------------------------------------------------------------------------
# .env loading
#
# Prefer a .env in the repository root but allow fallback to whatever
# python-dotenv discovers from the current working directory.  Files are
# loaded in order without overriding already-set variables.

_THIS_FILE = Path(__file__).resolve()
_REPO_ROOT = _THIS_FILE.parents[2]
_ROOT_ENV = _REPO_ROOT / ".env"

_candidate_envs: list[str] = []
if _ROOT_ENV.exists():
    _candidate_envs.append(str(_ROOT_ENV))

_FOUND_ENV = find_dotenv(usecwd=True)
if _FOUND_ENV and _FOUND_ENV not in _candidate_envs:
    _candidate_envs.append(_FOUND_ENV)

for _env_path in _candidate_envs:
    load_dotenv(dotenv_path=_env_path, override=False)


class Settings(BaseSettings):
    """Application settings.

    Values are loaded from the environment with sensible defaults.  Any
    attribute defined here can be overridden by setting the corresponding
    environment variable.
    """

    model_config = SettingsConfigDict(
        env_file=tuple(_candidate_envs) if _candidate_envs else (".env",),
        case_sensitive=True,
        extra="allow",
    )

    PROJECT_NAME: str = "Receipt Bot"
    ENVIRONMENT: str = Field(default="development")

    # Database
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./receipts.db")

    # Telegram
    TELEGRAM_BOT_TOKEN: Optional[str] = Field(default=None)
    DOWNLOAD_DIRECTORY: str = Field(default="./downloads")

    # OpenAI
    OPENAI_API_KEY: Optional[str] = Field(default=None)
    EXTRACTION_MODEL: str = Field(default="gpt-4o")
    EXTRACTION_MAX_OUTPUT_TOKENS: int = Field(default=2048)

    # Google Sheets
    GOOGLE_SHEETS_ID: Optional[str] = Field(default=None)
    GOOGLE_CREDENTIALS_PATH: str = Field(default="./google-credentials.json")

    # Receipt handling
    MAX_IMAGE_DIMENSION: int = Field(default=1280)
    LANGUAGE: str = Field(default="pl")
    COMMON_EXPENSE_PERCENTAGE: float = Field(default=0.5)
    CATEGORIES_FILE: Optional[str] = Field(default=None)

    # Token costs (USD per million tokens) and conversion to PLN
    INPUT_COST_PER_MILLION: float = Field(default=2.50)
    OUTPUT_COST_PER_MILLION: float = Field(default=10.00)
    USD_TO_PLN_RATE: float = Field(default=3.85)

    # Retention sweep
    RETENTION_HOURS: int = Field(default=24)
    CLEANUP_INTERVAL_SECONDS: int = Field(default=3600)

    # Conversation bounds
    COMMENTS_TIMEOUT_SECONDS: float = Field(default=120)
    ANSWER_TIMEOUT_SECONDS: float = Field(default=600)
    ANSWER_MAX_TURNS: int = Field(default=10)

    # Keyword sets used to classify free-text answers
    SHARED_KEYWORDS: list[str] = Field(default=["w", "r", "wspolne", "shared"])
    PRIVATE_KEYWORDS: list[str] = Field(default=["p", "pv", "prywatne", "private"])
    MULTI_KEYWORDS: list[str] = Field(default=["multi", "m", "mixed"])
    YES_KEYWORDS: list[str] = Field(default=["tak", "t", "y", "yes"])
    NO_KEYWORDS: list[str] = Field(default=["nie", "n", "no"])
    MANUAL_COMMANDS: list[str] = Field(default=["rachunek", "manualnie", "bill", "manual", "m"])
    STOP_KEYWORDS: list[str] = Field(default=["stop"])
    SHOW_KEYWORDS: list[str] = Field(default=["show", "pokaz"])

    # Sentry
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.0)
    # Optional Sentry release name to tag events consistently across deployments
    SENTRY_RELEASE: Optional[str] = Field(default=None)


# Instantiate global settings
settings = Settings()


def get_database_url() -> str:
    """Return the configured database URL, upgrading plain SQLite to aiosqlite."""
    url = settings.DATABASE_URL or os.getenv("DATABASE_URL") or "sqlite+aiosqlite:///./receipts.db"
    if url.startswith("sqlite://"):
        url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url
