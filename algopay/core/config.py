from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    This uses pydantic-settings so that we get type validation and defaults.
    Settings are loaded from environment variables with optional .env file override.
    """

    # App basics
    ENV: Literal["development", "staging", "production"] = "development"
    """Environment mode: affects log rendering."""

    DEBUG: bool = True
    """Enable debug mode: verbose logging."""

    # DB
    DATABASE_URL: Optional[str] = None
    """Database connection URL. If None, uses SQLite for development."""

    # Algorand node
    ALGOD_SERVER: str = "https://testnet-api.algonode.cloud"
    """Base URL of the algod REST API."""

    ALGOD_PORT: str = ""
    """Optional port appended to ALGOD_SERVER."""

    ALGOD_TOKEN: str = ""
    """API token sent as X-Algo-API-Token. Public nodes need none."""

    ALGOD_TIMEOUT: float = 10.0
    """Per-request timeout for algod calls, in seconds."""

    ALGORAND_MNEMONIC: Optional[str] = None
    """Default sender mnemonic used when a request carries no credential."""

    # Lifecycle
    CONFIRM_ON_SUBMIT: bool = False
    """Wait for confirmation inline after a successful submission."""

    MAX_CONFIRMATION_ROUNDS: int = 10
    """Round bound for confirmation waits."""

    RECONCILE_INTERVAL_SECONDS: int = 60
    """Interval between scheduled reconciliation passes."""

    # Model config
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    def get_database_url(self) -> str:
        return self.DATABASE_URL or "sqlite+aiosqlite:///./algopay.db"

    def get_algod_url(self) -> str:
        """Join server and port the way algod clients expect."""
        server = self.ALGOD_SERVER.rstrip("/")
        if self.ALGOD_PORT:
            return f"{server}:{self.ALGOD_PORT}"
        return server


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance to avoid re-parsing .env repeatedly."""
    return Settings()
