"""Centralized configuration using Pydantic Settings (v2).

This module exposes a single, cached `settings` instance that reads from:
- Real environment variables (highest precedence)
- `.env` files at the working directory: .env, .env.local, .env.dev/.env.test/.env.prod

The `TIME_LOG` flag is read here once per process; the timing registry is
built from it and never re-reads the environment on the request path.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["dev", "test", "prod"]
LogLevelName = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_BACKEND_URL = "https://api.steemit.com"


class Settings(BaseSettings):
    """Typed application configuration loaded from env and `.env` files.

    Attributes
    ----------
    environment : EnvName
        Runtime environment flag; maps from `PAGESTATE_ENV`.
    log_level : LogLevelName
        Global log level string; maps from `LOG_LEVEL`.
    time_log : bool
        Enables the timing registry; maps from `TIME_LOG`. Off by default so
        instrumentation costs nothing unless asked for.
    backend_url : str
        JSON-RPC endpoint used for every backend call; maps from `BACKEND_URL`.
    backend_default_url : str | None
        Endpoint the client falls back to after a network failure; maps from
        `BACKEND_DEFAULT_URL` and defaults to `backend_url` when unset.
    backend_timeout_seconds : float
        Per-call transport timeout; maps from `BACKEND_TIMEOUT_SECONDS`.
    """

    environment: EnvName = Field(default="dev", alias="PAGESTATE_ENV")
    log_level: LogLevelName = Field(default="INFO", alias="LOG_LEVEL")
    time_log: bool = Field(default=False, alias="TIME_LOG")
    backend_url: str = Field(default=DEFAULT_BACKEND_URL, alias="BACKEND_URL")
    backend_default_url: str | None = Field(default=None, alias="BACKEND_DEFAULT_URL")
    backend_timeout_seconds: float = Field(default=15.0, gt=0, alias="BACKEND_TIMEOUT_SECONDS")

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local", ".env.dev", ".env.test", ".env.prod"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_dev(self) -> bool:
        """Return True if running in the development environment."""
        return self.environment == "dev"

    @property
    def is_test(self) -> bool:
        """Return True if running in the test environment."""
        return self.environment == "test"

    @property
    def is_prod(self) -> bool:
        """Return True if running in the production environment."""
        return self.environment == "prod"

    @property
    def fallback_backend_url(self) -> str:
        """Return the endpoint to reset to after a network failure."""
        return self.backend_default_url or self.backend_url

    def log_level_numeric(self) -> int:
        """Return the numeric logging level corresponding to `self.log_level`."""
        return getattr(logging, self.log_level, logging.INFO)


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Create and cache a `Settings` instance.

    Kept behind an LRU cache so tests can force a rebuild via
    `load_settings.cache_clear()` after mutating `os.environ`.
    """
    os.environ.setdefault("PAGESTATE_ENV", "dev")
    return Settings()


# Ready-to-use singleton (import-time read of env / .env files).
settings: Settings = load_settings()


def get_logger(name: str = "pagestate") -> logging.Logger:
    """Return a process-global logger configured to the current `LOG_LEVEL`."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        )
        logger.addHandler(handler)
    logger.setLevel(load_settings().log_level_numeric())
    logger.propagate = False
    return logger
