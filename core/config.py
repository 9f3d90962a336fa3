"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for AuthGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Used for the environment-conditional
      JWT_SECRET policy.

Security notes:
  The placeholder secret is accepted in development with a warning so a fresh
  checkout runs without setup. In production it is a hard startup failure, as
  is an empty secret or one shorter than 32 characters.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or admission/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authgate.config")

INSECURE_DEFAULT_SECRET = "default-secret-to-change-in-production"

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'authgate.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    environment: Literal["development", "production"] = "development"
    jwt_secret: str = INSECURE_DEFAULT_SECRET
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Credentials and session cookie
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    bcrypt_rounds: int = Field(default=10, ge=4, le=31)

    # ------------------------------------------------------------------
    # Admission control
    # ------------------------------------------------------------------

    admission_enabled: bool = True
    admission_mode: Literal["LIVE", "DRY_RUN"] = "LIVE"
    # limits storage URI; "async+redis://host:6379" shares counters across workers
    admission_storage_uri: str = "async+memory://"

    # Per-IP brute-force throttle on sign-in (slowapi syntax)
    signin_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cookie_secure(self) -> bool:
        """Secure flag for the session cookie. Always on in production."""
        return self.secure_cookies or self.is_production

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Enforce the JWT_SECRET policy.

        Production: refuse to start with an empty secret, the placeholder
            secret, or a secret shorter than 32 characters.

        Development: an empty secret is replaced with a random one (sessions
            will not survive a restart); the placeholder is kept but logged.
        """
        if self.is_production:
            if not self.jwt_secret or self.jwt_secret == INSECURE_DEFAULT_SECRET:
                raise ValueError(
                    "JWT_SECRET must be set to a private value in production. "
                    "Set JWT_SECRET in your environment or .env file."
                )
            if len(self.jwt_secret) < 32:
                raise ValueError("JWT_SECRET must be at least 32 characters.")
            return self

        if not self.jwt_secret:
            self.jwt_secret = secrets.token_hex(32)
            logger.warning("Using auto-generated JWT_SECRET. Sessions will not persist across restarts.")
        elif self.jwt_secret == INSECURE_DEFAULT_SECRET:
            logger.warning("Using the insecure default JWT_SECRET. This is refused in production.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
