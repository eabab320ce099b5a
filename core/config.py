"""
core/config.py -- Shopgate settings, read once from the environment and .env.

Every environment variable the service honours is a field on Settings. Other
modules ask get_settings() and never touch os.environ themselves.

  get_settings() is wrapped in lru_cache, so the first call builds Settings
  and every later call (routes, limiter, CLI) gets that same object.

  Field names double as env var names (token_expire_seconds is read from
  TOKEN_EXPIRE_SECONDS); pydantic-settings does the parsing and coercion.

  The signing secret and TTL leave this module only as a TokenConfig built by
  Settings.token_config(). auth/tokens.py takes it through its constructors.

Secret key rules:
  [M6] A SECRET_KEY under 32 characters is refused in every mode.
  [M7] Without DEBUG=true a missing SECRET_KEY stops startup. A generated key
       would silently invalidate every issued token on each restart.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or catalog/.
"""

import logging
import secrets
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("shopgate.config")

_ROOT = Path(__file__).resolve().parent.parent


@dataclass(frozen=True)
class TokenConfig:
    """Everything TokenIssuer / TokenVerifier need to sign and check tokens."""

    secret: str
    ttl_seconds: int = 3600
    algorithm: str = "HS256"


class Settings(BaseSettings):
    """Typed view of the environment. Every field has a default, so tests can
    build Settings() with nothing but DEBUG=true set.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    environment: str = "development"  # "development" | "production"
    # "" means unset; validate_secret_key replaces it or refuses to start.
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Matches the cookie max-age: cookie and token expire together.
    token_expire_seconds: int = Field(default=3600, gt=0)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    auth_db_url: str = f"sqlite:///{_ROOT / 'auth' / 'shopgate_auth.db'}"
    catalog_db_url: str = f"sqlite:///{_ROOT / 'catalog' / 'shopgate_catalog.db'}"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    @property
    def secure_cookies(self) -> bool:
        """The cookie Secure flag follows the deployment environment."""
        return self.environment == "production"

    def token_config(self) -> TokenConfig:
        return TokenConfig(secret=self.secret_key, ttl_seconds=self.token_expire_seconds)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Fill in or reject SECRET_KEY [M6, M7].

        DEBUG=true with no key: a random one is generated and a warning logged.
        Tokens then die with the process.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("WARNING: Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError("SECRET_KEY is not set. Export it (or put it in .env), or set DEBUG=true locally.")
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY is too short: use at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Cached Settings. Tests that change the environment call get_settings.cache_clear()."""
    return Settings()
