"""
Application configuration module.

Loads settings from environment variables (or .env file) using pydantic-settings.
All sensitive values (DB credentials, webhook URLs) come from environment —
never hardcoded.  Business constants (interest rates, notice period, funding
limits) live here too so they can be confirmed per deployment rather than
being baked into the engine.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from investment_engine.engine.terms import TermLimits
from investment_engine.engine.valuation import RateTable


class Settings(BaseSettings):
    """
    Central configuration for the Investment Lifecycle API.

    Environment variables are loaded automatically from .env if present.
    In production, these should be injected via the container orchestrator
    (e.g., Kubernetes Secrets, AWS Parameter Store).
    """

    PROJECT_NAME: str = "Investment Lifecycle API"
    API_V1_STR: str = "/api/v1"

    # ── SQLite mode (no external DB required) ──
    USE_SQLITE: bool = False

    # ── PostgreSQL connection parameters ──
    # Empty defaults so USE_SQLITE=true works without dummy PG env vars.
    # The model_validator below still fails fast in PostgreSQL mode.
    POSTGRES_USER: str = ""
    POSTGRES_PASSWORD: str = ""
    POSTGRES_SERVER: str = ""
    POSTGRES_DB: str = ""
    POSTGRES_PORT: int = 5432

    @model_validator(mode="after")
    def _require_pg_credentials_unless_sqlite(self) -> "Settings":
        """Fail fast if PostgreSQL credentials are missing in production mode."""
        if not self.USE_SQLITE:
            missing = [
                name
                for name in (
                    "POSTGRES_USER",
                    "POSTGRES_PASSWORD",
                    "POSTGRES_SERVER",
                    "POSTGRES_DB",
                )
                if not getattr(self, name)
            ]
            if missing:
                vars_list = ", ".join(missing)
                raise ValueError(
                    f"PostgreSQL mode requires these environment variables: "
                    f"{vars_list}.\n\n"
                    f"Either set them (or put them in a .env file), or run "
                    f"against in-memory SQLite:\n"
                    f"       USE_SQLITE=true uvicorn investment_engine.main:app"
                )
        return self

    @model_validator(mode="after")
    def _check_engine_constants(self) -> "Settings":
        """Reject business constants that would make every valuation wrong."""
        if self.ANNUAL_RATE_ONE_YEAR < 0 or self.ANNUAL_RATE_THREE_YEAR < 0:
            raise ValueError("Annual interest rates must not be negative")
        if self.NOTICE_PERIOD_DAYS < 0:
            raise ValueError("NOTICE_PERIOD_DAYS must not be negative")
        if self.INVESTMENT_INCREMENT <= 0:
            raise ValueError("INVESTMENT_INCREMENT must be positive")
        return self

    # ── Connection pool tuning ──
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30  # seconds to wait for a connection from the pool
    DB_POOL_RECYCLE: int = 1800  # seconds before a connection is recycled

    # ── CORS ──
    CORS_ORIGINS: str = "*"

    # ── Logging ──
    LOG_LEVEL: str = "INFO"
    LOG_FILE_MAX_BYTES: int = 10 * 1024 * 1024
    LOG_FILE_BACKUP_COUNT: int = 5

    # ── Cache ──
    CACHE_ENABLED: bool = True
    CACHE_TTL: float = 30.0
    CACHE_MAX_SIZE: int = 1000

    # ── Circuit breaker (database) ──
    CB_FAILURE_THRESHOLD: int = 5
    CB_RECOVERY_TIMEOUT: float = 30.0

    # ── Interest & lifecycle constants ──
    # Annual rates per lockup term; the monthly rate is annual / 12.
    ANNUAL_RATE_ONE_YEAR: Decimal = Decimal("0.08")
    ANNUAL_RATE_THREE_YEAR: Decimal = Decimal("0.10")
    NOTICE_PERIOD_DAYS: int = 90
    # Default for the persisted auto-approve flag until an admin toggles it.
    AUTO_APPROVE_DISTRIBUTIONS: bool = False

    # ── Investment terms ──
    MIN_INVESTMENT_AMOUNT: Decimal = Decimal("1000")
    INVESTMENT_INCREMENT: Decimal = Decimal("10")
    WIRE_REQUIRED_ABOVE: Decimal = Decimal("100000")

    # ── Lifecycle notifications ──
    WEBHOOK_URL: Optional[str] = None
    WEBHOOK_TIMEOUT: float = 5.0
    WEBHOOK_MAX_RETRIES: int = 2

    # ── Misc ──
    DEBUG: bool = False

    @property
    def DATABASE_URL(self) -> str:
        """Construct the async database DSN.

        Returns an in-memory SQLite URL when ``USE_SQLITE`` is enabled,
        otherwise a PostgreSQL DSN for asyncpg.
        """
        if self.USE_SQLITE:
            return "sqlite+aiosqlite://"
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    def rate_table(self) -> RateTable:
        """Build the engine's rate table from the configured annual rates."""
        return RateTable.from_annual(
            one_year=self.ANNUAL_RATE_ONE_YEAR,
            three_year=self.ANNUAL_RATE_THREE_YEAR,
        )

    def term_limits(self) -> TermLimits:
        return TermLimits(
            min_amount=self.MIN_INVESTMENT_AMOUNT,
            increment=self.INVESTMENT_INCREMENT,
            wire_required_above=self.WIRE_REQUIRED_ABOVE,
        )

    @property
    def notice_period(self) -> timedelta:
        return timedelta(days=self.NOTICE_PERIOD_DAYS)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
