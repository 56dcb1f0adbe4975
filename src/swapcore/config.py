"""Application configuration using pydantic-settings.

Fee schedules, swap timeouts and the venue list of the route aggregator
are all driven from environment variables (or a local ``.env`` file).
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Database
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/swapcore.db",
        description="Database connection URL",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging and SQL echo")

    # ======================
    # Atomic swaps
    # ======================
    default_swap_timeout_seconds: int = Field(
        default=3600, gt=0, description="Timeout applied when initiate() gets 0 seconds"
    )

    # ======================
    # Escrow pools
    # ======================
    pool_fee_bps: int = Field(
        default=30, ge=0, lt=10000, description="Pool swap fee in basis points (0.30%)"
    )

    # ======================
    # Route aggregator
    # ======================
    aggregator_admin: str = Field(
        default="admin", description="Account that owns the venue registry"
    )
    aggregator_fee_bps: int = Field(
        default=5, ge=0, lt=10000, description="Aggregator fee in basis points (0.05%)"
    )
    venue_names: str = Field(
        default="Liquidswap,Panora,Thala,Cetus,Cellana",
        description="Comma-separated venue names, assigned ids 1..N in order",
    )
    quote_api_url: Optional[str] = Field(
        default=None, description="Base URL of the HTTP quote service"
    )
    quote_timeout_seconds: float = Field(
        default=10.0, gt=0, description="HTTP quote request timeout"
    )
    dry_run: bool = Field(
        default=True, description="Use simulated venue rates instead of the quote service"
    )
    dry_run_rates_bps: str = Field(
        default="9750,9800,9850,9880,9700",
        description="Comma-separated output rates (bps of input) per venue in dry-run mode",
    )

    # ======================
    # Concurrency
    # ======================
    lock_timeout_seconds: Optional[float] = Field(
        default=None, description="Max wait for record locks (None = wait indefinitely)"
    )

    @property
    def venues(self) -> list[str]:
        """Parse venue names into an ordered list."""
        return [name.strip() for name in self.venue_names.split(",") if name.strip()]

    @property
    def dry_run_rates(self) -> dict[int, int]:
        """Map venue id to its simulated output rate in basis points."""
        rates = [int(rate.strip()) for rate in self.dry_run_rates_bps.split(",") if rate.strip()]
        return {venue_id: rate for venue_id, rate in enumerate(rates, start=1)}

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_safe_dict(self) -> dict:
        """Settings as plain data, with the database password masked."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "database_url": self._redact_url(self.database_url),
            "atomic_swaps": {
                "default_timeout_seconds": self.default_swap_timeout_seconds,
            },
            "pools": {
                "fee_bps": self.pool_fee_bps,
            },
            "aggregator": {
                "admin": self.aggregator_admin,
                "fee_bps": self.aggregator_fee_bps,
                "venues": self.venues,
                "quote_api_url": self.quote_api_url or "(not set)",
            },
            "lock_timeout_seconds": self.lock_timeout_seconds,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        return make_url(url).render_as_string(hide_password=True)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
