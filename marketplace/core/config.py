from __future__ import annotations

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="MP_", extra="ignore")

    app_name: str = "Marketplace Financial Core"
    env: str = "dev"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    database_url: str = "sqlite+pysqlite:///./marketplace.db"

    bootstrap_demo_on_startup: bool = False

    escrow_hold_days: int = Field(default=14, ge=0)
    shipping_subsidy: Decimal = Field(
        default=Decimal("0.00"),
        ge=0,
        description="EGP absorbed by the platform on every shipment",
    )
    minimum_payout: Decimal = Field(default=Decimal("500.00"), gt=0, description="EGP")

    def model_post_init(self, __context) -> None:
        if self.env.lower() == "dev":
            return
        # Stock and wallet rows rely on row-level locks that SQLite does not provide.
        if self.database_url.startswith("sqlite"):
            raise ValueError("sqlite is only allowed in dev mode; set MP_DATABASE_URL to a server database")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
