from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="LC_", extra="ignore")

    app_name: str = "Lot Costing Core"
    env: str = "dev"
    database_url: str = "sqlite+pysqlite:///./lotcost.db"

    log_level: str = "INFO"

    ledger_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Upper bound for a single ledger statement or lock wait",
    )
    lock_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Upper bound for acquiring a product's consumption lock",
    )

    bootstrap_demo_on_startup: bool = False

    def model_post_init(self, __context) -> None:
        if self.env.lower() == "dev":
            return
        if self.database_url.startswith("sqlite") and ":memory:" in self.database_url:
            raise ValueError("in-memory database is not allowed outside dev mode; set LC_DATABASE_URL")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
