"""
Engine configuration.

Values come from the environment (prefix STOCKLEDGER_) or a local .env:
    STOCKLEDGER_CUTOVER_DATE=2025-07-01
    STOCKLEDGER_MAX_PAGES=500
    STOCKLEDGER_SKU_DETAIL_POLICY=replay
"""

from datetime import date
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from .opening import OpeningPolicy


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Stock Ledger Dashboard"
    LOG_LEVEL: str = "INFO"

    # Movement history before this date is not trusted; the ERP snapshot is
    CUTOVER_DATE: date = date(2025, 7, 1)

    # Store pagination (rows per page, hard cap on pages per query)
    PAGE_SIZE: int = 1000
    MAX_PAGES: int = 500

    # Opening stock policy per report type
    MOVEMENT_REPORT_POLICY: OpeningPolicy = OpeningPolicy.CUTOVER
    AS_OF_REPORT_POLICY: OpeningPolicy = OpeningPolicy.CUTOVER
    SKU_DETAIL_POLICY: OpeningPolicy = OpeningPolicy.REPLAY

    # Data sources
    DATA_DIR: str = "data/exports"
    DATABASE_URL: str | None = None
    WAREHOUSE_TABLES: list[str] = ["warehouses", "warehouse"]

    model_config = SettingsConfigDict(
        env_prefix="STOCKLEDGER_",
        env_file=".env",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
