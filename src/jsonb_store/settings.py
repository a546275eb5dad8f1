"""
jsonb_store.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide env-driven settings for the store and its logging.
- Offer a cached settings instance for callers that do not build their own.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="JSONB_STORE_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "jsonb-store"
    log_level: str = "INFO"
    # "console" renders human-readable lines; "json" suits log shippers.
    log_format: Literal["json", "console"] = "json"

    # Persistence
    database_path: str = "./jsonb_store.db"
    # Emits every SQL statement through the `sqlalchemy.engine` logger.
    echo_sql: bool = False


@lru_cache(maxsize=1)
def get_settings() -> StoreSettings:
    return StoreSettings()


# --- Module Notes -----------------------------------------------------------
# Journal mode and synchronous level are not settings: every handle applies
# WAL + NORMAL at open (see `jsonb_store.db.engine`).
