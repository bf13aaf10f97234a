"""
Configuration settings for the SecurePay+ sync core.

Uses Pydantic Settings to load environment variables (or a `.env` file) for
the Postgres backend, the signed-in user used by the CLI, logging and the
table names the dashboard syncs.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("securepay", alias="DB_NAME")
    db_statement_timeout_ms: int = Field(15_000, alias="DB_STATEMENT_TIMEOUT_MS")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Backend wiring
    backend: Literal["postgres", "memory"] = Field("postgres", alias="SECUREPAY_BACKEND")
    user_id: str | None = Field(None, alias="SECUREPAY_USER_ID")
    user_email: str | None = Field(None, alias="SECUREPAY_USER_EMAIL")
    transactions_table: str = Field("securepay_transactions", alias="TRANSACTIONS_TABLE")
    schedules_table: str = Field("scheduled_payments", alias="SCHEDULES_TABLE")

    # Dashboard behaviour
    temp_id_prefix: str = Field("temp", alias="TEMP_ID_PREFIX")
    default_currency: str = Field("INR", alias="DEFAULT_CURRENCY")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def dsn(self) -> str:
        return (
            f"postgresql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
