"""
Configuration settings for the resource store.

Uses Pydantic Settings to load environment variables for the primary
(PostgreSQL) and secondary (MongoDB) stores, logging, and list streaming
defaults.
"""
from __future__ import annotations

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Primary store
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("resource_store", alias="DB_NAME")
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE")
    db_pool_max_size: int = Field(10, alias="DB_POOL_MAX_SIZE")
    db_statement_timeout_ms: int = Field(0, alias="DB_STATEMENT_TIMEOUT_MS")

    # Secondary store (mirror)
    mongo_enabled: bool = Field(True, alias="MONGO_ENABLED")
    mongo_uri: str = Field("mongodb://localhost:27017", alias="MONGO_URI")
    mongo_database: str = Field("resource_store", alias="MONGO_DATABASE")
    mongo_server_selection_timeout_ms: int = Field(
        2000, alias="MONGO_SERVER_SELECTION_TIMEOUT_MS"
    )
    mongo_connect_timeout_ms: int = Field(2000, alias="MONGO_CONNECT_TIMEOUT_MS")
    mongo_socket_timeout_ms: int = Field(2000, alias="MONGO_SOCKET_TIMEOUT_MS")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Repository defaults
    list_batch_size: int = Field(500, alias="LIST_BATCH_SIZE")
    reconcile_limit: int = Field(1_000, alias="RECONCILE_LIMIT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
