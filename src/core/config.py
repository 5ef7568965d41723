"""Application configuration using pydantic-settings."""
from functools import lru_cache

import httpx
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

# Drivers accepted in POSTGRES_CONN and rewritten to the async driver
_POSTGRES_SCHEMES = {"postgres", "postgresql", "postgresql+asyncpg"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Backend object store (MinIO / S3-compatible, path-style addressing)
    minio_endpoint: str = Field(validation_alias="MINIO_ENDPOINT")
    minio_bucket: str = Field(validation_alias="MINIO_BUCKET")

    # Durable store - authoritative user profiles
    postgres_conn: str = Field(validation_alias="POSTGRES_CONN")
    db_pool_size: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")

    # Fast cache - Valkey/Redis holding cached user profiles
    valkey_addr: str = Field(default="localhost:6379", validation_alias="VALKEY_ADDR")
    redis_enabled: bool = Field(default=True, validation_alias="REDIS_ENABLED")
    redis_pool_size: int = Field(default=20, validation_alias="REDIS_POOL_SIZE")

    # Audio filename cache-aside
    audio_name_cache_ttl_seconds: int = Field(
        default=600, validation_alias="AUDIO_NAME_CACHE_TTL_SECONDS",
    )
    audio_name_cache_repopulate: bool = Field(
        default=True, validation_alias="AUDIO_NAME_CACHE_REPOPULATE",
    )

    # Listener and upstream behaviour
    listen_addr: str = Field(default=":5000", validation_alias="LISTEN_ADDR")
    upstream_timeout_seconds: float = Field(
        default=30.0, validation_alias="UPSTREAM_TIMEOUT_SECONDS",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("minio_endpoint")
    @classmethod
    def validate_minio_endpoint(cls, value: str) -> str:
        """Require an absolute http(s) URL without a path component."""
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("MINIO_ENDPOINT is not set")
        try:
            url = httpx.URL(value)
        except httpx.InvalidURL as e:
            raise ValueError(f"invalid MINIO_ENDPOINT: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"invalid MINIO_ENDPOINT: {value!r} is not an http(s) URL")
        if url.path not in ("", "/"):
            raise ValueError(f"invalid MINIO_ENDPOINT: {value!r} must not contain a path")
        return value

    @field_validator("minio_bucket")
    @classmethod
    def validate_minio_bucket(cls, value: str) -> str:
        """Bucket names are a single, non-empty path segment."""
        value = value.strip().strip("/")
        if not value:
            raise ValueError("MINIO_BUCKET is not set")
        if "/" in value:
            raise ValueError(f"invalid MINIO_BUCKET: {value!r}")
        return value

    @field_validator("postgres_conn")
    @classmethod
    def validate_postgres_conn(cls, value: str) -> str:
        """Require a parseable PostgreSQL URL."""
        value = value.strip()
        if not value:
            raise ValueError("POSTGRES_CONN is not set")
        try:
            url = make_url(value)
        except ArgumentError as e:
            raise ValueError(f"invalid POSTGRES_CONN: {e}") from e
        if url.drivername not in _POSTGRES_SCHEMES:
            raise ValueError(f"POSTGRES_CONN must be a postgres URL, got {url.drivername!r}")
        return value

    @field_validator("listen_addr")
    @classmethod
    def validate_listen_addr(cls, value: str) -> str:
        """Require host:port with a numeric port (host may be empty)."""
        value = value.strip() or ":5000"
        _, sep, port = value.rpartition(":")
        if not sep or not port.isdigit():
            raise ValueError(f"invalid LISTEN_ADDR: {value!r}")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Normalize log level names."""
        return value.strip().upper() or "INFO"

    @property
    def backend_url(self) -> httpx.URL:
        """Get the backend object store base URL."""
        return httpx.URL(self.minio_endpoint)

    @property
    def redis_url(self) -> str:
        """Get the fast cache URL (VALKEY_ADDR may be a bare host:port)."""
        if "://" in self.valkey_addr:
            return self.valkey_addr
        return f"redis://{self.valkey_addr}"

    @property
    def database_url(self) -> str:
        """
        Get the SQLAlchemy async URL for the durable store.

        POSTGRES_CONN uses libpq conventions (postgres://...?sslmode=disable), so the
        driver is switched to asyncpg and sslmode is translated to asyncpg's ssl
        argument.
        """
        url = make_url(self.postgres_conn).set(drivername="postgresql+asyncpg")
        query = dict(url.query)
        sslmode = query.pop("sslmode", None)
        if sslmode and sslmode != "disable":
            query["ssl"] = sslmode
        return url.set(query=query).render_as_string(hide_password=False)

    @property
    def listen_host(self) -> str:
        """Get the listen host; an empty host means all interfaces."""
        host, _, _ = self.listen_addr.rpartition(":")
        return host.strip("[]") or "0.0.0.0"  # noqa: S104

    @property
    def listen_port(self) -> int:
        """Get the listen port."""
        _, _, port = self.listen_addr.rpartition(":")
        return int(port)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
