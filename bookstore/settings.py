"""
Environment-based settings for the catalog service and the gateway.

Both processes are configured exclusively through environment
variables (a local ``.env`` file is honoured for development). The
catalog service has a single required value, ``DATABASE_URI``; if it
is absent, constructing ``CatalogSettings`` raises a pydantic
``ValidationError`` and the entry point exits with a non-zero status.
"""

from __future__ import annotations

from typing import Dict, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Pool names used by the gateway rule table.
POOL_NAMES = ("full", "get", "post", "put", "delete")


def split_urls(value: str) -> List[str]:
    """Split a comma-separated list of base URLs, dropping blanks and trailing slashes."""
    return [u.strip().rstrip("/") for u in (value or "").split(",") if u.strip()]


class CatalogSettings(BaseSettings):
    """Settings for one catalog service replica."""

    database_uri: str = Field(validation_alias="DATABASE_URI")
    database_name: str = Field(default="exercise-1", validation_alias="DATABASE_NAME")
    collection_name: str = Field(default="information", validation_alias="COLLECTION_NAME")
    connect_timeout_seconds: float = Field(
        default=10.0, gt=0, validation_alias="CONNECT_TIMEOUT_SECONDS"
    )
    seed_data: bool = Field(default=True, validation_alias="SEED_DATA")

    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=3030, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )


class GatewaySettings(BaseSettings):
    """Settings for the method-based reverse proxy.

    Each pool is a comma-separated list of upstream base URLs, e.g.
    ``GATEWAY_POOL_GET=http://get:3030,http://get-2:3030``. The defaults
    match the service names of the bundled ``docker-compose.yaml``.
    """

    pool_full: str = Field(default="http://backend:3030", validation_alias="GATEWAY_POOL_FULL")
    pool_get: str = Field(default="http://get:3030", validation_alias="GATEWAY_POOL_GET")
    pool_post: str = Field(default="http://post:3030", validation_alias="GATEWAY_POOL_POST")
    pool_put: str = Field(default="http://put:3030", validation_alias="GATEWAY_POOL_PUT")
    pool_delete: str = Field(default="http://delete:3030", validation_alias="GATEWAY_POOL_DELETE")
    upstream_timeout_seconds: float = Field(
        default=30.0, gt=0, validation_alias="GATEWAY_UPSTREAM_TIMEOUT_SECONDS"
    )

    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=80, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    def pools(self) -> Dict[str, List[str]]:
        """Return the pool table as ``{pool name: [upstream urls]}``."""
        return {name: split_urls(getattr(self, f"pool_{name}")) for name in POOL_NAMES}
