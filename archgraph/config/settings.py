"""Configuration settings for the archgraph service using Pydantic Settings.

This module provides type-safe configuration management with automatic validation,
environment variable loading, and documentation generation.
"""

import logging
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

API_PATH_SUFFIX = "/api/3.0"


class Settings(BaseSettings):
    """Central configuration management with Pydantic validation.

    All settings are loaded from environment variables with automatic type conversion
    and validation. Default values are provided for non-critical settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
        populate_by_name=True,
    )

    # ========================================
    # Debug Settings
    # ========================================
    debug: bool = Field(
        default=False,
        alias="ARCHGRAPH_DEBUG",
        description="Enable debug mode with verbose logging",
    )

    # ========================================
    # Server Settings
    # ========================================
    host: str = Field(
        default="0.0.0.0",
        description="Server host address",
    )

    port: int = Field(
        default=8060,
        ge=1024,
        le=65535,
        description="Server port number",
    )

    transport: str = Field(
        default="http",
        description="Transport mode (http or stdio)",
    )

    # ========================================
    # Upstream Repository API Settings
    # ========================================
    upstream_api_url: str | None = Field(
        default=None,
        description="Base URL of the upstream repository API",
    )

    upstream_client_id: str | None = Field(
        default=None,
        description="OAuth2 client id for the upstream API",
    )

    upstream_client_secret: str | None = Field(
        default=None,
        description="OAuth2 client secret for the upstream API",
    )

    default_repository_id: str | None = Field(
        default=None,
        description="Repository used when a request does not name one",
    )

    upstream_timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=600.0,
        description="Timeout in seconds for each upstream HTTP call",
    )

    upstream_page_size: int = Field(
        default=10000,
        ge=1,
        le=10000,
        description="Page size used by fetch-all iterations",
    )

    upstream_page_delay_ms: int = Field(
        default=100,
        ge=0,
        le=10000,
        description="Delay between successive pages of one fetch-all call",
    )

    upstream_max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries for network and 5xx failures",
    )

    token_expiry_margin: int = Field(
        default=60,
        ge=60,
        le=3600,
        description="Seconds of validity a cached token must still have to be reused",
    )

    call_log_size: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Number of upstream call records kept for replay",
    )

    # ========================================
    # Neo4j Settings
    # ========================================
    neo4j_uri: str | None = Field(
        default=None,
        description="Neo4j database URI",
    )

    neo4j_username: str | None = Field(
        default=None,
        description="Neo4j username",
    )

    neo4j_password: str | None = Field(
        default=None,
        description="Neo4j password",
    )

    neo4j_database: str = Field(
        default="neo4j",
        description="Neo4j database name",
    )

    neo4j_batch_size: int = Field(
        default=5000,
        ge=1,
        le=50000,
        description="Rows per transaction during a repository load",
    )

    neo4j_batch_timeout: int = Field(
        default=120,
        ge=10,
        le=600,
        description="Timeout in seconds for each load transaction",
    )

    # ========================================
    # Query Layer Settings
    # ========================================
    hub_threshold: int = Field(
        default=10,
        ge=1,
        description="Relationship count above which an object is flagged as a hub",
    )

    neighbor_limit: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Maximum nodes added per hop of a neighbor expansion",
    )

    graph_sample_limit: int = Field(
        default=1000,
        ge=1,
        le=1000,
        description="Maximum nodes returned by a graph sample",
    )

    graph_edge_limit: int = Field(
        default=2000,
        ge=1,
        le=10000,
        description="Maximum edges returned by a graph sample",
    )

    centrality_limit: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Number of ranked objects returned by centrality queries",
    )

    path_limit: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Default maximum number of paths returned by find-all-paths",
    )

    # ========================================
    # Validators
    # ========================================
    @field_validator("upstream_api_url", mode="before")
    @classmethod
    def normalize_api_url(cls, v: str | None) -> str | None:
        """Strip trailing slashes and make sure the versioned API path is present."""
        if not v:
            return None
        url = str(v).rstrip("/")
        if not url.endswith(API_PATH_SUFFIX):
            url = f"{url}{API_PATH_SUFFIX}"
        return url

    # ========================================
    # Helper Methods
    # ========================================
    def has_neo4j_config(self) -> bool:
        """Check if Neo4j environment variables are configured."""
        return all([self.neo4j_uri, self.neo4j_username, self.neo4j_password])

    def get_neo4j_config(self) -> dict[str, Any]:
        """Get Neo4j configuration as a dictionary."""
        return {
            "uri": self.neo4j_uri or "",
            "auth": (self.neo4j_username or "", self.neo4j_password or ""),
        }

    def has_upstream_config(self) -> bool:
        """Check if the upstream API credentials are configured."""
        return all(
            [self.upstream_api_url, self.upstream_client_id, self.upstream_client_secret],
        )

    def get_oauth_token_url(self) -> str:
        """Token endpoint, served next to the versioned API root."""
        base = (self.upstream_api_url or "").removesuffix(API_PATH_SUFFIX)
        return f"{base}/oauth/token"

    def to_dict(self) -> dict[str, Any]:
        """Export settings as a dictionary (safe version without secrets)."""
        return {
            "debug": self.debug,
            "host": self.host,
            "port": self.port,
            "has_neo4j": self.has_neo4j_config(),
            "has_upstream": self.has_upstream_config(),
            "upstream_api_url": self.upstream_api_url,
            "default_repository_id": self.default_repository_id,
            "upstream_page_size": self.upstream_page_size,
            "upstream_max_retries": self.upstream_max_retries,
            "neo4j_database": self.neo4j_database,
            "neo4j_batch_size": self.neo4j_batch_size,
            "neo4j_batch_timeout": self.neo4j_batch_timeout,
            "neighbor_limit": self.neighbor_limit,
            "graph_sample_limit": self.graph_sample_limit,
            "path_limit": self.path_limit,
        }


_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance (singleton pattern)."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
        logger.info("Settings initialized from environment")
        if not _settings_instance.has_upstream_config():
            logger.warning(
                "Upstream API credentials are missing. Extraction will be unavailable.",
            )
        if not _settings_instance.has_neo4j_config():
            logger.warning(
                "Neo4j credentials are missing. Graph storage will be unavailable.",
            )
    return _settings_instance


def reset_settings() -> None:
    """Reset settings instance (useful for testing)."""
    global _settings_instance
    _settings_instance = None
