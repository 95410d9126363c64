"""Application configuration loaded from environment and config files."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class DatabaseConfig(BaseSettings):
    """Database configuration.

    When ``database_url`` is unset the in-memory graph store is used.
    """

    model_config = {"env_prefix": "SOCIALGRAPH_DB_"}

    database_url: str | None = None
    echo: bool = False
    pool_size: int = 5


class AnalyticsConfig(BaseSettings):
    """Graph analytics configuration."""

    model_config = {"env_prefix": "SOCIALGRAPH_ANALYTICS_"}

    isolation_threshold: int = 1
    group_attribute: str = "organization"
    top_n: int = 10


class ConsistencyConfig(BaseSettings):
    """Connection consistency configuration."""

    model_config = {"env_prefix": "SOCIALGRAPH_CONSISTENCY_"}

    auto_repair: bool = True


class VisualConfig(BaseSettings):
    """Visual encoding configuration."""

    model_config = {"env_prefix": "SOCIALGRAPH_VISUAL_"}

    default_node_color: str = "#808080"
    inter_group_edge_color: str = "#999999"


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "SOCIALGRAPH_"}

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    db: DatabaseConfig = Field(default_factory=DatabaseConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    consistency: ConsistencyConfig = Field(default_factory=ConsistencyConfig)
    visual: VisualConfig = Field(default_factory=VisualConfig)
