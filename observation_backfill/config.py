"""Backfill engine configuration loaded from environment variables."""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from observation_backfill.sql.guard import validate_identifier, validate_location

logger = logging.getLogger(__name__)


class EngineType(str, Enum):
    ATHENA = "athena"
    DATABRICKS = "databricks"


class Settings(BaseSettings):
    """Application settings loaded from environment variables with BACKFILL_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="BACKFILL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )

    debug: bool = False

    # AWS
    aws_region: str = Field(
        default="eu-west-2",
        validation_alias=AliasChoices("aws_region", "BACKFILL_AWS_REGION", "AWS_REGION"),
    )

    # Storage
    bucket: str = "weather-tempest-records"
    scan_prefix: str = ""
    output_prefix: str = "backfill/athena-partitions"
    chunk_size: int = 100
    partition_location_root: str = "s3://weather-tempest-records/"
    s3_endpoint_url: str | None = None

    # Refinement planning
    refined_output_prefix: str = "backfill/refined-15m"
    refined_chunk_size: int = 30
    refined_end_offset_days: int = 1
    refined_start_date: str | None = None
    refined_end_date: str | None = None

    # Query engine
    engine_type: EngineType = EngineType.ATHENA
    athena_database: str = "tempest_weather"
    athena_catalog: str = "AwsDataCatalog"
    athena_table: str = "observations"
    athena_output: str = "s3://weather-tempest-records/queries/"
    athena_workgroup: str = "primary"
    refined_raw_table: str = "observations"
    refined_table: str = "observations_refined_15m"
    refined_location: str = "s3://weather-tempest-records/refined/observations_refined_15m/"

    # Databricks SQL warehouse (engine_type=databricks)
    databricks_host: str | None = None
    databricks_token: SecretStr | None = None
    databricks_warehouse_id: str | None = None
    databricks_catalog: str | None = None

    # Polling
    poll_delay_ms: int = Field(default=2000, ge=0)
    max_polls: int = Field(default=120, ge=1)
    query_timeout_ms: int | None = None
    timeout_safety_buffer_ms: int = 5000
    max_retries: int = 3
    retry_backoff_base: float = 2.0
    retry_max_delay: float = 60.0

    # Local fan-out
    max_concurrency: int = Field(default=4, ge=1)

    # Logging
    log_level: str = "INFO"
    structured_logging: bool = False

    @field_validator("athena_table", "refined_raw_table", "refined_table")
    @classmethod
    def check_table_identifier(cls, v: str) -> str:
        return validate_identifier(v)

    @field_validator("partition_location_root", "refined_location", "athena_output")
    @classmethod
    def check_location(cls, v: str) -> str:
        return validate_location(v)

    @field_validator("databricks_token", mode="before")
    @classmethod
    def mask_token_in_repr(cls, v: str | None) -> SecretStr | None:
        if v is None:
            return None
        if isinstance(v, SecretStr):
            return v
        return SecretStr(v)

    def is_databricks_configured(self) -> bool:
        return (
            self.databricks_host is not None
            and self.databricks_token is not None
            and self.databricks_warehouse_id is not None
        )


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    settings = Settings(**overrides)  # type: ignore[arg-type]

    if settings.debug:
        logger.info("Loaded settings for engine: %s", settings.engine_type.value)

    return settings
