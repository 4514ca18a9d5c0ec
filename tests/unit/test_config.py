"""Unit tests for observation_backfill.config."""

from __future__ import annotations

import pytest
from pydantic import SecretStr, ValidationError

from observation_backfill.config import EngineType, Settings, load_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("AWS_REGION", "BACKFILL_AWS_REGION", "BACKFILL_BUCKET", "BACKFILL_CHUNK_SIZE", "BACKFILL_ENGINE_TYPE"):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_storage_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.bucket == "weather-tempest-records"
        assert settings.scan_prefix == ""
        assert settings.output_prefix == "backfill/athena-partitions"
        assert settings.chunk_size == 100
        assert settings.partition_location_root == "s3://weather-tempest-records/"

    def test_refinement_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.refined_output_prefix == "backfill/refined-15m"
        assert settings.refined_chunk_size == 30
        assert settings.refined_end_offset_days == 1
        assert settings.refined_table == "observations_refined_15m"

    def test_engine_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.engine_type is EngineType.ATHENA
        assert settings.athena_database == "tempest_weather"
        assert settings.athena_workgroup == "primary"
        assert settings.aws_region == "eu-west-2"
        assert settings.max_concurrency == 4


class TestEnvironment:
    def test_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("BACKFILL_BUCKET", "other-bucket")
        monkeypatch.setenv("BACKFILL_CHUNK_SIZE", "25")
        monkeypatch.setenv("BACKFILL_ENGINE_TYPE", "databricks")

        settings = load_settings(_env_file=None)

        assert settings.bucket == "other-bucket"
        assert settings.chunk_size == 25
        assert settings.engine_type is EngineType.DATABRICKS

    def test_plain_aws_region(self, monkeypatch):
        monkeypatch.setenv("AWS_REGION", "us-east-1")
        assert Settings(_env_file=None).aws_region == "us-east-1"

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("BACKFILL_BUCKET", "from-env")
        assert load_settings(_env_file=None, bucket="explicit").bucket == "explicit"


class TestValidation:
    def test_invalid_table_identifier(self):
        with pytest.raises(ValidationError, match="Invalid table identifier"):
            Settings(_env_file=None, athena_table="observations; DROP TABLE x")

    def test_location_must_end_with_slash(self):
        with pytest.raises(ValidationError, match="Invalid storage location"):
            Settings(_env_file=None, partition_location_root="s3://weather-tempest-records")

    def test_non_positive_concurrency(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, max_concurrency=0)


class TestDatabricks:
    def test_token_is_secret(self):
        settings = Settings(_env_file=None, databricks_token="dapi-secret")
        assert isinstance(settings.databricks_token, SecretStr)
        assert "dapi-secret" not in repr(settings)
        assert settings.databricks_token.get_secret_value() == "dapi-secret"

    def test_configured_only_with_all_values(self):
        partial = Settings(_env_file=None, databricks_host="https://adb", databricks_token="t")
        full = Settings(
            _env_file=None,
            databricks_host="https://adb",
            databricks_token="t",
            databricks_warehouse_id="wh-1",
        )
        assert partial.is_databricks_configured() is False
        assert full.is_databricks_configured() is True
