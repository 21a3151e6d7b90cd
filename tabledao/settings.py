from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore", populate_by_name=True)

    # Runtime
    environment: str = Field(default="development", validation_alias="APP_ENV")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # AWS credentials. When unset, boto3's default credential chain is used.
    aws_region: str = Field(default="us-east-1", validation_alias="AWS_REGION")
    aws_access_key_id: str | None = Field(default=None, validation_alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str | None = Field(
        default=None, validation_alias="AWS_SECRET_ACCESS_KEY"
    )

    # DynamoDB
    # Optional: point at DynamoDB Local (e.g. http://localhost:8000).
    ddb_endpoint_url: str | None = Field(default=None, validation_alias="DDB_ENDPOINT_URL")
    # Environment/developer isolation: QA_USERS, PRODUCTION_USERS, JOESMITH_USERS...
    ddb_table_prefix: str | None = Field(default=None, validation_alias="DDB_TABLE_PREFIX")
    ddb_auto_create_tables: bool = Field(default=True, validation_alias="DDB_AUTO_CREATE_TABLES")
    # Both unset means on-demand (PAY_PER_REQUEST) billing for created tables.
    ddb_read_capacity_units: int | None = Field(
        default=None, validation_alias="DDB_READ_CAPACITY_UNITS"
    )
    ddb_write_capacity_units: int | None = Field(
        default=None, validation_alias="DDB_WRITE_CAPACITY_UNITS"
    )
    ddb_scan_total_segments: int = Field(default=4, validation_alias="DDB_SCAN_TOTAL_SEGMENTS")

    # botocore client tuning
    ddb_max_attempts: int = Field(default=10, validation_alias="DDB_MAX_ATTEMPTS")
    ddb_connect_timeout_s: float = Field(default=2, validation_alias="DDB_CONNECT_TIMEOUT_S")
    ddb_read_timeout_s: float = Field(default=10, validation_alias="DDB_READ_TIMEOUT_S")

    # ---- helpers / derived flags ----
    @property
    def normalized_environment(self) -> str:
        v = (self.environment or "").strip().lower()
        if v in ("prod", "production"):
            return "production"
        if v in ("qa", "test"):
            return "qa"
        if v in ("stage", "staging"):
            return "staging"
        if v in ("dev", "development"):
            return "development"
        return v or "development"

    @property
    def is_production(self) -> bool:
        return self.normalized_environment == "production"

    @property
    def is_development(self) -> bool:
        return self.normalized_environment == "development"

    @property
    def default_table_prefix(self) -> str | None:
        """
        Prefix used when a DAO is built from settings.

        An explicit DDB_TABLE_PREFIX always wins. Shared environments fall back
        to their own name (QA, STAGING, PRODUCTION); development has no implicit
        prefix so each developer has to pick one.
        """
        prefix = str(self.ddb_table_prefix or "").strip()
        if prefix:
            return prefix
        if self.is_development:
            return None
        return self.normalized_environment.upper()

    def require_in_production(self) -> None:
        """
        Enforce required settings in production.

        Production tables must never be resolved implicitly, so the prefix has
        to be configured.
        """
        if not self.is_production:
            return

        missing: list[str] = []

        if not str(self.ddb_table_prefix or "").strip():
            missing.append("DDB_TABLE_PREFIX")
        if bool(self.aws_access_key_id) != bool(self.aws_secret_access_key):
            missing.append("AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY (set both or neither)")

        if missing:
            raise RuntimeError(
                "Missing required production environment variables: "
                + ", ".join(missing)
            )

    def to_log_safe_dict(self) -> dict[str, object]:
        """
        A redacted representation safe for structured logs / diagnostics.
        """
        def _has(v: object) -> bool:
            return v is not None and str(v).strip() != ""

        return {
            "environment": self.normalized_environment,
            "log_level": self.log_level,
            "aws": {
                "aws_region": self.aws_region,
                "aws_access_key_id_configured": _has(self.aws_access_key_id),
                "aws_secret_access_key_configured": _has(self.aws_secret_access_key),
            },
            "dynamodb": {
                "endpoint_url": self.ddb_endpoint_url,
                "table_prefix": self.ddb_table_prefix,
                "auto_create_tables": bool(self.ddb_auto_create_tables),
                "read_capacity_units": self.ddb_read_capacity_units,
                "write_capacity_units": self.ddb_write_capacity_units,
                "scan_total_segments": self.ddb_scan_total_segments,
                "max_attempts": self.ddb_max_attempts,
            },
        }


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    # Unchecked: explicit DAO arguments must work without the production gate.
    return Settings()


def get_settings() -> Settings:
    s = load_settings()
    s.require_in_production()
    return s
