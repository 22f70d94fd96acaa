"""Application settings using pydantic-settings.

Settings are loaded from environment variables with sensible defaults
for development. Production deployments should set all values explicitly.
"""

from enum import StrEnum
from functools import lru_cache
from pathlib import Path
import re

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Longest tenant id accepted by TenantId; prefix + id must fit PostgreSQL's
# 63-byte identifier limit.
MAX_TENANT_ID_LENGTH = 40
MAX_IDENTIFIER_LENGTH = 63

_DEFAULT_MIGRATIONS_LOCATION = str(
    Path(__file__).resolve().parent.parent
    / "tenancy"
    / "infrastructure"
    / "tenant_migrations"
)

_PREFIX_PATTERN = re.compile(r"^[a-z_][a-z0-9_]*$")


class AdminSeedPolicy(StrEnum):
    """Whether provisioning creates the tenant's first admin principal."""

    REQUIRED = "required"
    OPTIONAL = "optional"
    SKIP = "skip"


class DatabaseSettings(BaseSettings):
    """Central database connection settings.

    Environment variables:
        TENANCY_DB_HOST: Database host (default: localhost)
        TENANCY_DB_PORT: Database port (default: 5432)
        TENANCY_DB_DATABASE: Central database name (default: tenancy)
        TENANCY_DB_USERNAME: Database user (default: tenancy)
        TENANCY_DB_PASSWORD: Database password (required in production)
        TENANCY_DB_POOL_MIN_CONNECTIONS: Minimum connections in pool (default: 2)
        TENANCY_DB_POOL_MAX_CONNECTIONS: Maximum connections in pool (default: 10)
    """

    model_config = SettingsConfigDict(
        env_prefix="TENANCY_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    database: str = Field(default="tenancy", description="Central database name")
    username: str = Field(default="tenancy", description="Database username")
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Database password",
    )
    pool_min_connections: int = Field(
        default=2,
        description="Minimum connections in pool",
        ge=1,
        le=100,
    )
    pool_max_connections: int = Field(
        default=10,
        description="Maximum connections in pool",
        ge=1,
        le=100,
    )

    @model_validator(mode="after")
    def validate_pool_settings(self) -> "DatabaseSettings":
        """Validate pool max >= min."""
        if self.pool_max_connections < self.pool_min_connections:
            raise ValueError(
                f"pool_max_connections ({self.pool_max_connections}) must be >= "
                f"pool_min_connections ({self.pool_min_connections})"
            )
        return self

    @property
    def connection_string(self) -> str:
        """Generate a connection string (without password for logging)."""
        return f"postgresql://{self.username}@{self.host}:{self.port}/{self.database}"


class ProvisioningSettings(BaseSettings):
    """Tenant database provisioning settings.

    Environment variables:
        TENANCY_PROVISIONING_DATABASE_PREFIX: Prepended to the tenant id to form
            the physical database name (default: tenant_)
        TENANCY_PROVISIONING_MIGRATIONS_LOCATION: Alembic script directory holding
            the tenant migration set (default: packaged tenant_migrations)
        TENANCY_PROVISIONING_ADMIN_SEED_POLICY: required | optional | skip
        TENANCY_PROVISIONING_OPERATION_TIMEOUT_SECONDS: Bound on a single storage call
        TENANCY_PROVISIONING_MIGRATION_TIMEOUT_SECONDS: Bound on a full migrate call
        TENANCY_PROVISIONING_MAX_ATTEMPTS: Attempts per operation on
            infrastructure errors
        TENANCY_PROVISIONING_RETRY_BACKOFF_SECONDS: Linear backoff between attempts
        TENANCY_PROVISIONING_TENANT_POOL_SIZE: Connections per tenant engine
        TENANCY_PROVISIONING_TENANT_POOL_TIMEOUT_SECONDS: Wait for a pooled connection
        TENANCY_PROVISIONING_MAX_CACHED_ENGINES: Tenant engines kept open at once
    """

    model_config = SettingsConfigDict(
        env_prefix="TENANCY_PROVISIONING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_prefix: str = Field(
        default="tenant_",
        description="Prefix prepended to the tenant id to form the database name",
        min_length=1,
        max_length=MAX_IDENTIFIER_LENGTH - MAX_TENANT_ID_LENGTH,
    )
    migrations_location: str = Field(
        default=_DEFAULT_MIGRATIONS_LOCATION,
        description="Alembic script directory for the tenant schema",
    )
    admin_seed_policy: AdminSeedPolicy = Field(
        default=AdminSeedPolicy.REQUIRED,
        description="Whether provisioning creates the first admin principal",
    )
    operation_timeout_seconds: float = Field(default=30.0, gt=0)
    migration_timeout_seconds: float = Field(default=300.0, gt=0)
    max_attempts: int = Field(default=3, ge=1, le=10)
    retry_backoff_seconds: float = Field(default=0.5, ge=0)
    tenant_pool_size: int = Field(default=5, ge=1, le=100)
    tenant_pool_timeout_seconds: float = Field(default=10.0, gt=0)
    max_cached_engines: int = Field(default=50, ge=1)

    @field_validator("database_prefix")
    @classmethod
    def validate_database_prefix(cls, value: str) -> str:
        """Prefix must itself be a plain lowercase SQL identifier fragment."""
        if not _PREFIX_PATTERN.match(value):
            raise ValueError(
                f"database_prefix must match {_PREFIX_PATTERN.pattern}, got '{value}'"
            )
        return value


class RoutingSettings(BaseSettings):
    """Request-to-tenant routing settings.

    Environment variables:
        TENANCY_ROUTING_BASE_DOMAIN: Apex domain under which tenants get
            subdomains (e.g. example.com). Unset means "first label of any
            multi-label host".
        TENANCY_ROUTING_RESERVED_LABELS: Labels never treated as tenant keys
    """

    model_config = SettingsConfigDict(
        env_prefix="TENANCY_ROUTING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_domain: str | None = Field(default=None, description="Apex domain")
    reserved_labels: list[str] = Field(
        default=["www", "api", "admin", "tenants", "health", "localhost"],
        description="Labels that never identify a tenant",
    )

    @field_validator("base_domain")
    @classmethod
    def normalize_base_domain(cls, value: str | None) -> str | None:
        """Lowercase and strip a leading dot."""
        if value is None:
            return None
        value = value.strip().lower().lstrip(".")
        return value or None

    @field_validator("reserved_labels")
    @classmethod
    def normalize_reserved_labels(cls, value: list[str]) -> list[str]:
        """Lowercase reserved labels."""
        return [label.strip().lower() for label in value if label.strip()]


class Settings(BaseSettings):
    """Main application settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="Tenancy API", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def database(self) -> DatabaseSettings:
        """Get database settings."""
        return get_database_settings()

    @property
    def provisioning(self) -> ProvisioningSettings:
        """Get provisioning settings."""
        return get_provisioning_settings()

    @property
    def routing(self) -> RoutingSettings:
        """Get routing settings."""
        return get_routing_settings()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """Get cached database settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return DatabaseSettings()


@lru_cache
def get_provisioning_settings() -> ProvisioningSettings:
    """Get cached provisioning settings."""
    return ProvisioningSettings()


@lru_cache
def get_routing_settings() -> RoutingSettings:
    """Get cached routing settings."""
    return RoutingSettings()
