"""Integration test fixtures for database tests.

These fixtures require a running PostgreSQL instance whose user may
create databases. Use docker-compose for testing; tests are skipped when
the cluster cannot be reached.
"""

import os

import psycopg2
import pytest
from pydantic import SecretStr

from infrastructure.settings import DatabaseSettings


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires database)",
    )


@pytest.fixture(scope="session")
def integration_db_settings() -> DatabaseSettings:
    """Database settings for integration tests.

    Override with environment variables:
        TENANCY_DB_HOST, TENANCY_DB_PORT, etc.
    """
    return DatabaseSettings(
        host=os.getenv("TENANCY_DB_HOST", "localhost"),
        port=int(os.getenv("TENANCY_DB_PORT", "5432")),
        database=os.getenv("TENANCY_DB_DATABASE", "tenancy"),
        username=os.getenv("TENANCY_DB_USERNAME", "tenancy"),
        password=SecretStr(os.getenv("TENANCY_DB_PASSWORD", "tenancy_dev_password")),
    )


@pytest.fixture(scope="session")
def require_database(integration_db_settings: DatabaseSettings) -> DatabaseSettings:
    """Skip the test unless the central database accepts connections."""
    try:
        conn = psycopg2.connect(
            host=integration_db_settings.host,
            port=integration_db_settings.port,
            dbname=integration_db_settings.database,
            user=integration_db_settings.username,
            password=integration_db_settings.password.get_secret_value(),
            connect_timeout=3,
        )
    except psycopg2.OperationalError as e:
        pytest.skip(f"PostgreSQL not reachable: {e}")
    conn.close()
    return integration_db_settings
