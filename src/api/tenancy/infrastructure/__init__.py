"""Infrastructure adapters for the tenancy context (PostgreSQL, Alembic)."""
