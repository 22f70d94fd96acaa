"""Database infrastructure - shared connection primitives."""

from infrastructure.database.exceptions import (
    DatabaseConnectionError,
    DatabaseError,
)
from infrastructure.database.retry import is_transient_error, retry_transient

__all__ = [
    "DatabaseConnectionError",
    "DatabaseError",
    "is_transient_error",
    "retry_transient",
]
