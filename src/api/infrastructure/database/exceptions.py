"""Database-specific exceptions shared by bounded contexts."""


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when a connection cannot be obtained after bounded retries."""

    def __init__(self, message: str, database: str | None = None):
        super().__init__(message)
        self.database = database
