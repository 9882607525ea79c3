"""Database exceptions."""

class DatabaseError(Exception):
    """Base exception for database errors."""
    pass

class DatabaseSchemaError(DatabaseError):
    """Raised when the schema cannot be loaded, validated or applied."""
    pass

__all__ = ['DatabaseError', 'DatabaseSchemaError']
