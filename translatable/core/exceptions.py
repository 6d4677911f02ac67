# File: translatable/core/exceptions.py

from datetime import datetime
from typing import Any, Dict, List, Optional


class TranslatableException(Exception):
    """Base exception for all translatable table errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize a translatable exception.

        Args:
            message: Human-readable error message
            code: Optional machine-processable error code
            details: Additional error details
        """
        self.message = message
        self.code = code or "GENERIC_ERROR"
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for API responses and CLI output.

        Returns:
            Dictionary representation of the exception
        """
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "timestamp": datetime.now().isoformat(),
        }


# Validation exceptions
class ValidationException(TranslatableException):
    """Raised when input validation fails."""

    def __init__(
        self, message: str, validation_errors: Optional[Dict[str, List[str]]] = None
    ):
        super().__init__(
            message, "VALIDATION_001", {"validation_errors": validation_errors or {}}
        )


# Schema-related exceptions
class SchemaException(TranslatableException):
    """Base exception for schema definition and migration errors."""

    CODE_PREFIX = "SCHEMA_"


class SchemaInferenceException(SchemaException):
    """Raised when a table name cannot be derived from a migration name."""

    def __init__(self, migration_name: str):
        super().__init__(
            f"Could not determine table name from '{migration_name}'. "
            f"Use --table or --create option.",
            f"{self.CODE_PREFIX}001",
            {"migration_name": migration_name},
        )


class StructuralConflictException(SchemaException):
    """Raised when the database rejects a structural change (table or column clash)."""

    def __init__(self, table: str, message: str, original: Optional[Exception] = None):
        super().__init__(
            f"Schema change on '{table}' failed: {message}",
            f"{self.CODE_PREFIX}002",
            {"table": table, "original_error": str(original) if original else None},
        )
        self.original = original


class MigrationException(TranslatableException):
    """Raised when a migration script cannot be loaded or fails."""

    CODE_PREFIX = "MIGRATION_"

    def __init__(self, migration: str, message: str):
        super().__init__(
            f"Migration '{migration}' failed: {message}",
            f"{self.CODE_PREFIX}001",
            {"migration": migration},
        )


# Database exceptions
class DatabaseException(TranslatableException):
    """
    Exception raised for database-related errors.
    """

    CODE_PREFIX = "DATABASE_"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        code = error_code or f"{self.CODE_PREFIX}001"
        super().__init__(message, code, details or {})


class TranslationWriteException(DatabaseException):
    """Raised when a translation row could not be written for an entity and locale."""

    def __init__(self, table: str, entity_id: Any, locale: str, message: str):
        super().__init__(
            f"Failed to write translation {table}#{entity_id} [{locale}]: {message}",
            "TRANSLATION_001",
            {"table": table, "entity_id": entity_id, "locale": locale},
        )
