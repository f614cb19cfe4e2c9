"""Custom exceptions for the application."""

from __future__ import annotations


class SchemaValidationError(Exception):
    """Raised when an edit or payload would break a schema invariant."""

    pass


class InvalidSchemaError(SchemaValidationError):
    """Raised when imported schema data is unparsable or inconsistent."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.details = details or {}
