"""
Custom Exceptions for Re-Token

Provides specific exception types for different failure modes.
"""


class RetokenError(Exception):
    """Base exception for all Re-Token errors."""
    pass


class InvalidPositionRequest(RetokenError):
    """
    Raised when a create request fails validation.

    Occurs for a non-positive amount or a risk threshold outside
    the configured range. Never reaches the store.
    """
    pass


class PositionNotFound(RetokenError):
    """Raised when a position id is not present in the store."""
    pass


class PositionExited(RetokenError):
    """Raised when an operation requires a live position but it has already exited."""
    pass


class InvalidConfiguration(RetokenError):
    """Raised when configuration is invalid or missing required values."""
    pass


class DatabaseError(RetokenError):
    """Raised when snapshot storage operations fail."""
    pass


class EngineStateError(RetokenError):
    """Raised when the simulation engine is started twice."""
    pass
