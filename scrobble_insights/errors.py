"""Exception types raised by the analytics engine"""
from typing import Any, Dict, Optional


class ScrobbleInsightsError(Exception):
    """Base exception with context."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


class ConfigurationError(ScrobbleInsightsError):
    """Raised when analysis configuration is invalid. Always raised before any query."""
    pass


class QueryError(ScrobbleInsightsError):
    """A Store failure, tagged with the name of the operation that failed."""

    def __init__(self, operation: str, cause: Exception):
        super().__init__(f"{operation}: {cause}", context={'operation': operation})
        self.operation = operation
        self.cause = cause


class AnalysisError(ScrobbleInsightsError):
    """Raised when an analyzer cannot produce a result."""
    pass
