"""Custom exceptions for the archgraph service."""


class MCPToolError(Exception):
    """Custom exception for MCP tool errors that should be returned as JSON-RPC errors."""

    def __init__(self, message: str, code: int = -32000):
        self.message = message
        self.code = code
        super().__init__(message)


# ========================================
# Base Exceptions
# ========================================


class ArchGraphError(Exception):
    """Base exception for all archgraph errors."""


# ========================================
# Database Exceptions
# ========================================


class DatabaseError(ArchGraphError):
    """Base exception for database-related errors."""


class ConnectionError(DatabaseError):
    """Database connection failed."""


class QueryError(DatabaseError):
    """Database query execution failed."""


# ========================================
# Network Exceptions
# ========================================


class NetworkError(ArchGraphError):
    """Base exception for network-related errors."""


class FetchError(NetworkError):
    """Upstream HTTP call failed."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Transport failures and upstream 5xx responses are worth retrying."""
        return self.status_code is None or self.status_code >= 500


class AuthenticationError(NetworkError):
    """Upstream rejected the credentials (401/403)."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


# ========================================
# Validation Exceptions
# ========================================


class ValidationError(ArchGraphError):
    """Base exception for validation errors."""


class ConfigurationError(ValidationError):
    """Configuration validation failed."""


class InputValidationError(ValidationError):
    """Input parameter validation failed."""


# ========================================
# Graph Exceptions
# ========================================


class GraphError(ArchGraphError):
    """Base exception for graph load and query operations."""


class RepositoryError(GraphError):
    """Repository operation failed."""


class RepositoryNotFoundError(RepositoryError):
    """Repository does not exist upstream."""


class LoadError(GraphError):
    """A load phase failed; batches committed before the failure stay committed."""

    def __init__(self, message: str, phase: str, batch: int | None = None):
        self.phase = phase
        self.batch = batch
        super().__init__(message)
