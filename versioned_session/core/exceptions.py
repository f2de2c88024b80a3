"""Exception hierarchy for consistent error handling."""

from typing import Any, Optional, Dict


class DomainException(Exception):
    """Base exception for all session errors."""
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize domain exception.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for logging and reporting."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details
        }


class ConnectionException(DomainException):
    """Raised when the network or authentication handshake fails."""
    error_code = "CONNECTION_FAILED"

    def __init__(self, host: str, port: int, reason: str):
        super().__init__(
            f"Could not connect to {host}:{port}: {reason}",
            details={"host": host, "port": port, "reason": reason}
        )
        self.host = host
        self.port = port


class BranchException(DomainException):
    """Raised when a branch cannot be checked out, created or deleted."""
    error_code = "BRANCH_ERROR"

    def __init__(self, branch: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details={"branch": branch, **(details or {})})
        self.branch = branch

    @classmethod
    def not_found(cls, branch: str) -> "BranchException":
        return cls(branch, f"Branch '{branch}' not found", {"reason": "not_found"})

    @classmethod
    def checked_out(cls, branch: str) -> "BranchException":
        return cls(
            branch,
            f"Cannot delete branch '{branch}' while it is checked out",
            {"reason": "checked_out"}
        )


class SchemaException(DomainException):
    """Raised when a schema definition fails to apply."""
    error_code = "SCHEMA_ERROR"

    def __init__(self, message: str, statement: Optional[str] = None):
        super().__init__(message, details={"statement": statement} if statement else None)
        self.statement = statement


class TransactionException(DomainException):
    """Raised when a unit of work fails and its transaction is rolled back."""
    error_code = "TRANSACTION_ERROR"


class QueryException(DomainException):
    """Raised when the engine rejects a statement."""
    error_code = "QUERY_ERROR"

    def __init__(self, message: str, statement: Optional[str] = None, params: Optional[Dict[str, Any]] = None):
        super().__init__(message, details={"statement": statement, "params": params or {}})
        self.statement = statement
        self.params = params or {}

    @property
    def is_nothing_to_commit(self) -> bool:
        return "nothing to commit" in self.message.lower()


class ValidationException(DomainException):
    """Raised when caller input is rejected before reaching the engine."""
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, details={"field": field} if field else None)
        self.field = field


class SessionClosedException(DomainException):
    """Raised when a closed session is used."""
    error_code = "SESSION_CLOSED"

    def __init__(self):
        super().__init__("Session is closed")
