"""Async client for SQL databases with version-controlled tables."""

from .core.config import ConnectionConfig, Settings, TlsConfig, get_settings
from .core.exceptions import (
    BranchException,
    ConnectionException,
    DomainException,
    QueryException,
    SchemaException,
    SessionClosedException,
    TransactionException,
    ValidationException,
)
from .core.types import (
    HEAD,
    STAGED,
    WORKING,
    BranchInfo,
    CommitHash,
    CommitRecord,
    DiffEntry,
    DiffType,
    MergeResult,
    StatusEntry,
    TlsMode,
    TransactionErrorPolicy,
)
from .infrastructure.database import DatabasePool
from .session import Session, connect, connect_session

__version__ = "0.1.0"

__all__ = [
    "connect",
    "connect_session",
    "Session",
    "DatabasePool",
    "ConnectionConfig",
    "TlsConfig",
    "Settings",
    "get_settings",
    "DomainException",
    "ConnectionException",
    "BranchException",
    "SchemaException",
    "TransactionException",
    "QueryException",
    "ValidationException",
    "SessionClosedException",
    "HEAD",
    "STAGED",
    "WORKING",
    "BranchInfo",
    "CommitHash",
    "CommitRecord",
    "DiffEntry",
    "DiffType",
    "MergeResult",
    "StatusEntry",
    "TlsMode",
    "TransactionErrorPolicy",
]
