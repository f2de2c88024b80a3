"""Value objects and records for versioned tables."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


# Sentinel references understood by the engine
WORKING = "WORKING"
STAGED = "STAGED"
HEAD = "HEAD"

_COMMIT_HASH_RE = re.compile(r"^[0-9a-v]{32}$")


@dataclass(frozen=True)
class ValueObject:
    """Base class for value objects."""

    def __eq__(self, other):
        if not isinstance(other, self.__class__):
            return False
        return self.__dict__ == other.__dict__

    def __hash__(self):
        return hash(tuple(sorted(self.__dict__.items())))


@dataclass(frozen=True, eq=False)
class CommitHash(ValueObject):
    """Value object for a commit hash (32 characters of base32)."""
    value: str

    def __post_init__(self):
        if not self.value or len(self.value) != 32:
            raise ValueError("Commit hash must be a 32-character hash")
        if not _COMMIT_HASH_RE.match(self.value.lower()):
            raise ValueError("Commit hash must only contain characters 0-9 and a-v")

    @property
    def short(self) -> str:
        return self.value[:8]

    def __str__(self) -> str:
        return self.value


class TlsMode(str, Enum):
    """How the client establishes trust with the server."""
    NONE = "none"
    DISABLED = "disabled"
    CA_FILE = "ca-file"
    PLATFORM_DEFAULT = "platform-default"


class TransactionErrorPolicy(str, Enum):
    """What with_transaction does after rolling back a failed unit of work."""
    PROPAGATE = "propagate"
    SUPPRESS = "suppress"


class DiffType(str, Enum):
    """Row change kinds reported by diff tables."""
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass
class BranchInfo:
    """A row of the branch listing."""
    name: str
    hash: Optional[str] = None
    latest_committer: Optional[str] = None
    latest_commit_message: Optional[str] = None


@dataclass
class CommitRecord:
    """A row of the commit log."""
    hash: CommitHash
    author: str
    message: str
    email: Optional[str] = None
    timestamp: Optional[datetime] = None

    def __str__(self) -> str:
        return f"{self.hash}: {self.message} by {self.author}"


@dataclass
class StatusEntry:
    """A table whose working set differs from the last commit."""
    table_name: str
    status: str
    staged: bool = False

    def __str__(self) -> str:
        return f"{self.table_name}: {self.status}"


@dataclass
class DiffEntry:
    """One changed row between two references."""
    diff_type: DiffType
    from_commit: Optional[str] = None
    to_commit: Optional[str] = None
    from_values: Dict[str, Any] = field(default_factory=dict)
    to_values: Dict[str, Any] = field(default_factory=dict)

    @property
    def row(self) -> Dict[str, Any]:
        """The row as it exists after the change, or before it for removals."""
        if self.diff_type == DiffType.REMOVED:
            return self.from_values
        return self.to_values

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DiffEntry":
        """Split a diff table row into its from_ and to_ sides."""
        from_values: Dict[str, Any] = {}
        to_values: Dict[str, Any] = {}
        for key, value in row.items():
            if key in ("from_commit", "to_commit", "from_commit_date", "to_commit_date", "diff_type"):
                continue
            if key.startswith("from_"):
                from_values[key[len("from_"):]] = value
            elif key.startswith("to_"):
                to_values[key[len("to_"):]] = value

        return cls(
            diff_type=DiffType(row["diff_type"]),
            from_commit=row.get("from_commit"),
            to_commit=row.get("to_commit"),
            from_values=from_values,
            to_values=to_values,
        )


@dataclass
class MergeResult:
    """Outcome of merging a branch into the active branch."""
    commit_hash: Optional[CommitHash]
    fast_forward: bool
    conflict_count: int
    message: Optional[str] = None

    @property
    def has_conflicts(self) -> bool:
        return self.conflict_count > 0
