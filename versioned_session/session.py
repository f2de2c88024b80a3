"""Session client for a SQL server with version-controlled tables.

A ``Session`` pins a single pooled connection for its whole lifetime. The
server tracks the checked-out branch per connection, so every statement issued
through one session (transactions included) sees the same branch and working
set.

Usage:
    async with connect_session(config) as session:
        await session.checkout_branch("feature", create_if_missing=True)
        await session.upsert_rows("employees", rows, conflict_keys=["id"])
        commit_hash = await session.commit("Tim <tim@example.com>", "Add employees")
"""

import logging
from contextlib import asynccontextmanager
from typing import (
    Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, Union
)

from sqlalchemy import desc, func, literal_column, text
from sqlalchemy.sql import Executable

from .core.abstractions import IDatabaseConnection, Statement
from .core.config import ConnectionConfig
from .core.exceptions import (
    BranchException,
    ConnectionException,
    QueryException,
    SchemaException,
    SessionClosedException,
    TransactionException,
)
from .core.types import (
    HEAD,
    WORKING,
    BranchInfo,
    CommitHash,
    CommitRecord,
    DiffEntry,
    MergeResult,
    StatusEntry,
    TransactionErrorPolicy,
)
from .infrastructure.database import DatabasePool
from .infrastructure.query_builder import (
    Conditions,
    QueryBuilder,
    build_delete_query,
    build_insert_query,
    build_procedure_call,
    build_update_query,
    build_upsert_query,
    table_clause,
    validate_identifier,
)

logger = logging.getLogger(__name__)

Work = Callable[["Session"], Awaitable[Any]]
SchemaDefinition = Union[str, Executable]

COMMIT_LOG_PAGE_SIZE = 50
ALLOW_COMMIT_CONFLICTS = "SET @@dolt_allow_commit_conflicts = 1"


class Session:
    """Version-control and relational operations over one pinned connection."""

    def __init__(
        self,
        connection: IDatabaseConnection,
        pool: Optional[DatabasePool] = None,
        transaction_error_policy: TransactionErrorPolicy = TransactionErrorPolicy.PROPAGATE,
    ):
        self._connection = connection
        self._pool = pool
        self.transaction_error_policy = transaction_error_policy
        self._closed = False

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedException()

    async def _call(self, procedure: str, *args: Any) -> List[Dict[str, Any]]:
        self._ensure_open()
        query, params = build_procedure_call(procedure, *args)
        return await self._connection.fetch(query, params)

    async def _branch_call(self, branch: str, procedure: str, *args: Any) -> List[Dict[str, Any]]:
        try:
            return await self._call(procedure, *args)
        except QueryException as e:
            raise BranchException(branch, e.message, {"procedure": procedure}) from e

    # Branches

    async def list_branches(self) -> List[BranchInfo]:
        """List every branch in the database."""
        self._ensure_open()
        branches = table_clause(
            "dolt_branches", ["name", "hash", "latest_committer", "latest_commit_message"]
        )
        query = (
            QueryBuilder()
            .select(branches.c.name, branches.c.hash, branches.c.latest_committer,
                    branches.c.latest_commit_message)
            .from_table(branches)
            .order_by(branches.c.name)
            .build()
        )
        rows = await self._connection.fetch(query)
        return [BranchInfo(**row) for row in rows]

    async def branch_exists(self, name: str) -> bool:
        self._ensure_open()
        branches = table_clause("dolt_branches", ["name"])
        query = (
            QueryBuilder()
            .select(func.count())
            .from_table(branches)
            .where(branches.c.name == name)
            .build()
        )
        count = await self._connection.fetchval(query)
        return bool(count)

    async def active_branch(self) -> str:
        """Name of the currently checked-out branch."""
        self._ensure_open()
        return await self._connection.fetchval("SELECT ACTIVE_BRANCH()")

    async def create_branch(self, name: str, start_point: Optional[str] = None) -> bool:
        """
        Create a branch without checking it out.

        Args:
            name: Branch to create
            start_point: Commit or branch to start from, the active head if omitted

        Returns:
            True if the branch was created, False if it already existed
        """
        # Check-then-act: two round trips, not atomic across sessions
        if await self.branch_exists(name):
            return False
        args = [name] if start_point is None else [name, start_point]
        await self._branch_call(name, "DOLT_BRANCH", *args)
        logger.info(f"Created branch: {name}")
        return True

    async def checkout_branch(self, name: str, create_if_missing: bool = False) -> None:
        """
        Switch the active branch.

        Args:
            name: Branch to check out
            create_if_missing: Create the branch from the active head when absent

        Raises:
            BranchException: If the branch is absent and may not be created
        """
        if await self.branch_exists(name):
            await self._branch_call(name, "DOLT_CHECKOUT", name)
            logger.info(f"Using branch: {name}")
            return

        if not create_if_missing:
            raise BranchException.not_found(name)

        await self._branch_call(name, "DOLT_CHECKOUT", "-b", name)
        logger.info(f"Using new branch: {name}")

    async def delete_branch(self, name: str, force: bool = True) -> None:
        """
        Delete a branch.

        Raises:
            BranchException: If the branch is checked out or does not exist
        """
        if name == await self.active_branch():
            raise BranchException.checked_out(name)
        if not await self.branch_exists(name):
            raise BranchException.not_found(name)

        await self._branch_call(name, "DOLT_BRANCH", "-D" if force else "-d", name)
        logger.info(f"Deleted branch: {name}")

    # Working set and history

    async def reset_hard(self, commit_ref: Optional[str] = None) -> None:
        """Discard uncommitted changes, moving to commit_ref or the branch head."""
        if commit_ref:
            await self._call("DOLT_RESET", "--hard", commit_ref)
            logger.info(f"Resetting to commit: {commit_ref}")
        else:
            await self._call("DOLT_RESET", "--hard")
            logger.info("Resetting to HEAD")

    async def head_hash(self, ref: str = HEAD) -> CommitHash:
        """Resolve a reference to its commit hash."""
        self._ensure_open()
        value = await self._connection.fetchval("SELECT HASHOF(:ref)", {"ref": ref})
        return CommitHash(value)

    async def commit(self, author: str, message: str) -> CommitHash:
        """
        Stage every change in the working set and commit it.

        When the working set matches the last commit nothing is created and the
        current head hash is returned, so the result is not always a new hash.

        Args:
            author: Author as "Name <email>"
            message: Commit message

        Returns:
            Hash of the new commit, or of the head when there was nothing to commit
        """
        if not await self.status():
            head = await self.head_hash()
            logger.info(f"Nothing to commit, head is {head}")
            return head

        try:
            rows = await self._call("DOLT_COMMIT", "--author", author, "-Am", message)
        except QueryException as e:
            if e.is_nothing_to_commit:
                return await self.head_hash()
            raise

        commit_hash = CommitHash(rows[0]["hash"])
        logger.info(f"Created commit: {commit_hash}")
        return commit_hash

    async def commit_log(
        self,
        limit: Optional[int] = None,
        page_size: int = COMMIT_LOG_PAGE_SIZE
    ) -> AsyncIterator[CommitRecord]:
        """Yield commits, most recent first, fetching one page at a time."""
        self._ensure_open()
        log = table_clause("dolt_log", ["commit_hash", "committer", "email", "date", "message"])
        yielded = 0
        page = 1

        while True:
            size = page_size if limit is None else min(page_size, limit - yielded)
            if size <= 0:
                return

            query = (
                QueryBuilder()
                .select(log.c.commit_hash, log.c.committer, log.c.email, log.c.date, log.c.message)
                .from_table(log)
                .order_by(desc(log.c.date), log.c.commit_hash)
                .limit(size)
                .offset((page - 1) * page_size)
                .build()
            )
            rows = await self._connection.fetch(query)
            for row in rows:
                yield CommitRecord(
                    hash=CommitHash(row["commit_hash"]),
                    author=row["committer"],
                    email=row.get("email"),
                    message=row["message"],
                    timestamp=row.get("date"),
                )
                yielded += 1

            if len(rows) < size:
                return
            page += 1

    async def status(self) -> List[StatusEntry]:
        """Tables whose working set differs from the last commit."""
        self._ensure_open()
        rows = await self._connection.fetch("SELECT table_name, staged, status FROM dolt_status")
        return [
            StatusEntry(table_name=row["table_name"], status=row["status"], staged=bool(row["staged"]))
            for row in rows
        ]

    async def diff(
        self,
        table: str,
        from_ref: Optional[str] = None,
        to_ref: str = WORKING
    ) -> List[DiffEntry]:
        """
        Row-level changes to a table.

        Args:
            table: Table to diff
            from_ref: Starting reference; None reads every history entry ending at to_ref
            to_ref: Ending reference, WORKING for uncommitted state

        Returns:
            One entry per added, modified or removed row
        """
        self._ensure_open()
        validate_identifier(table, "table")

        if from_ref is None:
            diff_table = table_clause(f"dolt_diff_{table}", ["to_commit"])
            query = (
                QueryBuilder()
                .select(literal_column("*"))
                .from_table(diff_table)
                .where(diff_table.c.to_commit == to_ref)
                .build()
            )
            rows = await self._connection.fetch(query)
        else:
            rows = await self._connection.fetch(
                "SELECT * FROM DOLT_DIFF(:from_ref, :to_ref, :table_name)",
                {"from_ref": from_ref, "to_ref": to_ref, "table_name": table}
            )
        return [DiffEntry.from_row(row) for row in rows]

    async def merge(
        self,
        source_branch: str,
        message: Optional[str] = None,
        no_ff: bool = False
    ) -> MergeResult:
        """
        Merge a branch into the active branch.

        Conflicts are reported in the result and left in the working set for
        the caller to resolve and commit. Statements outside a transaction are
        committed one by one, and the engine refuses to commit a working set
        holding conflicts unless @@dolt_allow_commit_conflicts is set, so it is
        set on the pinned connection before merging.
        """
        self._ensure_open()
        await self._connection.execute(ALLOW_COMMIT_CONFLICTS)

        args: List[str] = []
        if no_ff:
            args.append("--no-ff")
        if message:
            args.extend(["-m", message])
        args.append(source_branch)

        rows = await self._branch_call(source_branch, "DOLT_MERGE", *args)
        row = rows[0] if rows else {}
        merge_hash = row.get("hash")
        result = MergeResult(
            commit_hash=CommitHash(merge_hash) if merge_hash else None,
            fast_forward=bool(row.get("fast_forward", 0)),
            conflict_count=int(row.get("conflicts") or 0),
            message=row.get("message"),
        )

        logger.info(
            f"Merge complete for {source_branch}: commit {result.commit_hash}, "
            f"fast forward {result.fast_forward}, conflicts {result.conflict_count}"
        )
        if result.has_conflicts:
            logger.warning(f"Merge of {source_branch} left {result.conflict_count} conflicts to resolve")
        return result

    # Schema and rows

    async def apply_schema(self, definitions: Union[SchemaDefinition, Sequence[SchemaDefinition]]) -> None:
        """Apply DDL statements as one unit; nothing is kept if any of them fails."""
        self._ensure_open()
        if isinstance(definitions, (str, Executable)):
            definitions = [definitions]

        if self._connection.in_transaction:
            await self._apply_definitions(definitions)
            return

        async with self._connection.transaction():
            await self._apply_definitions(definitions)

    async def _apply_definitions(self, definitions: Sequence[SchemaDefinition]) -> None:
        for definition in definitions:
            try:
                await self._connection.execute(definition)
            except QueryException as e:
                logger.error(f"Schema change failed: {e.message}")
                raise SchemaException(f"Failed to apply schema: {e.message}", statement=e.statement) from e

    async def list_tables(self) -> List[str]:
        self._ensure_open()
        rows = await self._connection.fetch("SHOW TABLES")
        return [next(iter(row.values())) for row in rows]

    async def column_names(self, table: str) -> List[str]:
        """Columns of a table in definition order."""
        self._ensure_open()
        validate_identifier(table, "table")
        rows = await self._connection.fetch(
            "SELECT column_name AS name FROM information_schema.columns "
            "WHERE table_schema = DATABASE() AND table_name = :table_name "
            "ORDER BY ordinal_position",
            {"table_name": table}
        )
        return [row["name"] for row in rows]

    async def drop_table(self, table: str, if_exists: bool = False) -> None:
        self._ensure_open()
        validate_identifier(table, "table")
        clause = "IF EXISTS " if if_exists else ""
        try:
            await self._connection.execute(text(f"DROP TABLE {clause}`{table}`"))
        except QueryException as e:
            raise SchemaException(f"Failed to drop table {table}: {e.message}", statement=e.statement) from e
        logger.info(f"Dropped table: {table}")

    async def insert_rows(self, table: str, rows: Sequence[Dict[str, Any]]) -> int:
        """Insert rows, failing on key conflicts."""
        self._ensure_open()
        if not rows:
            return 0
        return await self._connection.execute(build_insert_query(table, rows))

    async def upsert_rows(
        self,
        table: str,
        rows: Sequence[Dict[str, Any]],
        conflict_keys: Sequence[str]
    ) -> int:
        """Insert rows, overwriting the non-key columns of rows whose key already exists."""
        self._ensure_open()
        if not rows:
            return 0
        affected = await self._connection.execute(build_upsert_query(table, rows, conflict_keys))
        logger.debug(f"Upserted {len(rows)} rows into {table}")
        return affected

    async def update_rows(self, table: str, values: Dict[str, Any], where: Conditions) -> int:
        self._ensure_open()
        return await self._connection.execute(build_update_query(table, values, where))

    async def delete_rows(self, table: str, where: Conditions) -> int:
        self._ensure_open()
        return await self._connection.execute(build_delete_query(table, where))

    async def fetch(self, statement: Statement, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run an arbitrary query on the active branch."""
        self._ensure_open()
        return await self._connection.fetch(statement, params)

    # Transactions

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["Session"]:
        """SQL transaction on the pinned connection; rolls back on any error."""
        self._ensure_open()
        async with self._connection.transaction():
            yield self

    async def with_transaction(self, work: Work) -> Any:
        """
        Run work inside one SQL transaction.

        The transaction commits when work returns and rolls back when it raises.
        A failure is logged and then either re-raised as TransactionException or
        suppressed, depending on transaction_error_policy.

        Args:
            work: Coroutine function receiving this session

        Returns:
            Whatever work returned, or None when a failure was suppressed
        """
        self._ensure_open()
        if self._connection.in_transaction:
            raise TransactionException("Nested transactions are not supported")

        try:
            async with self.transaction():
                return await work(self)
        except Exception as e:
            logger.error(f"Transaction rolled back: {e}", exc_info=True)
            if self.transaction_error_policy == TransactionErrorPolicy.SUPPRESS:
                return None
            raise TransactionException(
                f"Transaction rolled back: {e}",
                details={"error_type": type(e).__name__}
            ) from e

    async def close(self) -> None:
        """Release the connection and the pool. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._connection.close()
        finally:
            if self._pool is not None:
                await self._pool.close()
        logger.debug("Session closed")


async def connect(
    config: ConnectionConfig,
    transaction_error_policy: TransactionErrorPolicy = TransactionErrorPolicy.PROPAGATE,
    pool: Optional[DatabasePool] = None,
) -> Session:
    """
    Open a session.

    Args:
        config: Connection configuration
        transaction_error_policy: Behaviour of with_transaction after a rollback
        pool: Shared pool; when omitted the session creates and owns one

    Raises:
        ConnectionException: If the handshake or authentication fails
    """
    owns_pool = pool is None
    if pool is None:
        pool = DatabasePool(config)
    try:
        pool.initialize()
        connection = await pool.acquire()
    except ConnectionException as e:
        logger.error(f"Connection failed: {e.message}")
        if owns_pool:
            await pool.close()
        raise

    logger.info(f"Connected to {config.host}:{config.port}/{config.database}")
    return Session(
        connection,
        pool=pool if owns_pool else None,
        transaction_error_policy=transaction_error_policy,
    )


@asynccontextmanager
async def connect_session(
    config: ConnectionConfig,
    transaction_error_policy: TransactionErrorPolicy = TransactionErrorPolicy.PROPAGATE,
    pool: Optional[DatabasePool] = None,
) -> AsyncIterator[Session]:
    """Open a session and close it on exit."""
    session = await connect(config, transaction_error_policy, pool)
    try:
        yield session
    finally:
        await session.close()
