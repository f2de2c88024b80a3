"""Unit tests for branch operations."""

import pytest

from versioned_session.core.exceptions import BranchException, QueryException

from ..helpers import bound_values, statements


class FakeBranches:
    """Branch bookkeeping standing in for the server."""

    def __init__(self, *names, active="main"):
        self.names = set(names) | {active}
        self.active = active
        self.created = []
        self.deleted = []

    def install(self, conn):
        conn.fetchval_routes.add("ACTIVE_BRANCH()", lambda statement, params: self.active)
        conn.fetchval_routes.add("dolt_branches", self.count)
        conn.fetch_routes.add("DOLT_CHECKOUT", self.checkout)
        conn.fetch_routes.add("DOLT_BRANCH", self.branch)
        return self

    def count(self, statement, params):
        return int(bound_values(statement)[0] in self.names)

    def checkout(self, statement, params):
        args = list(params.values())
        if args[0] == "-b":
            if args[1] in self.names:
                raise QueryException(f"fatal: A branch named '{args[1]}' already exists.")
            self.names.add(args[1])
            self.created.append(args[1])
            self.active = args[1]
        elif args[0] in self.names:
            self.active = args[0]
        else:
            raise QueryException(f"branch not found: {args[0]}")
        return [{"status": 0, "message": f"Switched to branch '{self.active}'"}]

    def branch(self, statement, params):
        args = list(params.values())
        if args[0] in ("-D", "-d"):
            self.names.discard(args[1])
            self.deleted.append(args[1])
        else:
            self.names.add(args[0])
            self.created.append(args[0])
        return [{"status": 0}]


@pytest.fixture
def branches(connection):
    return FakeBranches("changes").install(connection)


@pytest.mark.asyncio
async def test_checkout_existing_branch(session, connection, branches):
    """Test switching to a branch that exists."""
    await session.checkout_branch("changes")

    assert branches.active == "changes"
    assert branches.created == []
    assert "CALL DOLT_CHECKOUT(:param_0)" in statements(connection)
    assert await session.active_branch() == "changes"


@pytest.mark.asyncio
async def test_checkout_missing_branch_without_create(session, branches):
    """Test that a missing branch is reported rather than created."""
    with pytest.raises(BranchException) as exc_info:
        await session.checkout_branch("modify_data")

    assert exc_info.value.branch == "modify_data"
    assert exc_info.value.details["reason"] == "not_found"
    assert branches.active == "main"


@pytest.mark.asyncio
async def test_checkout_create_if_missing_twice_creates_once(session, connection, branches):
    """Test that repeated create-if-missing checkouts create exactly one branch."""
    await session.checkout_branch("modify_data", create_if_missing=True)
    await session.checkout_branch("main")
    await session.checkout_branch("modify_data", create_if_missing=True)

    assert branches.created == ["modify_data"]
    assert branches.active == "modify_data"

    sql = statements(connection)
    assert sql.count("CALL DOLT_CHECKOUT(:param_0, :param_1)") == 1
    # Existence is checked before every checkout
    assert sum("dolt_branches" in s for s in sql) == 3


@pytest.mark.asyncio
async def test_checkout_engine_error_becomes_branch_exception(session, connection, branches):
    """Test that engine failures during checkout surface as branch errors."""
    connection.fetch_routes.prepend(
        "DOLT_CHECKOUT", QueryException("cannot switch branches with uncommitted changes")
    )

    with pytest.raises(BranchException, match="uncommitted changes") as exc_info:
        await session.checkout_branch("changes")

    assert isinstance(exc_info.value.__cause__, QueryException)


@pytest.mark.asyncio
async def test_delete_branch(session, connection, branches):
    """Test deleting a branch that is not checked out."""
    await session.delete_branch("changes")

    assert branches.deleted == ["changes"]
    assert "changes" not in branches.names
    procedure_calls = [s for s in statements(connection) if s.startswith("CALL")]
    assert procedure_calls == ["CALL DOLT_BRANCH(:param_0, :param_1)"]
    assert connection.fetch.call_args.args[1] == {"param_0": "-D", "param_1": "changes"}


@pytest.mark.asyncio
async def test_delete_branch_without_force(session, connection, branches):
    await session.delete_branch("changes", force=False)
    assert connection.fetch.call_args.args[1] == {"param_0": "-d", "param_1": "changes"}


@pytest.mark.asyncio
async def test_delete_active_branch_fails(session, branches):
    """Test that the checked-out branch cannot be deleted."""
    with pytest.raises(BranchException) as exc_info:
        await session.delete_branch("main")

    assert exc_info.value.details["reason"] == "checked_out"
    assert branches.deleted == []


@pytest.mark.asyncio
async def test_delete_missing_branch_fails(session, branches):
    """Test that deleting a missing branch is not a silent no-op."""
    with pytest.raises(BranchException) as exc_info:
        await session.delete_branch("modify_schema")

    assert exc_info.value.details["reason"] == "not_found"
    assert branches.deleted == []


@pytest.mark.asyncio
async def test_create_branch_checks_existence(session, branches):
    assert await session.create_branch("feature") is True
    assert await session.create_branch("feature") is False
    assert branches.created == ["feature"]
    assert branches.active == "main"


@pytest.mark.asyncio
async def test_list_branches(session, connection):
    connection.fetch_routes.add("dolt_branches", [
        {"name": "changes", "hash": "a" * 32, "latest_committer": "Tim", "latest_commit_message": "Inserted data"},
        {"name": "main", "hash": "b" * 32, "latest_committer": "Dolt", "latest_commit_message": "Initialize"},
    ])

    result = await session.list_branches()

    assert [b.name for b in result] == ["changes", "main"]
    assert result[0].latest_committer == "Tim"
    assert "ORDER BY dolt_branches.name" in statements(connection, "fetch")[0]
