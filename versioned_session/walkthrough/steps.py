"""The walkthrough: branch, commit, diff, reset and merge on a small team database.

Every step awaits the previous one, and the first exception stops the run so
later steps never act on a half-built state.
"""

import logging

from ..core.types import WORKING
from ..session import Session
from .data import insert_data, modify_data, modify_schema, team_summary
from .reporting import Reporter
from .schema import create_statements

logger = logging.getLogger(__name__)

MAIN_BRANCH = "main"
WORK_BRANCH = "changes"
DATA_BRANCH = "modify_data"
SCHEMA_BRANCH = "modify_schema"
DEMO_BRANCHES = (WORK_BRANCH, DATA_BRANCH, SCHEMA_BRANCH)


class Walkthrough:
    """Runs the demonstration against one session."""

    def __init__(self, session: Session, reporter: Reporter):
        self.session = session
        self.reporter = reporter

    async def show_active_branch(self) -> None:
        self.reporter.active_branch(await self.session.active_branch())

    async def show_tables(self) -> None:
        self.reporter.tables(await self.session.list_tables())

    async def show_commit_log(self) -> None:
        self.reporter.commit_log([record async for record in self.session.commit_log()])

    async def show_status(self) -> None:
        self.reporter.status(await self.session.status())

    async def show_diff(self, table: str) -> None:
        self.reporter.diff(table, await self.session.diff(table, to_ref=WORKING))

    async def show_summary(self) -> None:
        self.reporter.summary(await team_summary(self.session))

    async def commit(self, author: str, message: str) -> None:
        self.reporter.commit(await self.session.commit(author, message))

    async def merge(self, branch: str) -> None:
        self.reporter.merge(branch, await self.session.merge(branch))

    async def reset_database(self) -> None:
        """Remove the branches a previous run left behind."""
        for branch in DEMO_BRANCHES:
            if await self.session.branch_exists(branch):
                await self.session.delete_branch(branch)

    async def run(self) -> None:
        session = self.session

        await session.checkout_branch(MAIN_BRANCH)
        await self.show_active_branch()

        # Start fresh so the walkthrough can be re-run
        await self.reset_database()
        await session.checkout_branch(WORK_BRANCH, create_if_missing=True)

        await session.apply_schema(create_statements())
        await self.show_tables()

        # Commits the first time; afterwards there is nothing to commit
        await self.commit("Taylor <taylor@dolthub.com>", "Created tables")
        await self.show_commit_log()

        await insert_data(session)
        await self.show_summary()
        await self.show_status()
        await self.show_diff("employees")
        await self.commit("Tim <tim@dolthub.com>", "Inserted data into tables")
        await self.show_commit_log()

        # Drop a table, then bring it back with a hard reset
        await session.drop_table("employee_teams")
        await self.show_status()
        await self.show_tables()
        await session.reset_hard()
        await self.show_status()
        await self.show_tables()

        await session.checkout_branch(DATA_BRANCH, create_if_missing=True)
        await session.with_transaction(modify_data)
        await self.show_status()
        await self.show_diff("employees")
        await self.show_diff("employee_teams")
        await self.show_summary()
        await self.commit("Brian <brian@dolthub.com>", "Modified data on branch")
        await self.show_commit_log()

        # Branch from the same base so both branches share a merge base
        await session.checkout_branch(WORK_BRANCH)
        await session.checkout_branch(SCHEMA_BRANCH, create_if_missing=True)
        await self.show_active_branch()
        await session.with_transaction(modify_schema)
        await self.show_status()
        await self.show_diff("employees")
        await self.show_summary()
        await self.commit("Taylor <taylor@dolthub.com>", "Modified schema on branch")
        await self.show_commit_log()

        await session.checkout_branch(WORK_BRANCH)
        await self.show_active_branch()
        await self.show_commit_log()
        await self.show_summary()
        for branch in (DATA_BRANCH, SCHEMA_BRANCH):
            await self.merge(branch)
            await self.show_summary()
            await self.show_commit_log()

        logger.info("Walkthrough complete")


async def run_walkthrough(session: Session, reporter: Reporter) -> None:
    await Walkthrough(session, reporter).run()
