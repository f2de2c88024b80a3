"""Rows and units of work applied during the walkthrough."""

from datetime import date
from typing import Any, Dict, List

from ..infrastructure.query_builder import QueryBuilder, table_clause
from ..session import Session
from .schema import ADD_START_DATE

EMPLOYEES: List[Dict[str, Any]] = [
    {"id": 0, "last_name": "Sehn", "first_name": "Tim"},
    {"id": 1, "last_name": "Hendriks", "first_name": "Brian"},
    {"id": 2, "last_name": "Son", "first_name": "Aaron"},
    {"id": 3, "last_name": "Fitzgerald", "first_name": "Brian"},
]

TEAMS: List[Dict[str, Any]] = [
    {"id": 0, "name": "Engineering"},
    {"id": 1, "name": "Sales"},
]

EMPLOYEE_TEAMS: List[Dict[str, Any]] = [
    {"employee_id": 0, "team_id": 0},
    {"employee_id": 1, "team_id": 0},
    {"employee_id": 2, "team_id": 0},
    {"employee_id": 0, "team_id": 1},
    {"employee_id": 3, "team_id": 1},
]

NEW_EMPLOYEE = {"id": 4, "last_name": "Bantle", "first_name": "Taylor"}

STALE_MEMBERSHIP_FILTER = [("employee_id", 0), ("employee_id", 1)]

START_DATES = {
    0: date(2018, 8, 6),
    1: date(2018, 8, 6),
    2: date(2018, 8, 6),
    3: date(2021, 4, 19),
}


async def insert_data(session: Session) -> None:
    """Load the starting rows, overwriting any that already exist."""
    await session.upsert_rows("employees", EMPLOYEES, conflict_keys=["id"])
    await session.upsert_rows("teams", TEAMS, conflict_keys=["id"])
    await session.upsert_rows("employee_teams", EMPLOYEE_TEAMS, conflict_keys=["employee_id", "team_id"])


async def modify_data(session: Session) -> None:
    """Rename Tim and hire Taylor onto Engineering.

    The membership delete asks for employee 0 and employee 1 at once, so it
    matches no row and every existing membership survives.
    """
    await session.update_rows("employees", {"first_name": "Timothy"}, {"first_name": "Tim"})
    await session.insert_rows("employees", [NEW_EMPLOYEE])
    await session.insert_rows("employee_teams", [{"employee_id": NEW_EMPLOYEE["id"], "team_id": 0}])
    await session.delete_rows("employee_teams", STALE_MEMBERSHIP_FILTER)


async def modify_schema(session: Session) -> None:
    """Add a start_date column and fill it in for every employee."""
    await session.apply_schema(ADD_START_DATE)
    for employee_id, start_date in START_DATES.items():
        await session.update_rows("employees", {"start_date": start_date}, {"id": employee_id})


async def team_summary(session: Session) -> List[Dict[str, Any]]:
    """Every employee on every team, joined across the three tables."""
    # Read the columns live since branches disagree on the employees schema
    columns = [c for c in await session.column_names("employees") if c != "id"]

    employees = table_clause("employees", ["id", *columns])
    memberships = table_clause("employee_teams", ["employee_id", "team_id"])
    teams = table_clause("teams", ["id", "name"])

    query = (
        QueryBuilder()
        .select(teams.c.name.label("team_name"), *(employees.c[c] for c in columns))
        .from_table(employees)
        .join(memberships, employees.c.id == memberships.c.employee_id)
        .join(teams, teams.c.id == memberships.c.team_id)
        .order_by(teams.c.name, employees.c.id)
        .build()
    )
    return await session.fetch(query)
