"""Tables used by the walkthrough."""

from typing import List

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table
from sqlalchemy.schema import CreateTable

metadata = MetaData()

employees = Table(
    "employees",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("last_name", String(255)),
    Column("first_name", String(255)),
)

teams = Table(
    "teams",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("name", String(255)),
)

employee_teams = Table(
    "employee_teams",
    metadata,
    Column("employee_id", Integer, ForeignKey("employees.id"), primary_key=True, autoincrement=False),
    Column("team_id", Integer, ForeignKey("teams.id"), primary_key=True, autoincrement=False),
)

ADD_START_DATE = "ALTER TABLE employees ADD COLUMN start_date DATE"


def create_statements() -> List[CreateTable]:
    """CREATE TABLE statements in dependency order."""
    return [CreateTable(table, if_not_exists=True) for table in metadata.sorted_tables]
