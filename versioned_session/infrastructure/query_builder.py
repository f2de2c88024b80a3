import re
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from sqlalchemy import and_, column, delete, insert, literal_column, select, table, update
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.sql import Select
from sqlalchemy.sql.expression import TableClause

from ..core.exceptions import ValidationException

Conditions = Union[Dict[str, Any], Sequence[Tuple[str, Any]]]

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")


def validate_identifier(name: str, kind: str = "identifier") -> str:
    """Reject names that cannot be used as a bare table or column name."""
    if not name or not _IDENTIFIER_RE.match(name):
        raise ValidationException(f"Invalid {kind} name: {name!r}", field=kind)
    return name


def table_clause(table_name: str, columns: Sequence[str] = ()) -> TableClause:
    """Lightweight table construct for tables we do not model."""
    validate_identifier(table_name, "table")
    unique = dict.fromkeys(columns)
    return table(table_name, *(column(validate_identifier(c, "column")) for c in unique))


class QueryBuilder:
    """Helper class for building SQL queries."""

    def __init__(self):
        self.query: Optional[Select] = None

    def select(self, *columns) -> 'QueryBuilder':
        """Start a SELECT query."""
        self.query = select(*columns)
        return self

    def from_table(self, from_clause) -> 'QueryBuilder':
        """Add FROM clause."""
        if self.query is None:
            self.query = select(from_clause)
        else:
            self.query = self.query.select_from(from_clause)
        return self

    def where(self, *conditions) -> 'QueryBuilder':
        """Add WHERE conditions."""
        if conditions:
            self.query = self.query.where(and_(*conditions))
        return self

    def join(self, target, condition) -> 'QueryBuilder':
        """Add JOIN clause."""
        self.query = self.query.join(target, condition)
        return self

    def order_by(self, *columns) -> 'QueryBuilder':
        """Add ORDER BY clause."""
        self.query = self.query.order_by(*columns)
        return self

    def limit(self, limit: int) -> 'QueryBuilder':
        """Add LIMIT clause."""
        self.query = self.query.limit(limit)
        return self

    def offset(self, offset: int) -> 'QueryBuilder':
        """Add OFFSET clause."""
        self.query = self.query.offset(offset)
        return self

    def build(self) -> Select:
        """Build and return the query."""
        return self.query


class RawQueryBuilder:
    """Helper for building raw SQL queries safely."""

    def __init__(self):
        self.query_parts: List[str] = []
        self.params: Dict[str, Any] = {}
        self._param_counter = 0

    def append(self, sql: str) -> 'RawQueryBuilder':
        """Append SQL fragment."""
        self.query_parts.append(sql)
        return self

    def append_param(self, value: Any) -> str:
        """Add a parameter and return its placeholder."""
        param_name = f"param_{self._param_counter}"
        self._param_counter += 1
        self.params[param_name] = value
        return f":{param_name}"

    def build(self) -> Tuple[str, Dict[str, Any]]:
        """Build the query and return (query_string, params)."""
        query = " ".join(self.query_parts)
        return query, self.params


def build_procedure_call(procedure: str, *args: Any) -> Tuple[str, Dict[str, Any]]:
    """Build a CALL statement with every argument bound as a parameter."""
    validate_identifier(procedure, "procedure")
    builder = RawQueryBuilder()
    placeholders = [builder.append_param(arg) for arg in args]
    builder.append(f"CALL {procedure}({', '.join(placeholders)})")
    return builder.build()


def _column_names(rows: Sequence[Dict[str, Any]]) -> List[str]:
    if not rows:
        raise ValidationException("At least one row is required", field="rows")
    columns = list(rows[0].keys())
    for row in rows[1:]:
        if set(row.keys()) != set(columns):
            raise ValidationException("All rows must have the same columns", field="rows")
    return columns


def build_insert_query(table_name: str, rows: Sequence[Dict[str, Any]]):
    """Build a multi-row INSERT."""
    columns = _column_names(rows)
    target = table_clause(table_name, columns)
    return insert(target).values(list(rows))


def build_upsert_query(
    table_name: str,
    rows: Sequence[Dict[str, Any]],
    conflict_keys: Sequence[str]
):
    """Build an INSERT that overwrites non-key columns on a key conflict."""
    columns = _column_names(rows)
    missing = [key for key in conflict_keys if key not in columns]
    if missing:
        raise ValidationException(
            f"Conflict keys {missing} are not columns of the rows", field="conflict_keys"
        )

    target = table_clause(table_name, columns)
    stmt = mysql_insert(target).values(list(rows))

    update_columns = [c for c in columns if c not in conflict_keys] or list(conflict_keys)
    return stmt.on_duplicate_key_update(
        {c: literal_column(f"VALUES(`{c}`)") for c in update_columns}
    )


def _condition_pairs(where_conditions: Conditions) -> List[Tuple[str, Any]]:
    """Column/value pairs; a sequence of pairs may repeat a column."""
    if isinstance(where_conditions, dict):
        pairs = list(where_conditions.items())
    else:
        pairs = [(col, value) for col, value in where_conditions]
    if not pairs:
        raise ValidationException("At least one condition is required", field="where")
    return pairs


def _where_clause(target: TableClause, pairs: Sequence[Tuple[str, Any]]):
    return and_(*(target.c[col] == value for col, value in pairs))


def build_update_query(
    table_name: str,
    values: Dict[str, Any],
    where_conditions: Conditions
):
    """Build an UPDATE query."""
    if not values:
        raise ValidationException("At least one value is required", field="values")
    pairs = _condition_pairs(where_conditions)
    target = table_clause(table_name, list(values) + [col for col, _ in pairs])
    return update(target).where(_where_clause(target, pairs)).values(values)


def build_delete_query(
    table_name: str,
    where_conditions: Conditions
):
    """Build a DELETE query. Every condition must hold."""
    pairs = _condition_pairs(where_conditions)
    target = table_clause(table_name, [col for col, _ in pairs])
    return delete(target).where(_where_clause(target, pairs))
