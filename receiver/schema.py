# receiver/schema.py
"""
Schema provisioner. Every ingest table has the same three columns:

    id         INTEGER PRIMARY KEY   (rowid alias, assigned by SQLite)
    timestamp  DATETIME NOT NULL     (server time at arrival, UTC)
    data       TEXT NOT NULL         (JSON document, normalized by json())

Tables are created with CREATE TABLE IF NOT EXISTS on every write. An
existing table is never inspected or altered.
"""

from sqlalchemy import Column, DateTime, Integer, MetaData, Table, Text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import CreateTable

from receiver import monitoring
from receiver.errors import StorageError
from receiver.names import validate_table_name


def record_table(table_name: str) -> Table:
    validate_table_name(table_name)
    return Table(
        table_name,
        MetaData(),
        Column("id", Integer, primary_key=True),
        Column("timestamp", DateTime, nullable=False),
        Column("data", Text, nullable=False),
    )


def ensure_table(conn: Connection, table_name: str) -> Table:
    """Create `table_name` if it does not exist yet. Safe to call on every request."""
    table = record_table(table_name)
    try:
        conn.execute(CreateTable(table, if_not_exists=True))
        conn.commit()
    except SQLAlchemyError as e:
        conn.rollback()
        raise StorageError(
            "Unable to provision table",
            details={"table": table_name, "operation": "ensure_table"},
        ) from e
    monitoring.inc_tables_ensured()
    monitoring.logger.debug("Table ensured", extra={"table": table_name})
    return table
