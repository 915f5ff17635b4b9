# receiver/ingest.py
"""
Ingestion writer: turns one request body into one row.

Order of operations for a write:
  1. validate database and table names
  2. decode the body as UTF-8
  3. open the store (creates the file if absent)
  4. CREATE TABLE IF NOT EXISTS
  5. INSERT the timestamp and json(document)

Steps 1-2 reject bad input before any file or table is touched. Steps 4 and
5 run as separate statements, so a document SQLite refuses still leaves a
freshly created (empty) table behind.
"""

import datetime
from typing import Optional

from sqlalchemy import DateTime, Table, Text, bindparam, func, insert, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from receiver import monitoring
from receiver.errors import MalformedDocumentError, PayloadDecodeError, StorageError
from receiver.names import validate_database_name, validate_table_name
from receiver.schema import ensure_table
from receiver.stores import StoreRegistry

PAYLOAD_ENCODING = "utf-8"
DEBUG_PREVIEW_CHARS = 200


def utcnow() -> datetime.datetime:
    # naive UTC, the form SQLAlchemy's SQLite DateTime stores
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def decode_payload(body: bytes) -> str:
    try:
        return body.decode(PAYLOAD_ENCODING)
    except UnicodeDecodeError as e:
        raise PayloadDecodeError(
            "Request body is not valid UTF-8",
            details={"position": e.start},
        ) from e


def _insert_statement(table: Table):
    # json_valid() only accepts strict RFC 8259 text, while json() also
    # takes JSON5 on newer SQLite builds
    document = bindparam("document", type_=Text)
    source = select(
        bindparam("received_at", type_=DateTime),
        func.json(document),
    ).where(func.json_valid(document) == 1)
    return insert(table).from_select(["timestamp", "data"], source)


def write_record(conn: Connection, table: Table, document: str, timestamp: datetime.datetime) -> int:
    """Append one row and return its id."""
    try:
        result = conn.execute(_insert_statement(table), {"received_at": timestamp, "document": document})
        if result.rowcount != 1:
            conn.rollback()
            raise MalformedDocumentError(
                "Document is not valid JSON",
                details={"table": table.name, "operation": "insert"},
            )
        record_id = result.lastrowid
        conn.commit()
    except SQLAlchemyError as e:
        conn.rollback()
        if "malformed JSON" in str(e):
            raise MalformedDocumentError(
                "Document is not valid JSON",
                details={"table": table.name, "operation": "insert"},
            ) from e
        raise StorageError(
            "Unable to insert record",
            details={"table": table.name, "operation": "insert"},
        ) from e
    return record_id


def ingest(
    registry: StoreRegistry,
    database_name: str,
    table_name: str,
    body: bytes,
    timestamp: Optional[datetime.datetime] = None,
) -> int:
    """Persist one document into <database_name>.<table_name>. Blocking."""
    timestamp = timestamp or utcnow()
    validate_database_name(database_name)
    validate_table_name(table_name)
    document = decode_payload(body)

    with registry.open_store(database_name) as conn:
        table = ensure_table(conn, table_name)
        record_id = write_record(conn, table, document, timestamp)

    monitoring.inc_records_written()
    monitoring.logger.info(
        "Record written",
        extra={"database": database_name, "table": table_name, "record_id": record_id, "timestamp": timestamp.isoformat()},
    )
    monitoring.logger.debug(
        "Record payload",
        extra={"database": database_name, "table": table_name, "payload_preview": document[:DEBUG_PREVIEW_CHARS]},
    )
    return record_id
