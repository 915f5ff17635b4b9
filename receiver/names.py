# receiver/names.py
"""
Safelist validation for caller-supplied database and table names.

Names come straight from the URL path, so they are checked before they are
used to build a file path or a CREATE TABLE statement.
"""

import re

from receiver.errors import InvalidNameError

MAX_NAME_LENGTH = 64

# database names become file names: letters, digits, '_' and '-'
DATABASE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]{0,63}$")
# table names become SQL identifiers: no '-'
TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,63}$")

RESERVED_TABLE_PREFIX = "sqlite_"


def validate_database_name(name: str) -> str:
    if not isinstance(name, str) or not DATABASE_NAME_RE.fullmatch(name):
        raise InvalidNameError(
            "Invalid database name",
            details={"database": _preview(name), "allowed": DATABASE_NAME_RE.pattern},
        )
    return name


def validate_table_name(name: str) -> str:
    if not isinstance(name, str) or not TABLE_NAME_RE.fullmatch(name):
        raise InvalidNameError(
            "Invalid table name",
            details={"table": _preview(name), "allowed": TABLE_NAME_RE.pattern},
        )
    if name.lower().startswith(RESERVED_TABLE_PREFIX):
        raise InvalidNameError(
            "Table names starting with 'sqlite_' are reserved",
            details={"table": name},
        )
    return name


def _preview(name) -> str:
    text = str(name)
    return text if len(text) <= MAX_NAME_LENGTH else text[:MAX_NAME_LENGTH] + "..."
