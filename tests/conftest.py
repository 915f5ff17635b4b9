# tests/conftest.py
import json
import sqlite3

import pytest
from fastapi.testclient import TestClient

from receiver.app import create_app
from receiver.config import Settings
from receiver.stores import StoreRegistry


@pytest.fixture
def settings(tmp_path):
    return Settings(database_files=str(tmp_path), busy_timeout_ms=30000)


@pytest.fixture
def registry(settings):
    reg = StoreRegistry(settings)
    yield reg
    reg.dispose()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    yield TestClient(app)
    app.state.registry.dispose()


def fetch_rows(root, database, table):
    """Read (id, timestamp, data) rows straight from the store file."""
    conn = sqlite3.connect(str(root / f"{database}.db"))
    try:
        return conn.execute(f'SELECT id, timestamp, data FROM "{table}" ORDER BY id').fetchall()
    finally:
        conn.close()


def table_sql(root, database, table):
    conn = sqlite3.connect(str(root / f"{database}.db"))
    try:
        row = conn.execute(
            "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
        ).fetchone()
        return row[0] if row else None
    finally:
        conn.close()


def documents(root, database, table):
    return [json.loads(data) for _, _, data in fetch_rows(root, database, table)]
