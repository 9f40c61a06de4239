"""
Tests for the connection pool wrapper.
"""
from unittest.mock import patch

import psycopg2
import pytest

from monitoring_center.db import SCHEMA_STATEMENTS, Database, get_database_url


@pytest.fixture
def pool():
    with patch('monitoring_center.db.ThreadedConnectionPool') as pool_class:
        yield pool_class.return_value


def cursor_of(pool):
    conn = pool.getconn.return_value
    return conn, conn.cursor.return_value.__enter__.return_value


def test_ping_runs_trivial_query_and_returns_connection(pool):
    conn, cur = cursor_of(pool)

    Database('postgresql://localhost/monitoring').ping()

    cur.execute.assert_called_once_with("SELECT 1")
    conn.commit.assert_called_once()
    pool.putconn.assert_called_once_with(conn)


def test_failed_ping_rolls_back_and_raises(pool):
    conn, cur = cursor_of(pool)
    cur.execute.side_effect = psycopg2.OperationalError('connection refused')

    with pytest.raises(psycopg2.OperationalError):
        Database('postgresql://localhost/monitoring').ping()

    conn.rollback.assert_called_once()
    pool.putconn.assert_called_once_with(conn)


def test_create_schema_runs_every_statement(pool):
    _, cur = cursor_of(pool)

    Database('postgresql://localhost/monitoring').create_schema()

    assert cur.execute.call_count == len(SCHEMA_STATEMENTS)


def test_database_url_is_required(monkeypatch):
    monkeypatch.delenv('POSTGRES_URL', raising=False)

    with pytest.raises(ValueError, match='POSTGRES_URL'):
        get_database_url()
