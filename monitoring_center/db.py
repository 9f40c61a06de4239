"""
Database connection management for the monitoring center
"""
import os
from contextlib import contextmanager

from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS hosts (
        id UUID PRIMARY KEY,
        name VARCHAR(255) NOT NULL UNIQUE,
        ip VARCHAR(45) NOT NULL UNIQUE,
        priority INTEGER NOT NULL CHECK (priority BETWEEN 1 AND 100),
        status VARCHAR(16) NOT NULL DEFAULT 'unknown',
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS metrics (
        id BIGSERIAL PRIMARY KEY,
        host_id TEXT NOT NULL,
        type VARCHAR(16) NOT NULL,
        value DOUBLE PRECISION NOT NULL,
        data JSONB NOT NULL DEFAULT '{}'::jsonb,
        timestamp TIMESTAMPTZ NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_metrics_host_timestamp ON metrics (host_id, timestamp DESC)",
    "CREATE INDEX IF NOT EXISTS idx_metrics_type_timestamp ON metrics (type, timestamp DESC)",
    "CREATE INDEX IF NOT EXISTS idx_metrics_timestamp ON metrics (timestamp DESC)",
]


def get_database_url() -> str:
    """
    Read the PostgreSQL connection string from POSTGRES_URL.

    Raises:
        ValueError: If the variable is not set
    """
    db_url = os.getenv('POSTGRES_URL')

    if not db_url:
        raise ValueError(
            "POSTGRES_URL environment variable not set. "
            "Please set it to your PostgreSQL connection string."
        )

    return db_url


class Database:
    """
    Thread-safe PostgreSQL connection pool.

    FastAPI runs the synchronous route handlers on a worker pool, so the
    pool must hand out connections to concurrent callers.
    """

    def __init__(self, database_url: str, min_connections: int = 1, max_connections: int = 10):
        self.pool = ThreadedConnectionPool(
            min_connections,
            max_connections,
            database_url,
            cursor_factory=RealDictCursor
        )

    @contextmanager
    def get_connection(self):
        """Get a connection from the pool; commits on success, rolls back on error"""
        conn = self.pool.getconn()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self.pool.putconn(conn)

    def ping(self) -> None:
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")

    def create_schema(self) -> None:
        """Create tables and the range-scan indexes if they do not exist"""
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                for statement in SCHEMA_STATEMENTS:
                    cur.execute(statement)

    def close(self):
        """Close all connections in the pool"""
        self.pool.closeall()
