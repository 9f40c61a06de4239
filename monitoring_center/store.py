"""
Metric Store: append-only time-series persistence for metric samples.

Records are ordered newest-first by (timestamp, id). The id is the insertion
sequence, so when two samples share a timestamp the later insert wins, both
for query ordering and for latest_by_type.
"""
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import psycopg2
from psycopg2.extras import Json, execute_values

from monitoring_center.errors import StorageError
from monitoring_center.schemas import MetricBatch, MetricRecord, MetricType, as_utc, records_from_batch

logger = logging.getLogger(__name__)


class MetricStore(ABC):
    """Base class for metric persistence"""

    @abstractmethod
    def save(self, batch: MetricBatch) -> int:
        """
        Bulk-append a batch as individual records.

        Each record carries the batch's host_id and timestamp (now, if the
        batch has none). An empty batch is a no-op. Returns the number of
        records written.
        """
        pass

    @abstractmethod
    def query_range(
        self,
        host_id: str,
        metric_type: Optional[MetricType],
        start: datetime,
        end: datetime,
        limit: int = 100
    ) -> List[MetricRecord]:
        """Records with start <= timestamp <= end, newest first; limit <= 0 is unlimited"""
        pass

    @abstractmethod
    def latest_by_type(self, host_id: str) -> Dict[MetricType, MetricRecord]:
        """The most recent record of each type present for the host"""
        pass

    @abstractmethod
    def purge(self, older_than: timedelta, now: Optional[datetime] = None) -> int:
        """Delete records with timestamp < now - older_than; returns the deleted count"""
        pass


def _cutoff(older_than: timedelta, now: Optional[datetime]) -> datetime:
    now = as_utc(now) if now else datetime.now(timezone.utc)
    return now - older_than


class PostgresMetricStore(MetricStore):
    """Metric records in the PostgreSQL metrics table, payload as JSONB"""

    COLUMNS = "id, host_id, type, value, data, timestamp"

    def __init__(self, database):
        self.database = database

    def save(self, batch: MetricBatch) -> int:
        records = records_from_batch(batch)
        if not records:
            return 0

        sql = "INSERT INTO metrics (host_id, type, value, data, timestamp) VALUES %s"
        values = [
            (r.host_id, r.type.value, r.value, Json(r.data), r.timestamp)
            for r in records
        ]

        try:
            with self.database.get_connection() as conn:
                with conn.cursor() as cur:
                    execute_values(cur, sql, values, page_size=len(values))
        except psycopg2.Error as e:
            raise StorageError(f"Failed to insert metrics: {e}") from e

        return len(records)

    def query_range(self, host_id, metric_type, start, end, limit=100):
        sql = f"""
            SELECT {self.COLUMNS}
            FROM metrics
            WHERE host_id = %s
              AND timestamp >= %s
              AND timestamp <= %s
        """
        params = [host_id, as_utc(start), as_utc(end)]

        if metric_type:
            sql += " AND type = %s"
            params.append(MetricType(metric_type).value)

        sql += " ORDER BY timestamp DESC, id DESC"

        if limit > 0:
            sql += " LIMIT %s"
            params.append(limit)

        try:
            with self.database.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, params)
                    rows = cur.fetchall()
        except psycopg2.Error as e:
            raise StorageError(f"Failed to find metrics: {e}") from e

        return [MetricRecord(**row) for row in rows]

    def latest_by_type(self, host_id):
        sql = f"""
            SELECT DISTINCT ON (type) {self.COLUMNS}
            FROM metrics
            WHERE host_id = %s
            ORDER BY type, timestamp DESC, id DESC
        """

        try:
            with self.database.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, (host_id,))
                    rows = cur.fetchall()
        except psycopg2.Error as e:
            raise StorageError(f"Failed to aggregate metrics: {e}") from e

        records = [MetricRecord(**row) for row in rows]
        return {record.type: record for record in records}

    def purge(self, older_than, now=None):
        cutoff = _cutoff(older_than, now)

        try:
            with self.database.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("DELETE FROM metrics WHERE timestamp < %s", (cutoff,))
                    deleted = cur.rowcount
        except psycopg2.Error as e:
            raise StorageError(f"Failed to cleanup old metrics: {e}") from e

        logger.info("Purged old metrics", extra={'context': {'deleted': deleted, 'cutoff': cutoff.isoformat()}})
        return deleted


class InMemoryMetricStore(MetricStore):
    """Process-local store with the same semantics, for --storage memory and tests"""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: List[MetricRecord] = []
        self._next_id = 1

    def save(self, batch):
        records = records_from_batch(batch)
        if not records:
            return 0

        with self._lock:
            for record in records:
                record.id = self._next_id
                self._next_id += 1
                self._records.append(record)

        return len(records)

    @staticmethod
    def _sort_key(record: MetricRecord):
        return (record.timestamp, record.id)

    def query_range(self, host_id, metric_type, start, end, limit=100):
        start, end = as_utc(start), as_utc(end)
        wanted = MetricType(metric_type) if metric_type else None

        with self._lock:
            matches = [
                r for r in self._records
                if r.host_id == host_id
                and start <= r.timestamp <= end
                and (wanted is None or r.type == wanted)
            ]

        matches.sort(key=self._sort_key, reverse=True)
        if limit > 0:
            matches = matches[:limit]
        return [r.model_copy(deep=True) for r in matches]

    def latest_by_type(self, host_id):
        latest: Dict[MetricType, MetricRecord] = {}
        with self._lock:
            for record in self._records:
                if record.host_id != host_id:
                    continue
                current = latest.get(record.type)
                if current is None or self._sort_key(record) > self._sort_key(current):
                    latest[record.type] = record

        return {t: r.model_copy(deep=True) for t, r in latest.items()}

    def purge(self, older_than, now=None):
        cutoff = _cutoff(older_than, now)

        with self._lock:
            kept = [r for r in self._records if r.timestamp >= cutoff]
            deleted = len(self._records) - len(kept)
            self._records = kept

        logger.info("Purged old metrics", extra={'context': {'deleted': deleted, 'cutoff': cutoff.isoformat()}})
        return deleted

    def __len__(self):
        with self._lock:
            return len(self._records)
