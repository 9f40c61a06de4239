"""
Tests for the metric stores.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import psycopg2
import pytest

from monitoring_center.errors import StorageError
from monitoring_center.schemas import MetricBatch, MetricRecord, MetricType
from monitoring_center.store import InMemoryMetricStore, PostgresMetricStore

NOW = datetime(2026, 2, 8, 20, 30, tzinfo=timezone.utc)


def cpu(value):
    return {'type': 'cpu', 'value': value, 'data': {'usage_percent': value, 'cores': 4}}


def ram(value):
    return {'type': 'ram', 'value': value, 'data': {'total': 100, 'used': int(value), 'usage_percent': value}}


def batch(*metrics, host_id='h1', timestamp=NOW):
    return MetricBatch(host_id=host_id, metrics=list(metrics), timestamp=timestamp)


class TestInMemoryMetricStore:
    """Test InMemoryMetricStore"""

    def test_save_returns_count_and_assigns_ids(self):
        store = InMemoryMetricStore()

        assert store.save(batch(cpu(1.0), ram(2.0))) == 2
        assert store.save(batch(cpu(3.0))) == 1

        records = store.query_range('h1', None, NOW - timedelta(hours=1), NOW)
        assert sorted(r.id for r in records) == [1, 2, 3]

    def test_empty_batch_is_noop(self):
        store = InMemoryMetricStore()

        assert store.save(batch()) == 0
        assert len(store) == 0

    def test_save_without_timestamp_uses_now(self):
        store = InMemoryMetricStore()
        before = datetime.now(timezone.utc)

        store.save(batch(cpu(1.0), timestamp=None))

        (record,) = store.query_range('h1', None, before - timedelta(seconds=1), datetime.now(timezone.utc))
        assert record.timestamp >= before

    def test_query_range_is_inclusive_and_newest_first(self):
        store = InMemoryMetricStore()
        for minutes in (0, 10, 20, 30):
            store.save(batch(cpu(float(minutes)), timestamp=NOW - timedelta(minutes=minutes)))

        records = store.query_range('h1', None, NOW - timedelta(minutes=20), NOW - timedelta(minutes=10))

        assert [r.value for r in records] == [10.0, 20.0]

    def test_query_range_filters_host_and_type(self):
        store = InMemoryMetricStore()
        store.save(batch(cpu(1.0), ram(2.0)))
        store.save(batch(cpu(9.0), host_id='h2'))

        records = store.query_range('h1', MetricType.RAM, NOW - timedelta(hours=1), NOW)

        assert [(r.host_id, r.type, r.value) for r in records] == [('h1', MetricType.RAM, 2.0)]

    def test_query_range_limit(self):
        store = InMemoryMetricStore()
        for minutes in range(5):
            store.save(batch(cpu(float(minutes)), timestamp=NOW - timedelta(minutes=minutes)))

        window = (NOW - timedelta(hours=1), NOW)
        assert [r.value for r in store.query_range('h1', None, *window, limit=2)] == [0.0, 1.0]
        assert len(store.query_range('h1', None, *window, limit=0)) == 5
        assert len(store.query_range('h1', None, *window, limit=-1)) == 5

    def test_equal_timestamps_order_by_insertion(self):
        """The later insert sorts first and wins latest_by_type"""
        store = InMemoryMetricStore()
        store.save(batch(cpu(1.0)))
        store.save(batch(cpu(2.0)))

        records = store.query_range('h1', None, NOW, NOW)

        assert [r.value for r in records] == [2.0, 1.0]
        assert store.latest_by_type('h1')[MetricType.CPU].value == 2.0

    def test_latest_by_type(self):
        store = InMemoryMetricStore()
        store.save(batch(cpu(1.0), ram(10.0), timestamp=NOW - timedelta(minutes=5)))
        store.save(batch(cpu(2.0), timestamp=NOW))
        # Out-of-order arrival: an older batch saved last
        store.save(batch(ram(30.0), timestamp=NOW - timedelta(minutes=10)))

        latest = store.latest_by_type('h1')

        assert set(latest) == {MetricType.CPU, MetricType.RAM}
        assert latest[MetricType.CPU].value == 2.0
        assert latest[MetricType.RAM].value == 10.0

    def test_latest_by_type_unknown_host_is_empty(self):
        assert InMemoryMetricStore().latest_by_type('nobody') == {}

    def test_returned_records_are_copies(self):
        store = InMemoryMetricStore()
        store.save(batch(cpu(1.0)))

        store.query_range('h1', None, NOW, NOW)[0].value = 99.0

        assert store.query_range('h1', None, NOW, NOW)[0].value == 1.0

    def test_purge_deletes_only_older_records(self):
        store = InMemoryMetricStore()
        store.save(batch(cpu(1.0), timestamp=NOW - timedelta(days=31)))
        store.save(batch(cpu(2.0), timestamp=NOW - timedelta(days=30)))
        store.save(batch(cpu(3.0), timestamp=NOW))

        deleted = store.purge(timedelta(days=30), now=NOW)

        assert deleted == 1
        remaining = store.query_range('h1', None, NOW - timedelta(days=60), NOW)
        assert [r.value for r in remaining] == [3.0, 2.0]

    def test_purge_is_idempotent_for_fixed_now(self):
        store = InMemoryMetricStore()
        store.save(batch(cpu(1.0), timestamp=NOW - timedelta(days=31)))
        store.save(batch(cpu(2.0), timestamp=NOW))
        store.purge(timedelta(days=30), now=NOW)

        assert store.purge(timedelta(days=30), now=NOW) == 0

        remaining = store.query_range('h1', None, NOW - timedelta(days=60), NOW)
        assert [r.value for r in remaining] == [2.0]


class TestPostgresMetricStore:
    """Test PostgresMetricStore against a mocked cursor"""

    def test_save_bulk_inserts_records(self, fake_db):
        store = PostgresMetricStore(fake_db)

        with patch('monitoring_center.store.execute_values') as execute_values:
            count = store.save(batch(cpu(42.5), ram(70.1)))

        assert count == 2
        execute_values.assert_called_once()
        cur, sql, values = execute_values.call_args.args
        assert cur is fake_db.cursor
        assert sql.startswith('INSERT INTO metrics')
        assert [v[:3] for v in values] == [('h1', 'cpu', 42.5), ('h1', 'ram', 70.1)]
        assert values[0][3].adapted == {'usage_percent': 42.5, 'cores': 4}
        assert values[0][4] == NOW
        assert execute_values.call_args.kwargs['page_size'] == 2

    def test_save_empty_batch_skips_database(self, fake_db):
        with patch('monitoring_center.store.execute_values') as execute_values:
            assert PostgresMetricStore(fake_db).save(batch()) == 0

        execute_values.assert_not_called()

    def test_save_wraps_driver_errors(self, fake_db):
        with patch('monitoring_center.store.execute_values', side_effect=psycopg2.OperationalError('gone')):
            with pytest.raises(StorageError, match='Failed to insert metrics'):
                PostgresMetricStore(fake_db).save(batch(cpu(1.0)))

    def test_query_range_builds_filtered_query(self, fake_db):
        fake_db.cursor.fetchall.return_value = [
            {'id': 7, 'host_id': 'h1', 'type': 'cpu', 'value': 42.5,
             'data': {'usage_percent': 42.5, 'cores': 4}, 'timestamp': NOW},
        ]
        start = NOW - timedelta(hours=1)

        records = PostgresMetricStore(fake_db).query_range('h1', MetricType.CPU, start, NOW, limit=10)

        sql, params = fake_db.cursor.execute.call_args.args
        assert 'AND type = %s' in sql
        assert 'ORDER BY timestamp DESC, id DESC' in sql
        assert 'LIMIT %s' in sql
        assert params == ['h1', start, NOW, 'cpu', 10]
        assert records == [MetricRecord(id=7, host_id='h1', type=MetricType.CPU, value=42.5,
                                        data={'usage_percent': 42.5, 'cores': 4}, timestamp=NOW)]

    def test_query_range_without_type_or_limit(self, fake_db):
        fake_db.cursor.fetchall.return_value = []

        PostgresMetricStore(fake_db).query_range('h1', None, NOW, NOW, limit=0)

        sql, params = fake_db.cursor.execute.call_args.args
        assert 'type = %s' not in sql
        assert 'LIMIT' not in sql
        assert params == ['h1', NOW, NOW]

    def test_latest_by_type_keys_rows_by_type(self, fake_db):
        fake_db.cursor.fetchall.return_value = [
            {'id': 2, 'host_id': 'h1', 'type': 'cpu', 'value': 1.0,
             'data': {'usage_percent': 1.0, 'cores': 2}, 'timestamp': NOW},
            {'id': 3, 'host_id': 'h1', 'type': 'ram', 'value': 5.0,
             'data': {'total': 10, 'used': 5, 'usage_percent': 5.0}, 'timestamp': NOW},
        ]

        latest = PostgresMetricStore(fake_db).latest_by_type('h1')

        sql = fake_db.cursor.execute.call_args.args[0]
        assert 'DISTINCT ON (type)' in sql
        assert 'ORDER BY type, timestamp DESC, id DESC' in sql
        assert set(latest) == {MetricType.CPU, MetricType.RAM}
        assert latest[MetricType.RAM].id == 3

    def test_read_errors_become_storage_errors(self, fake_db):
        fake_db.cursor.execute.side_effect = psycopg2.OperationalError('timeout')
        store = PostgresMetricStore(fake_db)

        with pytest.raises(StorageError):
            store.query_range('h1', None, NOW, NOW)
        with pytest.raises(StorageError):
            store.latest_by_type('h1')

    def test_purge_deletes_before_cutoff(self, fake_db):
        fake_db.cursor.rowcount = 12

        deleted = PostgresMetricStore(fake_db).purge(timedelta(days=30), now=NOW)

        assert deleted == 12
        sql, params = fake_db.cursor.execute.call_args.args
        assert sql == 'DELETE FROM metrics WHERE timestamp < %s'
        assert params == (NOW - timedelta(days=30),)
