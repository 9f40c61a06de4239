"""
Shared fixtures for monitoring center tests.
"""
from contextlib import contextmanager
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from monitoring_center.api import create_app
from monitoring_center.hosts import InMemoryHostDirectory
from monitoring_center.schemas import Host, HostStatus
from monitoring_center.store import InMemoryMetricStore


class FakeDatabase:
    """Stands in for monitoring_center.db.Database with a mocked cursor"""

    def __init__(self):
        self.conn = MagicMock()
        self.cursor = MagicMock()
        self.conn.cursor.return_value.__enter__.return_value = self.cursor

    @contextmanager
    def get_connection(self):
        yield self.conn


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def registered_host():
    return Host(id='h1', name='web-1', ip='10.0.0.1', priority=50, status=HostStatus.ONLINE)


@pytest.fixture
def host_directory(registered_host):
    return InMemoryHostDirectory([registered_host])


@pytest.fixture
def metric_store():
    return InMemoryMetricStore()


@pytest.fixture
def client(host_directory, metric_store):
    return TestClient(create_app(host_directory, metric_store))
