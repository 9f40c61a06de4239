"""
monitoring_center: central ingestion and query service for host metrics

Receives metric batches from agents, checks them against the Host Directory
and persists them for range and latest-value queries.
"""

from monitoring_center.api import create_app
from monitoring_center.ingest import IngestionService
from monitoring_center.store import InMemoryMetricStore, MetricStore, PostgresMetricStore

__all__ = ['create_app', 'IngestionService', 'MetricStore', 'PostgresMetricStore', 'InMemoryMetricStore']
__version__ = '1.0.0'
