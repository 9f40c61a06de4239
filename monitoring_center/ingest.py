"""
Ingestion of agent batches.
"""
import logging
from datetime import datetime
from typing import Optional

from monitoring_center.errors import HostLookupError, HostNotFoundError, StorageError
from monitoring_center.hosts import HostDirectory
from monitoring_center.schemas import MetricBatch, resolve_batch_timestamp
from monitoring_center.store import MetricStore

logger = logging.getLogger(__name__)


class IngestionService:
    """
    Validates a batch against the Host Directory and hands it to the store.

    The insert is a single best-effort bulk write, not a transaction: if it
    raises StorageError none of the batch is reported as stored, although a
    partially applied write is possible in the underlying database.
    """

    def __init__(self, hosts: HostDirectory, store: MetricStore):
        self.hosts = hosts
        self.store = store

    def receive(self, batch: MetricBatch, now: Optional[datetime] = None) -> int:
        """
        Accept one batch.

        Returns:
            Number of samples accepted

        Raises:
            HostNotFoundError: If host_id is not registered
            HostLookupError: If the Host Directory cannot be read
            StorageError: If the insert fails
        """
        try:
            known = self.hosts.exists(batch.host_id)
        except StorageError as e:
            raise HostLookupError(str(e)) from e

        if not known:
            logger.warning("Rejected batch for unknown host", extra={'context': {'host_id': batch.host_id}})
            raise HostNotFoundError(batch.host_id)

        stamped = batch.model_copy(update={'timestamp': resolve_batch_timestamp(batch, now)})
        count = self.store.save(stamped)

        logger.info(
            "Metrics received",
            extra={'context': {'host_id': batch.host_id, 'count': count}}
        )
        return count
