"""
System metric collection using psutil.
"""

import logging
from datetime import datetime, timezone
from typing import List

import psutil

from metrics_agent.errors import CollectionError
from metrics_agent.models import CPUData, DiskData, Metric, MetricType, RAMData

logger = logging.getLogger(__name__)


class SystemCollector:
    """
    Collects CPU, RAM and disk samples for one point-in-time snapshot.

    CPU and RAM are single global sensors: a failure reading either aborts
    the whole collection with CollectionError. Disks are independent
    resources, so an unreadable mount point is skipped and the rest of the
    snapshot is still returned.
    """

    def __init__(self, cpu_interval: float = 1.0):
        self.cpu_interval = cpu_interval

    def collect(self) -> List[Metric]:
        """Collect current system metrics"""
        timestamp = datetime.now(timezone.utc)

        metrics = [self._collect_cpu(timestamp), self._collect_ram(timestamp)]
        metrics.extend(self._collect_disks(timestamp))
        return metrics

    def _collect_cpu(self, timestamp: datetime) -> Metric:
        try:
            usage = psutil.cpu_percent(interval=self.cpu_interval)
            cores = psutil.cpu_count(logical=True) or 0
        except (psutil.Error, OSError) as e:
            raise CollectionError(f"Failed to read CPU metrics: {e}") from e

        return Metric(
            type=MetricType.CPU,
            value=usage,
            data=CPUData(usage_percent=usage, cores=cores),
            timestamp=timestamp
        )

    def _collect_ram(self, timestamp: datetime) -> Metric:
        try:
            mem = psutil.virtual_memory()
        except (psutil.Error, OSError) as e:
            raise CollectionError(f"Failed to read memory metrics: {e}") from e

        return Metric(
            type=MetricType.RAM,
            value=mem.percent,
            data=RAMData(total=mem.total, used=mem.used, usage_percent=mem.percent),
            timestamp=timestamp
        )

    def _collect_disks(self, timestamp: datetime) -> List[Metric]:
        try:
            partitions = psutil.disk_partitions(all=False)
        except (psutil.Error, OSError) as e:
            raise CollectionError(f"Failed to list disk partitions: {e}") from e

        metrics = []
        for partition in partitions:
            try:
                usage = psutil.disk_usage(partition.mountpoint)
            except (psutil.Error, OSError) as e:
                logger.debug(
                    "Skipping unreadable partition",
                    extra={'context': {'mount_point': partition.mountpoint, 'error': str(e)}}
                )
                continue

            metrics.append(Metric(
                type=MetricType.DISK,
                value=usage.percent,
                data=DiskData(
                    mount_point=partition.mountpoint,
                    total=usage.total,
                    used=usage.used,
                    free=usage.free,
                    usage_percent=usage.percent
                ),
                timestamp=timestamp
            ))

        return metrics
