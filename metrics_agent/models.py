"""
Metric samples and batches produced by the agent.
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Tuple, Union


class MetricType(str, Enum):
    """Closed set of metric kinds understood by the monitoring center"""
    CPU = 'cpu'
    RAM = 'ram'
    DISK = 'disk'
    PROCESS = 'process'
    PORT = 'port'
    CONTAINER = 'container'


@dataclass(frozen=True)
class CPUData:
    usage_percent: float
    cores: int


@dataclass(frozen=True)
class RAMData:
    total: int
    used: int
    usage_percent: float


@dataclass(frozen=True)
class DiskData:
    mount_point: str
    total: int
    used: int
    free: int
    usage_percent: float


MetricData = Union[CPUData, RAMData, DiskData]


def format_timestamp(ts: datetime) -> str:
    """RFC3339 in UTC with a Z suffix"""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


@dataclass(frozen=True)
class Metric:
    """One typed measurement; value is always the percentage summary"""
    type: MetricType
    value: float
    data: MetricData
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type.value,
            'value': self.value,
            'data': asdict(self.data),
            'timestamp': format_timestamp(self.timestamp),
        }


@dataclass(frozen=True)
class MetricBatch:
    """
    One collection cycle's samples, sent and retried as a unit.

    Wire format (POST /api/metrics):
    {
        "host_id": "h1",
        "metrics": [{"type": "cpu", "value": 42.5, "data": {...}, "timestamp": "..."}],
        "timestamp": "2026-02-08T20:30:00Z"
    }
    """
    host_id: str
    metrics: Tuple[Metric, ...]
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'host_id': self.host_id,
            'metrics': [m.to_dict() for m in self.metrics],
            'timestamp': format_timestamp(self.timestamp),
        }
