"""
Pydantic models for the wire format and stored records.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MetricType(str, Enum):
    CPU = 'cpu'
    RAM = 'ram'
    DISK = 'disk'
    PROCESS = 'process'
    PORT = 'port'
    CONTAINER = 'container'


class HostStatus(str, Enum):
    ONLINE = 'online'
    OFFLINE = 'offline'
    UNKNOWN = 'unknown'


class _FiniteModel(BaseModel):
    # JSON has no NaN or Infinity; the parser lets them through, so refuse them here
    model_config = ConfigDict(allow_inf_nan=False)


# Type-specific payloads
class CPUData(_FiniteModel):
    usage_percent: float
    cores: int = Field(ge=0)


class RAMData(_FiniteModel):
    total: int = Field(ge=0)
    used: int = Field(ge=0)
    usage_percent: float


class DiskData(_FiniteModel):
    mount_point: str
    total: int = Field(ge=0)
    used: int = Field(ge=0)
    free: int = Field(ge=0)
    usage_percent: float


class ProcessData(_FiniteModel):
    name: str
    pid: int
    status: str
    cpu_usage: float
    ram_usage: int = Field(ge=0)


class PortData(_FiniteModel):
    port: int = Field(ge=0, le=65535)
    protocol: str
    status: Literal['open', 'closed', 'filtered']
    service: Optional[str] = None


class ContainerData(_FiniteModel):
    id: str
    name: str
    image: str
    status: str
    state: str


class _MetricBase(_FiniteModel):
    value: float
    timestamp: Optional[datetime] = None

    @field_validator('timestamp')
    @classmethod
    def normalize_timestamp(cls, ts: Optional[datetime]) -> Optional[datetime]:
        return _checked_utc(ts)


class CPUMetric(_MetricBase):
    type: Literal['cpu']
    data: CPUData


class RAMMetric(_MetricBase):
    type: Literal['ram']
    data: RAMData


class DiskMetric(_MetricBase):
    type: Literal['disk']
    data: DiskData


class ProcessMetric(_MetricBase):
    type: Literal['process']
    data: ProcessData


class PortMetric(_MetricBase):
    type: Literal['port']
    data: PortData


class ContainerMetric(_MetricBase):
    type: Literal['container']
    data: ContainerData


# Closed union: unknown types and mismatched payloads fail validation
Metric = Annotated[
    Union[CPUMetric, RAMMetric, DiskMetric, ProcessMetric, PortMetric, ContainerMetric],
    Field(discriminator='type')
]


class MetricBatch(BaseModel):
    """Inbound batch from an agent (POST /api/metrics)"""
    host_id: str = Field(min_length=1)
    metrics: List[Metric]
    timestamp: Optional[datetime] = None

    @field_validator('timestamp')
    @classmethod
    def normalize_timestamp(cls, ts: Optional[datetime]) -> Optional[datetime]:
        return _checked_utc(ts)


class MetricRecord(BaseModel):
    """One stored sample, annotated with its batch's host_id and timestamp"""
    id: Optional[int] = None
    host_id: str
    type: MetricType
    value: float
    data: Dict[str, Any]
    timestamp: datetime


class Host(BaseModel):
    id: str
    name: str
    ip: str
    priority: int = Field(ge=1, le=100)
    status: HostStatus = HostStatus.UNKNOWN
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class IngestResponse(BaseModel):
    message: str
    count: int


def as_utc(ts: datetime) -> datetime:
    """Timezone-aware UTC; naive values are taken to be UTC already"""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _checked_utc(ts: Optional[datetime]) -> Optional[datetime]:
    if ts is None:
        return None
    try:
        return as_utc(ts)
    except OverflowError:
        # e.g. 0001-01-01T00:30:00+01:00 falls before year 1 in UTC
        raise ValueError('timestamp is outside the representable range')


def is_unset(ts: Optional[datetime]) -> bool:
    """True for a missing timestamp or the zero instant 0001-01-01T00:00:00Z"""
    return ts is None or ts.replace(tzinfo=None) == datetime.min


def resolve_batch_timestamp(batch: MetricBatch, now: Optional[datetime] = None) -> datetime:
    if is_unset(batch.timestamp):
        return as_utc(now) if now else datetime.now(timezone.utc)
    return as_utc(batch.timestamp)


def records_from_batch(batch: MetricBatch, now: Optional[datetime] = None) -> List[MetricRecord]:
    """Fan a batch out into records stamped with its host_id and timestamp"""
    timestamp = resolve_batch_timestamp(batch, now)
    return [
        MetricRecord(
            host_id=batch.host_id,
            type=MetricType(metric.type),
            value=metric.value,
            data=metric.data.model_dump(exclude_none=True),
            timestamp=timestamp
        )
        for metric in batch.metrics
    ]
