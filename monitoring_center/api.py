"""
Monitoring Center API - FastAPI application for metric ingestion and queries
"""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from monitoring_center.errors import HostLookupError, HostNotFoundError, StorageError, ValidationError
from monitoring_center.hosts import HostDirectory
from monitoring_center.ingest import IngestionService
from monitoring_center.schemas import Host, IngestResponse, MetricBatch, MetricRecord, MetricType, as_utc
from monitoring_center.store import MetricStore

logger = logging.getLogger(__name__)

DEFAULT_QUERY_WINDOW = timedelta(hours=24)
DEFAULT_QUERY_LIMIT = 100

# Query parameter -> message for malformed values
QUERY_ERRORS = {
    'from': 'Invalid from date format',
    'to': 'Invalid to date format',
    'limit': 'Invalid limit',
    'type': 'Invalid metric type',
}

_timestamp_adapter = TypeAdapter(datetime)

# RFC3339 date-time: explicit offset required, no epoch numbers
_RFC3339 = re.compile(r'\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})')


def _error(status_code: int, message: str, details=None) -> JSONResponse:
    body = {'error': message}
    if details is not None:
        body['details'] = details
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    for error in errors:
        loc = error.get('loc', ())
        if len(loc) >= 2 and loc[0] == 'query' and loc[1] in QUERY_ERRORS:
            return _error(400, QUERY_ERRORS[loc[1]])
    return _error(400, 'Invalid request data', details=errors)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


async def _validation_error_handler(request: Request, exc: ValidationError):
    if isinstance(exc, HostNotFoundError):
        return _error(404, 'Host not found')
    return _error(400, 'Invalid request data', details=str(exc))


def get_ingestion(request: Request) -> IngestionService:
    return request.app.state.ingestion


def get_store(request: Request) -> MetricStore:
    return request.app.state.store


def get_hosts(request: Request) -> HostDirectory:
    return request.app.state.hosts


def _parse_timestamp(value: Optional[str], name: str, default: datetime) -> datetime:
    if not value:
        return default
    if not _RFC3339.fullmatch(value):
        raise HTTPException(status_code=400, detail=QUERY_ERRORS[name])
    try:
        return as_utc(_timestamp_adapter.validate_python(value))
    except (PydanticValidationError, OverflowError):
        raise HTTPException(status_code=400, detail=QUERY_ERRORS[name])


def _parse_metric_type(value: Optional[str]) -> Optional[MetricType]:
    if not value:
        return None
    try:
        return MetricType(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=QUERY_ERRORS['type'])


def create_app(hosts: HostDirectory, store: MetricStore) -> FastAPI:
    """Build the API around a Host Directory and a Metric Store"""
    app = FastAPI(title="Monitoring Center", description="Host metrics ingestion and query API")
    app.state.hosts = hosts
    app.state.store = store
    app.state.ingestion = IngestionService(hosts, store)

    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(ValidationError, _validation_error_handler)

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:

    @app.post('/api/metrics', status_code=202, response_model=IngestResponse)
    def receive_metrics(batch: MetricBatch, ingestion: IngestionService = Depends(get_ingestion)):
        """Accept a metric batch from an agent"""
        try:
            count = ingestion.receive(batch)
        except HostLookupError as e:
            logger.error("Host lookup failed", extra={'context': {'host_id': batch.host_id, 'error': str(e)}})
            raise HTTPException(status_code=500, detail="Failed to verify host")
        except StorageError as e:
            logger.error("Saving metrics failed", extra={'context': {'host_id': batch.host_id, 'error': str(e)}})
            raise HTTPException(status_code=500, detail="Failed to save metrics")

        return IngestResponse(message="Metrics received successfully", count=count)

    @app.get('/api/hosts/master', response_model=Host, responses={204: {'description': 'No master host available'}})
    def master_host(hosts: HostDirectory = Depends(get_hosts)):
        """Online host with the highest priority"""
        try:
            host = hosts.find_master()
        except StorageError as e:
            logger.error("Master lookup failed", extra={'context': {'error': str(e)}})
            raise HTTPException(status_code=500, detail="Failed to find master host")

        if host is None:
            return Response(status_code=204)
        return host

    @app.get('/api/hosts/{host_id}/metrics', response_model=List[MetricRecord])
    def host_metrics(
        host_id: str,
        metric_type: Optional[str] = Query(None, alias='type', description="Metric type filter"),
        start: Optional[str] = Query(None, alias='from', description="Start time (RFC3339), default now-24h"),
        end: Optional[str] = Query(None, alias='to', description="End time (RFC3339), default now"),
        limit: int = Query(DEFAULT_QUERY_LIMIT, description="Max results; 0 or negative for no limit"),
        store: MetricStore = Depends(get_store)
    ):
        """Time-series samples for a host, newest first"""
        now = datetime.now(timezone.utc)
        wanted = _parse_metric_type(metric_type)
        range_start = _parse_timestamp(start, 'from', now - DEFAULT_QUERY_WINDOW)
        range_end = _parse_timestamp(end, 'to', now)

        try:
            return store.query_range(host_id, wanted, range_start, range_end, limit)
        except StorageError as e:
            logger.error("Metric query failed", extra={'context': {'host_id': host_id, 'error': str(e)}})
            raise HTTPException(status_code=500, detail="Failed to fetch metrics")

    @app.get('/api/hosts/{host_id}/metrics/latest', response_model=Dict[str, MetricRecord])
    def latest_host_metrics(host_id: str, store: MetricStore = Depends(get_store)):
        """Most recent sample of each type for a host"""
        try:
            latest = store.latest_by_type(host_id)
        except StorageError as e:
            logger.error("Latest metric query failed", extra={'context': {'host_id': host_id, 'error': str(e)}})
            raise HTTPException(status_code=500, detail="Failed to fetch latest metrics")

        return {metric_type.value: record for metric_type, record in latest.items()}

    @app.get('/health')
    def health():
        """Health check endpoint"""
        return {'status': 'healthy'}


def run_server(app: FastAPI, host: str = '0.0.0.0', port: int = 8080):
    """Run the Monitoring Center server"""
    uvicorn.run(app, host=host, port=port)
