"""
HTTP delivery of metric batches to the monitoring center.
"""

import logging

import requests

from metrics_agent.errors import TransportError
from metrics_agent.models import MetricBatch

logger = logging.getLogger(__name__)

METRICS_PATH = '/api/metrics'


class HTTPSender:
    """
    Performs a single POST of a batch; retry policy belongs to the Scheduler.

    Safe to share between concurrent cycles: the only state is the endpoint
    and timeout fixed at construction, and every call issues its own request.
    """

    def __init__(self, base_url: str, timeout: float = 30):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    @property
    def url(self) -> str:
        return f"{self.base_url}{METRICS_PATH}"

    def send(self, batch: MetricBatch) -> None:
        """
        Send one batch.

        Raises:
            TransportError: On connection errors, timeouts or any status other than 202
        """
        try:
            response = requests.post(self.url, json=batch.to_dict(), timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Timeout after {self.timeout}s sending metrics") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Failed to send metrics: {e}") from e

        if response.status_code != 202:
            raise TransportError(
                f"Unexpected status code: {response.status_code}",
                status_code=response.status_code
            )

        logger.debug(
            "Batch accepted",
            extra={'context': {'host_id': batch.host_id, 'count': len(batch.metrics)}}
        )
