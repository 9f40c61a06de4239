"""
Periodic collect-and-deliver loop.

Each tick launches its cycle on a separate daemon thread and goes straight
back to waiting, so a slow or stuck delivery never delays the next sample.
The price is that cycles are never joined: on shutdown, in-flight cycles are
abandoned (best-effort delivery), and overlapping cycles may reach the
monitoring center out of order.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from enum import Enum

from metrics_agent.errors import CollectionError, TransportError
from metrics_agent.models import MetricBatch

logger = logging.getLogger(__name__)

MIN_POLLING_INTERVAL = 10  # seconds
MAX_SEND_ATTEMPTS = 3


class SchedulerState(str, Enum):
    IDLE = 'idle'
    WAITING = 'waiting'
    COLLECTING = 'collecting'
    SHUTTING_DOWN = 'shutting_down'


class Scheduler:
    """Drives collection cycles and owns the delivery retry policy"""

    def __init__(
        self,
        collector,
        sender,
        host_id: str,
        interval: float = 300,
        max_attempts: int = MAX_SEND_ATTEMPTS,
        backoff_unit: float = 1.0,
        sleep=time.sleep,
        clock=time.monotonic
    ):
        if interval < MIN_POLLING_INTERVAL:
            logger.warning(
                "Polling interval too low, raising to minimum",
                extra={'context': {'configured': interval, 'minimum': MIN_POLLING_INTERVAL}}
            )
            interval = MIN_POLLING_INTERVAL

        self.collector = collector
        self.sender = sender
        self.host_id = host_id
        self.interval = interval
        self.max_attempts = max_attempts
        self.backoff_unit = backoff_unit
        self._sleep = sleep
        self._clock = clock
        self.state = SchedulerState.IDLE

    def run(self, stop_event: threading.Event) -> None:
        """
        Run until stop_event is set.

        The first cycle runs synchronously so startup problems show up
        immediately. Cancellation is only observed while waiting for a tick.
        """
        self.state = SchedulerState.IDLE
        logger.info(
            "Scheduler started",
            extra={'context': {'host_id': self.host_id, 'interval_seconds': self.interval}}
        )
        self.run_cycle()

        next_tick = self._clock() + self.interval
        while True:
            self.state = SchedulerState.WAITING
            if stop_event.wait(max(0.0, next_tick - self._clock())):
                break

            self.state = SchedulerState.COLLECTING
            self._spawn_cycle()

            # Ticker semantics: missed ticks are dropped, not replayed
            next_tick += self.interval
            now = self._clock()
            if next_tick <= now:
                next_tick = now + self.interval

        self.state = SchedulerState.SHUTTING_DOWN
        logger.info("Scheduler stopped; in-flight cycles are not awaited")

    def _spawn_cycle(self) -> threading.Thread:
        thread = threading.Thread(target=self.run_cycle, name='metrics-cycle', daemon=True)
        thread.start()
        return thread

    def run_cycle(self) -> bool:
        """
        One collect-then-deliver cycle.

        Never raises: every failure, expected or not, is logged and reported
        as False so a bad cycle cannot take down the loop.
        """
        try:
            metrics = self.collector.collect()
            batch = MetricBatch(
                host_id=self.host_id,
                metrics=tuple(metrics),
                timestamp=datetime.now(timezone.utc)
            )
            return self.deliver(batch)
        except CollectionError as e:
            logger.error("Collection failed", extra={'context': {'error': str(e)}})
        except Exception:
            logger.exception("Unexpected error in collection cycle")
        return False

    def deliver(self, batch: MetricBatch) -> bool:
        """Send batch with up to max_attempts tries, sleeping n**2 units after attempt n"""
        for attempt in range(1, self.max_attempts + 1):
            try:
                self.sender.send(batch)
            except TransportError as e:
                if attempt == self.max_attempts:
                    logger.error(
                        "Delivery failed, dropping batch",
                        extra={'context': {'attempts': attempt, 'count': len(batch.metrics), 'error': str(e)}}
                    )
                    return False

                backoff = attempt * attempt * self.backoff_unit
                logger.warning(
                    "Delivery attempt failed, retrying",
                    extra={'context': {'attempt': attempt, 'backoff_seconds': backoff, 'error': str(e)}}
                )
                self._sleep(backoff)
                continue

            logger.info("Successfully sent metrics", extra={'context': {'count': len(batch.metrics)}})
            return True

        return False
