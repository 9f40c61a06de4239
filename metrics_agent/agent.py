#!/usr/bin/env python3
"""
Metrics agent daemon - entry point for the collection loop.
"""

import logging
import os
import signal
import sys
import threading
from typing import Optional

import click

from logcore import get_logger
from metrics_agent.collectors import SystemCollector
from metrics_agent.config import load_config
from metrics_agent.errors import ConfigError
from metrics_agent.scheduler import Scheduler
from metrics_agent.sender import HTTPSender


class MetricsAgent:
    """Wires collector, sender and scheduler and handles shutdown signals"""

    def __init__(self, config, collector=None, sender=None):
        self.config = config
        self.stop_event = threading.Event()
        self.scheduler = Scheduler(
            collector=collector or SystemCollector(),
            sender=sender or HTTPSender(config.monitoring_center_url, config.request_timeout),
            host_id=config.host_id,
            interval=config.polling_interval
        )
        self.logger = logging.getLogger('metrics_agent')

    def install_signal_handlers(self):
        signal.signal(signal.SIGTERM, self._handle_shutdown)
        signal.signal(signal.SIGINT, self._handle_shutdown)

    def _handle_shutdown(self, signum, frame):
        """Handle shutdown signals gracefully"""
        self.logger.info("Received shutdown signal", extra={'context': {'signal': signum}})
        self.stop_event.set()

    def run(self):
        """Main daemon loop"""
        self.logger.info(
            "Starting agent",
            extra={'context': {
                'host_id': self.config.host_id,
                'monitoring_center_url': self.config.monitoring_center_url,
                'polling_interval': self.config.polling_interval,
            }}
        )
        self.scheduler.run(self.stop_event)

    def run_once(self) -> bool:
        return self.scheduler.run_cycle()


@click.command()
@click.option('--config', 'config_path', type=click.Path(exists=True), default=None,
              help='Optional YAML config file (environment overrides it)')
@click.option('--host-id', default=None, help='Host identifier (overrides HOST_ID)')
@click.option('--once', is_flag=True, help='Run a single collection cycle and exit')
@click.option('--verbose', '-v', is_flag=True, help='Debug logging')
@click.option('--plain-logs', is_flag=True, help='Human-readable logs instead of JSON')
def main(config_path: Optional[str], host_id: Optional[str], once: bool, verbose: bool, plain_logs: bool):
    """Run the metrics agent daemon"""
    environ = dict(os.environ)
    if host_id:
        environ['HOST_ID'] = host_id

    try:
        config = load_config(config_path, environ=environ)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    get_logger(
        'metrics_agent',
        level=logging.DEBUG if verbose else logging.INFO,
        use_json=not plain_logs,
        static_fields={'host_id': config.host_id}
    )

    agent = MetricsAgent(config)
    if once:
        sys.exit(0 if agent.run_once() else 1)

    agent.install_signal_handlers()
    agent.run()


if __name__ == '__main__':
    main()
