"""
metrics_agent: Host metrics collection daemon

Periodically collects CPU, RAM and disk samples and delivers them to the
monitoring center over HTTP, retrying failed deliveries with backoff.
"""

from metrics_agent.collectors import SystemCollector
from metrics_agent.scheduler import Scheduler
from metrics_agent.sender import HTTPSender

__all__ = ['SystemCollector', 'HTTPSender', 'Scheduler']
__version__ = '1.0.0'
