"""
logcore: Standardized JSON logging library

Structured JSON logging shared by the metrics agent and the monitoring center.
"""

from logcore.logger import JSONFormatter, get_logger

__all__ = ['JSONFormatter', 'get_logger']
__version__ = '1.1.0'
