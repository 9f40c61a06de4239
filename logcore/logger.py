"""
LogCore: Standardized JSON logging for the agent and the monitoring center.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs one JSON object per log line.

    Output format:
    {
        "timestamp": "2026-02-08T20:30:00.123456Z",
        "level": "WARNING",
        "logger": "metrics_agent.scheduler",
        "message": "Delivery attempt failed",
        "host_id": "h1",                  # static fields, if configured
        "context": {"attempt": 1}         # Optional extra fields
    }
    """

    def __init__(self, static_fields: Optional[Dict[str, Any]] = None):
        super().__init__()
        self.static_fields = dict(static_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_data = {
            'timestamp': created.strftime('%Y-%m-%dT%H:%M:%S.%fZ'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        log_data.update(self.static_fields)

        # logger.info(..., extra={'context': {...}})
        context = getattr(record, 'context', None)
        if context:
            log_data['context'] = context

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': self.formatException(record.exc_info)
            }

        if record.levelno <= logging.DEBUG:
            log_data['source'] = {
                'file': record.pathname,
                'line': record.lineno,
                'function': record.funcName
            }

        return json.dumps(log_data, default=str)


def _make_formatter(use_json: bool, static_fields: Optional[Dict[str, Any]]) -> logging.Formatter:
    if use_json:
        return JSONFormatter(static_fields)
    return logging.Formatter(PLAIN_FORMAT)


def get_logger(
    name: str,
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    use_json: bool = True,
    static_fields: Optional[Dict[str, Any]] = None
) -> logging.Logger:
    """
    Configure and return a package-level logger.

    Module loggers below ``name`` (``logging.getLogger(__name__)``) propagate
    to it, so entry points call this once for their top-level package.
    Calling it again updates the level and formatter instead of adding
    duplicate handlers.

    Args:
        name: Logger name (typically the package name)
        level: Logging level (default: INFO)
        log_file: Optional file path for an additional file handler
        use_json: Use JSON formatter (default: True)
        static_fields: Fields stamped on every JSON line (e.g. host_id)

    Returns:
        Configured logger instance

    Example:
        logger = get_logger('metrics_agent', static_fields={'host_id': 'h1'})
        logger.info("Batch sent", extra={'context': {'count': 3}})
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    formatter = _make_formatter(use_json, static_fields)

    console_handler = None
    file_handler = None
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler):
            if log_file and handler.baseFilename == os.path.abspath(log_file):
                file_handler = handler
        elif isinstance(handler, logging.StreamHandler):
            console_handler = handler

    if console_handler is None:
        console_handler = logging.StreamHandler()
        logger.addHandler(console_handler)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    if log_file:
        if file_handler is None:
            file_handler = logging.FileHandler(log_file)
            logger.addHandler(file_handler)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)

    return logger
