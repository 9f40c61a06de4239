"""
Agent-side error types.
"""


class AgentError(Exception):
    """Base class for agent errors"""
    pass


class ConfigError(AgentError):
    """Configuration validation error"""
    pass


class CollectionError(AgentError):
    """A sensor read failed; fatal for the current cycle"""
    pass


class TransportError(AgentError):
    """Delivery failed (network, timeout or non-202 response); retryable"""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code
