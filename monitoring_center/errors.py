"""
Server-side error types, mapped to HTTP responses in api.py.
"""


class MonitoringCenterError(Exception):
    """Base class for monitoring center errors"""
    pass


class ValidationError(MonitoringCenterError):
    """Malformed batch or request; reported as 400 and never retried"""
    pass


class HostNotFoundError(ValidationError):
    """Batch references a host that is not registered; reported as 404"""

    def __init__(self, host_id: str):
        super().__init__(f"Host not found: {host_id}")
        self.host_id = host_id


class StorageError(MonitoringCenterError):
    """Persistence failure; reported as 500 and not retried by the store"""
    pass


class HostLookupError(StorageError):
    """The Host Directory could not be read while validating a batch"""
    pass
