"""
Warden - Error Types
====================

Exception taxonomy shared by the store, cache, gateway and event sources.

DESIGN:
    Workflow code catches these by kind at the step boundary. Lock
    timeouts and a disabled cache are not errors and have no type here.
"""


class WardenError(Exception):
    """Base class for every error raised by Warden components."""
    pass


class InvalidEventError(WardenError):
    """An inbound event is malformed (bad identity, missing field)."""
    pass


class StorageError(WardenError):
    """The persistent store failed (connectivity loss, constraint violation)."""
    pass


class CacheError(WardenError):
    """Redis returned an error while the cache layer was enabled."""
    pass


class RemoteServiceError(WardenError):
    """
    A Discord API call failed.

    Attributes:
        retryable: Whether a later attempt could succeed (rate limit, 5xx).
    """

    def __init__(self, message: str, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


__all__ = [
    "WardenError",
    "InvalidEventError",
    "StorageError",
    "CacheError",
    "RemoteServiceError",
]
