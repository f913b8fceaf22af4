# voicerouter/utils/exceptions.py
# -*- coding: utf-8 -*-
"""
Custom Exception Classes for the Routing Engine.

These exceptions are raised by the service layer (repository lookups, the
cache/lock layer, the ring group hunter) and are translated by the resolver
into protocol responses. None of them is ever allowed to reach the carrier
as a transport-level error.
"""

class ServiceError(Exception):
    """Base class for service layer exceptions."""
    status_code = 500  # Default to Internal Server Error
    message = "An unexpected service error occurred."

    def __init__(self, message=None, status_code=None):
        super().__init__(message or self.message)
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"message": str(self)}


class ResourceNotFound(ServiceError):
    """Raised when a DID, extension, ring group or menu is absent or inactive."""
    status_code = 404
    message = "The requested resource was not found."


class ConfigurationError(ServiceError):
    """Raised when a routing target is missing required sub-configuration."""
    status_code = 422
    message = "Routing configuration is incomplete."


class LockTimeout(ServiceError):
    """Raised when a named lock could not be acquired within its wait window."""
    status_code = 503
    message = "Timed out waiting for lock."

    def __init__(self, name=None, message=None):
        super().__init__(message or (f"Could not acquire lock '{name}' in time." if name else None))
        self.name = name


class LockBackendFailure(ServiceError):
    """Raised when neither the primary nor the fallback lock mechanism is usable."""
    status_code = 503
    message = "Lock backend unavailable."


class CacheUnavailable(ServiceError):
    """Raised internally when the primary cache backend cannot be reached."""
    status_code = 503
    message = "Cache backend unavailable."
