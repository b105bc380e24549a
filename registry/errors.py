"""
Registry exceptions - semantic error types raised by the service layer.

Each carries the HTTP status the web layer answers with, so route handlers
never translate errors by hand.
"""


class RegistryError(Exception):
    """Base class for registry errors."""

    status_code = 500

    def __init__(self, message: str = '') -> None:
        super().__init__(message or self.__class__.__doc__.strip())
        self.message = message or self.__class__.__doc__.strip()


class ValidationError(RegistryError):
    """Bad Request"""

    status_code = 400


class UnauthorizedError(RegistryError):
    """Unauthorized"""

    status_code = 401


class ConflictError(RegistryError):
    """Already claimed"""

    status_code = 409


class StoreError(RegistryError):
    """Registry store unavailable"""

    status_code = 500


class NotificationError(RegistryError):
    """Confirmation email could not be sent"""

    status_code = 500
