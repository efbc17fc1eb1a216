"""
Error taxonomy shared by the store, the command surface and the adapters.
"""


class IVPrepError(Exception):
    """Base class for all application errors."""


class ValidationError(IVPrepError, ValueError):
    """A mandatory field is missing or a value is outside its vocabulary."""


class AuthError(IVPrepError, ValueError):
    """Authentication failed. The message never says why."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class PermissionDenied(IVPrepError, ValueError):
    """The authenticated user lacks the permission a command requires."""


class NotFound(IVPrepError, LookupError):
    """The requested record does not exist."""


class StorageError(IVPrepError):
    """The underlying database engine failed."""
