"""Exceptions raised by the permission engine."""


class RBACError(Exception):
    """Base class for permission engine errors."""


class InvalidPermissionData(RBACError, ValueError):
    """Raised when a persisted or supplied value is outside the closed vocabulary."""

    def __init__(self, message: str, *, field: str = "", value=None):
        super().__init__(message)
        self.field = field
        self.value = value


class UnknownModuleError(RBACError, LookupError):
    """Raised when a module key does not exist in the registry."""

    def __init__(self, key: str):
        super().__init__(f"Permission module not found: {key}")
        self.key = key


class UnknownUserError(RBACError, LookupError):
    """Raised when a user record does not exist."""

    def __init__(self, user_id):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class SystemModuleError(RBACError):
    """Raised when attempting to delete a system module."""

    def __init__(self, key: str):
        super().__init__(f"System module cannot be deleted: {key}")
        self.key = key
