"""
Exceptions raised at the boundary with the hosted identity service and record store.
"""
from typing import Optional


class IdentityServiceError(Exception):
    """An identity-service call failed. `message` is the service's own error text."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class RecordStoreError(Exception):
    """A record-store call failed."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class RecordNotFoundError(RecordStoreError):
    """The requested record does not exist (or is not visible to the caller)."""


class InputValidationError(ValueError):
    """Input rejected before it reaches the record store."""


class OperationError(Exception):
    """A wardrobe or profile mutation failed; the message is safe to show to the user."""


class ItemNotFoundError(OperationError):
    pass
