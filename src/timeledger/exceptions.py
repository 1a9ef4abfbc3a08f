"""Custom exceptions for timeledger."""

from typing import Any, Optional


class LedgerError(Exception):
    """Base class for errors raised by the ledger services."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(LedgerError):
    """Raised when a resource is missing, or soft-deleted where it must be live."""

    def __init__(self, resource: str, resource_id: Optional[Any] = None):
        self.resource = resource
        self.resource_id = resource_id
        message = f"{resource} not found"
        if resource_id is not None:
            message += f": {resource_id}"
        super().__init__(message)


class ForbiddenError(LedgerError):
    """Raised when the caller does not own the entry it is acting on."""


class InvalidInputError(LedgerError):
    """Raised when a request fails validation before any write happens."""
