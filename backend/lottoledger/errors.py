# Overview: Error taxonomy shared by services and routes.

"""
Ledger errors.

Every error raised by the box and ticket services is a LedgerError with the
HTTP status the routes report it as. Routes translate these into JSON
responses; nothing here is fatal to the process.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for recoverable ledger errors."""

    status_code = 500

    def __init__(self, message: str, *, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(LedgerError):
    """Referenced box, ticket pack or store does not exist."""

    status_code = 404


class ValidationError(LedgerError, ValueError):
    """Malformed input, serial out of range, or non-monotonic manual entry."""

    status_code = 400


class StoreAccessError(LedgerError):
    """Entity belongs to a different store than the request context."""

    status_code = 403


class DepletedError(LedgerError):
    """Scan attempted on a pack with no remaining tickets."""

    status_code = 409


class ConcurrencyConflictError(LedgerError):
    """Optimistic update lost the race too many times; caller should retry."""

    status_code = 409


class PersistenceError(LedgerError):
    """Underlying storage is unavailable."""

    status_code = 500
