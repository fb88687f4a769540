"""Domain exceptions shared by services and translated at the HTTP boundary."""
from __future__ import annotations


class FleetLedgerError(Exception):
    """Base class for errors that carry a user-facing message."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(FleetLedgerError):
    """Bad or missing input; nothing was written."""

    status_code = 400


class AuthorizationError(FleetLedgerError):
    """The principal may not act on the referenced record."""

    status_code = 403


class NotFoundError(FleetLedgerError):
    """A referenced entity does not exist."""

    status_code = 404


class ConflictError(FleetLedgerError):
    """A unique key (slug, company name, truck name per owner, ...) is taken."""

    status_code = 409


class PersistenceError(FleetLedgerError):
    """The database aborted or timed out; the unit of work was rolled back."""

    status_code = 500


__all__ = [
    "AuthorizationError",
    "ConflictError",
    "FleetLedgerError",
    "NotFoundError",
    "PersistenceError",
    "ValidationError",
]
