"""Error taxonomy for the reward economy.

Services raise these; the global exception handler renders each one as
``{"detail": message}`` with its ``status_code``.
"""

from __future__ import annotations


class EconomyError(Exception):
    """Base class for errors with a user-readable message."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unauthorized(EconomyError):
    """Missing or invalid bearer token."""

    status_code = 401


class ValidationError(EconomyError, ValueError):
    """Malformed or out-of-range input."""

    status_code = 400


class BusinessRuleRejection(EconomyError, ValueError):
    """Well-formed request refused by an economy rule."""

    status_code = 400


class InsufficientBalance(BusinessRuleRejection):
    pass


class CompetitionNotActive(BusinessRuleRejection):
    pass


class DuplicateGrant(BusinessRuleRejection):
    pass


class NotFound(EconomyError):
    status_code = 404


class RemoteFailure(EconomyError):
    """The data store (or another backing service) failed."""

    status_code = 500
