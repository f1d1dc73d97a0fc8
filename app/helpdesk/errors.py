"""
Error taxonomy shared by the store, repository, audit and authorization layers.

Every error carries a message that is safe to show to the user; the underlying
driver/transport error (if any) is chained as __cause__ and only logged.
"""

from __future__ import annotations


class HelpdeskError(RuntimeError):
    default_message = "Unexpected error."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class StoreUnavailable(HelpdeskError):
    default_message = "The data service is unavailable. Please try again in a moment."


class ValidationRejectedByStore(HelpdeskError):
    default_message = "The record was rejected by the data service."


class NotFound(HelpdeskError):
    default_message = "Record not found (it may have been removed)."


class AuthenticationFailed(HelpdeskError):
    default_message = "Invalid email or password."


class AuthorizationDenied(HelpdeskError):
    default_message = "You do not have permission to perform this action."


class LogoTooLarge(HelpdeskError):
    default_message = "The logo image must be at most 2MB."
