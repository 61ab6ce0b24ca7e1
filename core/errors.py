"""
core/errors.py -- Domain error kinds raised by the account and auth layers.

Every error carries the HTTP status and machine-readable code the API layer
reports. api/main.py registers one exception handler for AccountError that
turns any subclass into the standard {"error": {...}} envelope, so routes and
stores raise these directly instead of building HTTPException payloads.

Layer rule: no imports from api/ or auth/.
"""

from __future__ import annotations


class AccountError(Exception):
    """Base class for errors surfaced directly to the caller."""

    status_code: int = 400
    code: str = "bad_request"
    message: str = "Bad request."

    def __init__(self, message: str | None = None, detail: str | None = None) -> None:
        self.message = message or self.message
        self.detail = detail
        super().__init__(self.message)


class ValidationFailed(AccountError):
    """A field is missing or malformed."""

    status_code = 422
    code = "validation_error"
    message = "Request validation failed."


class InvalidPhoneNumber(AccountError):
    """The phone number cannot be parsed or is invalid per numbering rules."""

    status_code = 422
    code = "invalid_phone_number"
    message = "Invalid phone number"


class Conflict(AccountError):
    """One or more unique fields already belong to another account.

    fields lists every clashing field, not just the first one found.
    """

    status_code = 409
    code = "conflict"

    def __init__(self, fields: list[str]) -> None:
        self.fields = list(fields)
        super().__init__(f"Already taken: {', '.join(self.fields)}.")


class InvalidCredentials(AccountError):
    """Login failed. The message never reveals which check failed."""

    status_code = 401
    code = "invalid_credentials"
    message = "The provided credentials are incorrect."


class NotFound(AccountError):
    status_code = 404
    code = "not_found"
    message = "Not found."


class Forbidden(AccountError):
    status_code = 403
    code = "forbidden"
    message = "You are not allowed to perform this action."
