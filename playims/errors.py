"""Auth error taxonomy.

Every error carries the HTTP status, a stable machine code, and a message
that is safe to show to an unauthenticated caller. Internal detail stays in
the exception chain and the logs.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class AuthError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "AUTH_ERROR"
    client_message: str = "Authentication failed."

    def __init__(
        self,
        client_message: str | None = None,
        headers: dict[str, str] | None = None,
    ):
        if client_message is not None:
            self.client_message = client_message
        self.headers = headers
        super().__init__(self.code)


class ValidationError(AuthError):
    """Raised when request input is malformed or out of range.

    Parameters:
        fields: Mapping of field name to the first message for that field.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    code = "AUTH_INVALID_INPUT"
    client_message = "Invalid request payload."

    def __init__(self, fields: dict[str, str] | None = None):
        self.fields = fields or {}
        super().__init__()

    @classmethod
    def from_errors(cls, errors) -> "ValidationError":
        """Build from pydantic error dicts, keeping the first message per field."""
        fields: dict[str, str] = {}
        for error in errors:
            loc = [str(part) for part in error.get("loc", ()) if part != "body"]
            name = ".".join(loc) or "body"
            fields.setdefault(name, error.get("msg", "Invalid value"))
        return cls(fields)


class InvalidInviteError(AuthError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "AUTH_INVALID_INVITE_KEY"
    client_message = "Invalid invite key."


class DuplicateAccountError(AuthError):
    status_code = status.HTTP_409_CONFLICT
    code = "AUTH_ACCOUNT_EXISTS"
    client_message = "An account with that email already exists."


class InvalidCredentialsError(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AUTH_INVALID_CREDENTIALS"
    client_message = "Invalid email or password."


class AccountInactiveError(AuthError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "AUTH_ACCOUNT_INACTIVE"
    client_message = "Your account is not active."


class AuthenticationRequiredError(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AUTH_REQUIRED"
    client_message = "Authentication required."


class ForbiddenError(AuthError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "AUTH_FORBIDDEN"
    client_message = "You do not have access to this resource."


class RateLimitedError(AuthError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "AUTH_RATE_LIMITED"
    client_message = "Too many requests. Please try again later."

    def __init__(self, retry_after: int):
        self.retry_after = max(1, retry_after)
        super().__init__(headers={"Retry-After": str(self.retry_after)})


class StorageError(AuthError):
    code = "AUTH_STORAGE_ERROR"
    client_message = "Something went wrong. Please try again."


def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    body = {"success": False, "error": exc.client_message, "code": exc.code}
    if isinstance(exc, ValidationError) and exc.fields:
        body["fields"] = exc.fields
    return JSONResponse(
        status_code=exc.status_code, content=body, headers=exc.headers
    )


def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return auth_error_handler(request, ValidationError.from_errors(exc.errors()))


def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Unhandled database error on %s", request.url.path, exc_info=exc)
    return auth_error_handler(request, StorageError())


def install_exception_handlers(application: FastAPI) -> None:
    application.add_exception_handler(AuthError, auth_error_handler)
    application.add_exception_handler(
        RequestValidationError, request_validation_handler
    )
    application.add_exception_handler(SQLAlchemyError, database_error_handler)
