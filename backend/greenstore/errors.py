# Overview: Typed application errors and the JSON error envelope.

"""
Error taxonomy shared by routes and services.

Business rejections (insufficient stock, invalid discount, ceiling breach) are
AppError subclasses raised inside a unit of work; they roll the transaction back
and reach the client verbatim. Anything else is an infrastructure failure: it is
logged with full detail and surfaced as an opaque INTERNAL_ERROR.
"""

from __future__ import annotations

from typing import Any

from flask import g, jsonify


INVALID_REQUEST = "INVALID_REQUEST"
VALIDATION_ERROR = "VALIDATION_ERROR"
NOT_FOUND = "NOT_FOUND"
UNAUTHORIZED = "UNAUTHORIZED"
FORBIDDEN = "FORBIDDEN"
CONFLICT = "CONFLICT"
INTERNAL_ERROR = "INTERNAL_ERROR"

INTERNAL_ERROR_MESSAGE = "Internal server error"


class AppError(Exception):
    """Base for every failure that maps onto an HTTP status and error code."""

    code = INTERNAL_ERROR
    status = 500

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status: int | None = None,
        details: Any = None,
        expose: bool = True,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status
        self.details = details
        self.expose = expose

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message if self.expose else INTERNAL_ERROR_MESSAGE,
            "details": self.details if self.expose else None,
        }


class InvalidRequestError(AppError):
    code = INVALID_REQUEST
    status = 400


class ValidationError(AppError):
    """400-level field constraint failures; details is a list of {field, message}."""

    code = VALIDATION_ERROR
    status = 400

    def __init__(self, errors: list[dict], message: str = "Validation failed"):
        super().__init__(message, details=errors)
        self.errors = errors


class NotFoundError(AppError):
    code = NOT_FOUND
    status = 404


class UnauthorizedError(AppError):
    code = UNAUTHORIZED
    status = 401


class ForbiddenError(AppError):
    code = FORBIDDEN
    status = 403


class ConflictError(AppError):
    code = CONFLICT
    status = 409


class BusinessRuleError(AppError):
    """
    Deliberate rejection of a known-invalid state (e.g. insufficient stock).

    The raiser picks the status; the code follows from it.
    """

    def __init__(self, message: str, *, status: int = 400, details: Any = None):
        super().__init__(
            message,
            code=_CODE_BY_STATUS.get(status, INVALID_REQUEST),
            status=status,
            details=details,
        )


class InfrastructureError(AppError):
    """Database or driver failure. Never exposes its message to the client."""

    code = INTERNAL_ERROR
    status = 500

    def __init__(self, message: str = INTERNAL_ERROR_MESSAGE):
        super().__init__(message, expose=False)


class ApprovalError(AppError):
    pass


class ApprovalRequiredError(ApprovalError):
    code = UNAUTHORIZED
    status = 401

    def __init__(self, message: str = "Approval required"):
        super().__init__(message, details={"reason": "required"})


class ApprovalInvalidError(ApprovalError):
    code = FORBIDDEN
    status = 403

    def __init__(self, message: str = "Approval invalid"):
        super().__init__(message, details={"reason": "invalid"})


class ApprovalExpiredError(ApprovalError):
    code = FORBIDDEN
    status = 403

    def __init__(self, message: str = "Approval expired"):
        super().__init__(message, details={"reason": "expired"})


_CODE_BY_STATUS = {
    400: INVALID_REQUEST,
    401: UNAUTHORIZED,
    403: FORBIDDEN,
    404: NOT_FOUND,
    409: CONFLICT,
}


def error_body(error: dict) -> dict:
    return {"error": error, "request_id": getattr(g, "request_id", None)}


def error_response(err: AppError):
    return jsonify(error_body(err.to_dict())), err.status
