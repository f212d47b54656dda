# Overview: Request authentication and role decorators for API routes.

from functools import wraps
from flask import request, g

from .errors import ForbiddenError, UnauthorizedError, error_response
from .services import session_service
from .services.auth_service import has_role


APPROVAL_HEADER = "X-Approval-Token"


def _is_authenticated() -> bool:
    return getattr(g, "current_user", None) is not None


def require_auth(f):
    """
    Require a valid bearer session.

    Sets g.current_user to the authenticated User.

    Returns 401 if:
    - No Authorization header
    - Invalid, revoked or expired token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return error_response(UnauthorizedError("Authentication required"))

        token = auth_header.split(" ", 1)[1].strip()

        user = session_service.validate_session(token)
        if user is None:
            return error_response(UnauthorizedError("Invalid or expired session"))

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_role(role: str):
    """
    Require at least the given role level (operator < supervisor < manager < admin).

    Must be stacked under @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return error_response(UnauthorizedError("Authentication required"))

            if not has_role(g.current_user, role):
                return error_response(
                    ForbiddenError("Access denied", details={"required_role": role})
                )

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def approval_token_from_request() -> str | None:
    token = request.headers.get(APPROVAL_HEADER)
    if token is None:
        return None
    return token.strip() or None
