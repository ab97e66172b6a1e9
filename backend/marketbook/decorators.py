# Overview: Request authentication decorators for API routes.

from functools import wraps
from flask import request, g

from .errors import ForbiddenError, UnauthorizedError
from .services import session_service
from .services.provenance_service import RequestContext


ADMIN_TOKEN_HEADER = "X-Admin-Token"


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid USER bearer session.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object
    - g.request_context: RequestContext handed to services (user id, ip, user agent)

    Returns 401 if the Authorization header is missing, or the token is
    unknown, revoked, expired or an admin grant.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            raise UnauthorizedError("Authentication required")

        context = session_service.validate_session(token)
        if not context:
            raise UnauthorizedError("Invalid or expired token")

        g.current_user = context.user
        g.session_context = context
        g.request_context = RequestContext(
            user_id=context.user.id,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )

        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """
    Require an elevated admin grant in the X-Admin-Token header.

    Must be stacked under @require_auth. The grant has to belong to the same
    user as the bearer session.

    - missing header -> 401 "Admin token required"
    - invalid, expired, revoked or foreign grant -> 403 "Invalid admin token"
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, "current_user"):
            raise UnauthorizedError("Authentication required")

        admin_token = request.headers.get(ADMIN_TOKEN_HEADER)
        if not admin_token:
            raise UnauthorizedError("Admin token required")

        grant = session_service.validate_session(admin_token, scope=session_service.SCOPE_ADMIN)
        if not grant or grant.user.id != g.current_user.id:
            raise ForbiddenError("Invalid admin token")

        g.admin_context = grant
        return f(*args, **kwargs)

    return decorated_function
