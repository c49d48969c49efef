# Overview: Request decorators for API routes; bearer-token auth and admin gate.

from functools import wraps
from flask import request, jsonify, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'session_context')


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid session.

    Sets on flask.g:
    - g.session_context: the SessionContext (user, session, is_admin)
    - g.current_user: the authenticated User

    Returns 401 for a missing, unknown, expired or revoked token, and 503 when
    the session store stays unreachable after retries.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        try:
            context = session_service.validate_session(token)
        except SQLAlchemyError:
            current_app.logger.exception("Session validation failed")
            return jsonify({"error": "Session service unavailable"}), 503

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Admin-only endpoint. Must be stacked under @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        if not g.session_context.is_admin:
            return jsonify({"error": "Admin access required"}), 403
        return f(*args, **kwargs)

    return decorated_function
