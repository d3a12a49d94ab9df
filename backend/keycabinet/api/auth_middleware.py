"""
Authentication middleware.

Resolves the session token to a user and attaches an ``Actor`` to the
request context. Routes pass ``g.actor`` explicitly into services.
"""

import logging
from functools import wraps
from typing import Optional

from flask import request, g, jsonify

from keycabinet.config import settings
from keycabinet.database import get_db_session
from keycabinet.services.access_policy import Actor
from keycabinet.services.auth_service import validate_session

logger = logging.getLogger(__name__)

# Routes that don't require authentication
PUBLIC_ROUTES = [
    "/health",
]


def _get_session_token() -> Optional[str]:
    auth_header = (request.headers.get("Authorization") or "").strip()
    if auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(settings.session_cookie_name)


def init_auth_middleware(app):
    """
    Initialize authentication middleware for the Flask app.

    Runs before every request; the user is loaded in a short-lived session
    and only the immutable ``Actor`` snapshot is kept on ``g``.
    """

    @app.before_request
    def authenticate_request():
        g.actor = None
        g.session_id = None

        # Browsers send CORS preflights without credentials.
        if request.method == "OPTIONS":
            return None

        path = request.path
        token = _get_session_token()
        if token:
            db = get_db_session()
            try:
                result = validate_session(db, token)
                if result:
                    user, session = result
                    g.actor = Actor.from_user(user)
                    g.session_id = str(session.id)
                else:
                    logger.debug(f"Invalid session: {token[:8]}...")
            finally:
                db.close()

        if any(path.startswith(r) for r in PUBLIC_ROUTES):
            return None

        if g.actor is None and path.startswith("/api/"):
            return jsonify({"error": {"code": "UNAUTHENTICATED", "message": "Authentication required"}}), 401

        return None


def get_current_actor() -> Optional[Actor]:
    return getattr(g, "actor", None)


def require_auth(f):
    """
    Decorator to require authentication for a route.

    Usage:
        @bp.route("/protected")
        @require_auth
        def protected_route():
            actor = g.actor  # Guaranteed to exist
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if get_current_actor() is None:
            return jsonify({"error": {"code": "UNAUTHENTICATED", "message": "Authentication required"}}), 401
        return f(*args, **kwargs)
    return decorated_function


def require_admin(f):
    """Decorator to require an active administrator for a route."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor = get_current_actor()
        if actor is None:
            return jsonify({"error": {"code": "UNAUTHENTICATED", "message": "Authentication required"}}), 401

        if not actor.is_admin or not actor.is_active:
            return jsonify({"error": {"code": "PERMISSION_DENIED", "message": "Admin access required"}}), 403

        return f(*args, **kwargs)

    return decorated_function
