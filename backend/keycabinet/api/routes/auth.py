"""
Auth routes.

Login and signup belong to the authentication service; only the current
identity and logout are exposed here.
"""

from flask import Blueprint, g, jsonify, make_response

from keycabinet.api.auth_middleware import require_auth
from keycabinet.config import settings
from keycabinet.database import get_db
from keycabinet.schemas.user import UserResponse
from keycabinet.services.auth_service import revoke_session
from keycabinet.services.user_service import UserService


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.route("/me", methods=["GET"])
@require_auth
def get_me():
    with get_db() as db:
        user = UserService(db).get_user(g.actor.user_id)
        return jsonify(UserResponse.model_validate(user).model_dump(mode="json"))


@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    with get_db() as db:
        revoke_session(db, g.session_id)
    response = make_response(jsonify({"success": True}))
    response.delete_cookie(settings.session_cookie_name)
    return response
