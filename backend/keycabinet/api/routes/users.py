from flask import Blueprint, g, jsonify, request

from keycabinet.api.auth_middleware import require_admin, require_auth
from keycabinet.api.error_handlers import parse_body
from keycabinet.database import get_db
from keycabinet.schemas.user import (
    AdminUserUpdateRequest,
    ProfileUpdateRequest,
    SummaryResponse,
    UserResponse,
)
from keycabinet.services.user_service import UserService


users_bp = Blueprint("users", __name__, url_prefix="/api")


def _parse_bool_arg(name: str):
    raw = request.args.get(name)
    if raw is None:
        return None
    return raw.strip().lower() in ("true", "1", "yes", "on")


@users_bp.route("/users", methods=["GET"])
@require_admin
def list_users():
    with get_db() as db:
        users = UserService(db).list_users(g.actor, active=_parse_bool_arg("active"))
        return jsonify([UserResponse.model_validate(u).model_dump(mode="json") for u in users])


@users_bp.route("/users/me", methods=["PATCH"])
@require_auth
def update_my_profile():
    req = parse_body(ProfileUpdateRequest, request.get_json(silent=True))
    with get_db() as db:
        user = UserService(db).update_profile(
            g.actor,
            display_name=req.display_name,
            bio=req.bio,
            avatar_url=req.avatar_url,
        )
        return jsonify(UserResponse.model_validate(user).model_dump(mode="json"))


@users_bp.route("/users/<user_id>", methods=["PATCH"])
@require_admin
def admin_update_user(user_id: str):
    req = parse_body(AdminUserUpdateRequest, request.get_json(silent=True))
    with get_db() as db:
        user = UserService(db).admin_update_user(
            g.actor,
            user_id,
            display_name=req.display_name,
            role=req.role,
            is_active=req.is_active,
        )
        return jsonify(UserResponse.model_validate(user).model_dump(mode="json"))


@users_bp.route("/admin/summary", methods=["GET"])
@require_admin
def admin_summary():
    with get_db() as db:
        summary = UserService(db).summary(g.actor)
        return jsonify(SummaryResponse(**summary).model_dump())
