from flask import Blueprint, g, jsonify

from keycabinet.api.auth_middleware import require_auth
from keycabinet.database import get_db
from keycabinet.schemas.favorite import FavoriteResponse
from keycabinet.services.favorite_service import FavoriteService


favorites_bp = Blueprint("favorites", __name__, url_prefix="/api/favorites")


@favorites_bp.route("", methods=["GET"])
@require_auth
def list_favorites():
    with get_db() as db:
        favorites = FavoriteService(db).list_for_user(g.actor.user_id)
        return jsonify([FavoriteResponse.model_validate(f).model_dump(mode="json") for f in favorites])


@favorites_bp.route("/<key_id>", methods=["POST"])
@require_auth
def add_favorite(key_id: str):
    with get_db() as db:
        favorite = FavoriteService(db).add(g.actor, key_id)
        return jsonify(FavoriteResponse.model_validate(favorite).model_dump(mode="json")), 201


@favorites_bp.route("/<key_id>", methods=["DELETE"])
@require_auth
def remove_favorite(key_id: str):
    with get_db() as db:
        FavoriteService(db).remove(g.actor, key_id)
        return "", 204
