from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from keycabinet.api.auth_middleware import require_admin, require_auth
from keycabinet.api.error_handlers import parse_body
from keycabinet.database import get_db
from keycabinet.schemas.key import (
    KeyCreateRequest,
    KeyDetailResponse,
    KeyResponse,
    KeyUpdateRequest,
)
from keycabinet.schemas.loan import BorrowRequest, LoanPageResponse, LoanResponse
from keycabinet.services.checkout_service import CheckoutService
from keycabinet.services.key_service import KeyService
from keycabinet.services.loan_ledger import LoanLedger


keys_bp = Blueprint("keys", __name__, url_prefix="/api/keys")


def _loan_page(result: dict) -> dict:
    return LoanPageResponse(
        items=[LoanResponse.model_validate(loan) for loan in result["items"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
    ).model_dump(mode="json")


@keys_bp.route("", methods=["GET"])
@require_auth
def list_keys():
    status = request.args.get("status")
    search = request.args.get("search")
    with get_db() as db:
        keys = KeyService(db).list_keys(status=status, search=search)
        return jsonify([KeyResponse.model_validate(k).model_dump(mode="json") for k in keys])


@keys_bp.route("", methods=["POST"])
@require_admin
def create_key():
    req = parse_body(KeyCreateRequest, request.get_json(silent=True))
    with get_db() as db:
        key = KeyService(db).create_key(g.actor, name=req.name, description=req.description)
        return jsonify(KeyResponse.model_validate(key).model_dump(mode="json")), 201


@keys_bp.route("/<key_id>", methods=["GET"])
@require_auth
def get_key(key_id: str):
    with get_db() as db:
        key, open_loan = CheckoutService(db).key_status(key_id)
        response = KeyDetailResponse.model_validate(key)
        if open_loan is not None:
            response.open_loan = LoanResponse.model_validate(open_loan)
        return jsonify(response.model_dump(mode="json"))


@keys_bp.route("/<key_id>", methods=["PATCH"])
@require_admin
def update_key(key_id: str):
    req = parse_body(KeyUpdateRequest, request.get_json(silent=True))
    with get_db() as db:
        key = KeyService(db).update_key(g.actor, key_id, name=req.name, description=req.description)
        return jsonify(KeyResponse.model_validate(key).model_dump(mode="json"))


@keys_bp.route("/<key_id>", methods=["DELETE"])
@require_admin
def delete_key(key_id: str):
    force = (request.args.get("force") or "").strip().lower() in ("true", "1", "yes")
    with get_db() as db:
        KeyService(db).delete_key(g.actor, key_id, force=force)
        return "", 204


@keys_bp.route("/<key_id>/borrow", methods=["POST"])
@require_auth
def borrow_key(key_id: str):
    req = parse_body(BorrowRequest, request.get_json(silent=True))
    with get_db() as db:
        loan = CheckoutService(db).borrow(g.actor, key_id, duration_hours=req.duration_hours)
        return jsonify(LoanResponse.model_validate(loan).model_dump(mode="json")), 201


@keys_bp.route("/<key_id>/return", methods=["POST"])
@require_auth
def return_key(key_id: str):
    with get_db() as db:
        loan = CheckoutService(db).return_key(g.actor, key_id)
        return jsonify(LoanResponse.model_validate(loan).model_dump(mode="json"))


@keys_bp.route("/<key_id>/force-return", methods=["POST"])
@require_admin
def force_return_key(key_id: str):
    with get_db() as db:
        loan = CheckoutService(db).force_return(g.actor, key_id)
        return jsonify(LoanResponse.model_validate(loan).model_dump(mode="json"))


@keys_bp.route("/<key_id>/loans", methods=["GET"])
@require_auth
def list_key_loans(key_id: str):
    """Loan history of a key, newest first (paged)."""
    page = request.args.get("page", type=int) or 1
    page_size = request.args.get("page_size", type=int) or 25
    with get_db() as db:
        KeyService(db).get_key(key_id)
        result = LoanLedger(db).list_by_key(key_id, page=page, page_size=page_size)
        return jsonify(_loan_page(result))
