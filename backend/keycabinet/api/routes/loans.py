from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from keycabinet.api.auth_middleware import require_admin, require_auth
from keycabinet.api.routes.keys import _loan_page
from keycabinet.database import get_db
from keycabinet.schemas.loan import LoanResponse, SweepResponse
from keycabinet.services.access_policy import require_view_user
from keycabinet.services.loan_ledger import LoanLedger
from keycabinet.services.overdue_monitor import OverdueMonitor
from keycabinet.services.user_service import UserService


loans_bp = Blueprint("loans", __name__, url_prefix="/api")


def _page_args() -> tuple[int, int]:
    page = request.args.get("page", type=int) or 1
    page_size = request.args.get("page_size", type=int) or 25
    return page, page_size


@loans_bp.route("/loans/active", methods=["GET"])
@require_auth
def list_active_loans():
    with get_db() as db:
        loans = LoanLedger(db).list_active()
        return jsonify([LoanResponse.model_validate(loan).model_dump(mode="json") for loan in loans])


@loans_bp.route("/loans/overdue", methods=["GET"])
@require_admin
def list_overdue_loans():
    with get_db() as db:
        loans = LoanLedger(db).list_overdue()
        return jsonify([LoanResponse.model_validate(loan).model_dump(mode="json") for loan in loans])


@loans_bp.route("/loans/mine", methods=["GET"])
@require_auth
def list_my_loans():
    page, page_size = _page_args()
    with get_db() as db:
        result = LoanLedger(db).list_by_user(g.actor.user_id, page=page, page_size=page_size)
        return jsonify(_loan_page(result))


@loans_bp.route("/users/<user_id>/loans", methods=["GET"])
@require_auth
def list_user_loans(user_id: str):
    require_view_user(g.actor, user_id)
    page, page_size = _page_args()
    with get_db() as db:
        UserService(db).get_user(user_id)
        result = LoanLedger(db).list_by_user(user_id, page=page, page_size=page_size)
        return jsonify(_loan_page(result))


@loans_bp.route("/loans/sweep", methods=["POST"])
@require_admin
def run_overdue_sweep():
    """Run the overdue sweep now instead of waiting for the scheduler."""
    with get_db() as db:
        result = OverdueMonitor(db).sweep()
        response = SweepResponse(
            scanned=result.scanned,
            transitioned=result.transitioned,
            notified=result.notified,
            loan_ids=result.loan_ids,
        )
        return jsonify(response.model_dump())
