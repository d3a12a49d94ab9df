from flask import Blueprint, jsonify

from keycabinet.api.auth_middleware import require_admin
from keycabinet.database import get_db
from keycabinet.schemas.audit import AuditLogResponse
from keycabinet.services.audit_service import AuditService
from keycabinet.utils.exceptions import ValidationError


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")

AUDITED_ENTITIES = ("key", "loan", "user")


@audit_bp.route("/<entity_type>/<entity_id>", methods=["GET"])
@require_admin
def get_entity_audit(entity_type: str, entity_id: str):
    """Get the audit trail of a key, loan or user, newest first"""
    if entity_type not in AUDITED_ENTITIES:
        raise ValidationError(
            f"Entity type must be one of: {list(AUDITED_ENTITIES)}",
            field="entity_type",
            details={"allowed": list(AUDITED_ENTITIES), "provided": entity_type},
        )
    with get_db() as db:
        entries = AuditService(db).list_for_entity(entity_type, entity_id)
        return jsonify([AuditLogResponse.model_validate(e).model_dump(mode="json") for e in entries])
