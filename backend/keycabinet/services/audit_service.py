from datetime import datetime
from typing import Dict, Any, Optional
from sqlalchemy.orm import Session

from keycabinet.models.audit_log import SystemAuditLog


class AuditService:
    """Audit trail for administrative operations.

    Entries are added to the caller's session and committed together with the
    change they describe.
    """

    def __init__(self, db: Session):
        self.db = db

    def log_action(self,
                   entity_type: str,
                   entity_id: str,
                   action: str,
                   user_id: Optional[str] = None,
                   user_role: Optional[str] = None,
                   old_value: Optional[Dict[str, Any]] = None,
                   new_value: Optional[Dict[str, Any]] = None,
                   description: Optional[str] = None,
                   audit_metadata: Optional[Dict[str, Any]] = None) -> SystemAuditLog:
        """
        Log an action to the audit trail

        Args:
            entity_type: Type of entity ("key", "loan", "user")
            entity_id: ID of the entity
            action: Action performed ("created", "updated", "deleted", "force_returned", ...)
            user_id: ID of user who performed the action
            user_role: Role of the user
            old_value: Previous state of the entity
            new_value: New state of the entity
            description: Human-readable description
            audit_metadata: Additional context data

        Returns:
            The created audit log entry
        """

        audit_log = SystemAuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            user_id=user_id,
            user_role=user_role,
            old_value=old_value,
            new_value=new_value,
            description=description,
            audit_metadata=audit_metadata,
            timestamp=datetime.utcnow()
        )

        self.db.add(audit_log)
        return audit_log

    def log_key_action(self, key_id: str, action: str, actor=None, **kwargs) -> SystemAuditLog:
        """Log a key-related action"""
        return self.log_action("key", key_id, action, *_actor_fields(actor), **kwargs)

    def log_loan_action(self, loan_id: str, action: str, actor=None, **kwargs) -> SystemAuditLog:
        """Log a loan-related action"""
        return self.log_action("loan", loan_id, action, *_actor_fields(actor), **kwargs)

    def log_user_action(self, user_id: str, action: str, actor=None, **kwargs) -> SystemAuditLog:
        """Log a user-related action"""
        return self.log_action("user", user_id, action, *_actor_fields(actor), **kwargs)

    def list_for_entity(self, entity_type: str, entity_id: str) -> list[SystemAuditLog]:
        return (
            self.db.query(SystemAuditLog)
            .filter(SystemAuditLog.entity_type == entity_type, SystemAuditLog.entity_id == entity_id)
            .order_by(SystemAuditLog.timestamp.desc())
            .all()
        )


def _actor_fields(actor) -> tuple[Optional[str], Optional[str]]:
    if actor is None:
        return None, None
    return actor.user_id, actor.role
