"""
Audit logging service for tracking catalog changes.

Audit writes happen after the business transaction has committed and in a
transaction of their own: a failing audit write is logged and dropped, it
never undoes the change being audited.
"""
from app.models.audit_log import AuditLog, AuditAction
from datetime import datetime
import json
import logging

logger = logging.getLogger(__name__)


def _to_json(values):
    if values is None:
        return None
    try:
        return json.dumps(values, default=str)
    except (TypeError, ValueError) as e:
        logger.warning(f"Failed to serialize audit values: {e}")
        return str(values)


def log_action(
    session,
    tenant_id: int,
    user_id: int,
    action: AuditAction,
    entity_type: str = None,
    entity_id: int = None,
    old_value: dict = None,
    new_value: dict = None
):
    """
    Log an auditable action to the database (fire-and-forget).

    Args:
        session: Database session (its business transaction must be committed)
        tenant_id: Tenant ID
        user_id: Acting user, as provided by the auth collaborator
        action: AuditAction enum value
        entity_type: Type of entity affected (e.g., 'menu_line', 'item')
        entity_id: ID of the affected entity
        old_value: Dict with previous values
        new_value: Dict with new values

    Returns:
        The AuditLog entry, or None when logging failed
    """
    if not tenant_id:
        logger.warning(f"Cannot log action {action}: missing tenant_id")
        return None

    try:
        audit_entry = AuditLog(
            tenant_id=tenant_id,
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_values=_to_json(old_value),
            new_values=_to_json(new_value),
            created_at=datetime.utcnow()
        )
        session.add(audit_entry)
        session.commit()

        logger.info(f"Audit log created: {action.value} by user {user_id} on {entity_type} {entity_id}")
        return audit_entry

    except Exception as e:
        session.rollback()
        logger.error(f"Failed to create audit log: {e}")
        # Don't raise exception - audit failures should not break business logic
        return None


def get_audit_logs(
    session,
    tenant_id: int,
    limit: int = 100,
    offset: int = 0,
    action_filter: AuditAction = None,
    entity_type_filter: str = None
):
    """
    Retrieve audit logs for a tenant with optional filters.

    Returns:
        List of AuditLog objects, newest first
    """
    query = session.query(AuditLog).filter(
        AuditLog.tenant_id == tenant_id
    )

    if action_filter:
        query = query.filter(AuditLog.action == action_filter)

    if entity_type_filter:
        query = query.filter(AuditLog.entity_type == entity_type_filter)

    query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    query = query.limit(limit).offset(offset)

    return query.all()
