"""
Audit trail of operator, company and client actions.

:func:`record_audit` only adds the row to the session; it is committed
(or rolled back) together with the change it describes.
"""

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.domain.models import AuditLog


def record_audit(
    db: Session,
    action: str,
    resource_type: str,
    resource_id,
    *,
    actor: Optional[str] = None,
    role: Optional[str] = None,
    description: Optional[str] = None,
    changes: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    entry = AuditLog(
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id),
        actor=actor,
        role=role,
        description=description,
        changes=changes or None,
    )
    db.add(entry)
    return entry


def list_audit_logs(
    db: Session,
    actor: Optional[str] = None,
    action: Optional[str] = None,
    resource_id: Optional[str] = None,
    limit: int = 100,
):
    """Newest first."""
    query = db.query(AuditLog)
    if actor:
        query = query.filter(AuditLog.actor == actor)
    if action:
        query = query.filter(AuditLog.action == action)
    if resource_id:
        query = query.filter(AuditLog.resource_id == resource_id)
    return query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
