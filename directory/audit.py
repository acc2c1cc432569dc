"""
Admin audit trail.

Writes are best-effort: a failed audit write is logged and never turns a
successful admin action into a failed one.
"""

import json
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config.logging import logger
from directory.models import AdminAuditLog


def _json_safe(details: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    if details is None:
        return None
    return json.loads(json.dumps(details, default=str))


def log_admin_action(
    db: Session,
    action: str,
    business_id: Optional[str] = None,
    admin_user_id: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    commit: bool = False,
) -> Optional[AdminAuditLog]:
    """
    Record an admin action.

    Args:
        commit: Commit immediately. Otherwise the entry rides along with
            the caller's transaction.

    Returns:
        The log entry, or None if it could not be written
    """
    try:
        entry = AdminAuditLog(
            action=action,
            business_id=business_id,
            admin_user_id=admin_user_id,
            details=_json_safe(details),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.add(entry)
        if commit:
            db.commit()
        return entry
    except (SQLAlchemyError, TypeError, ValueError) as e:
        logger.error(f"Failed to write audit log for {action}: {e}")
        if commit:
            db.rollback()
        return None
