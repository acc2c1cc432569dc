"""
Shared FastAPI dependencies: database sessions, admin auth, and the
error/audit wrapper used by every admin endpoint.
"""

import functools
import secrets
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from config.logging import get_logger
from config.settings import settings
from directory.audit import log_admin_action
from directory.database import get_db
from directory.exceptions import AuthorizationError, DirectoryError

logger = get_logger("api")

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class AdminContext:
    """Who made the request, for the audit trail."""
    admin_user_id: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def require_admin(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AdminContext:
    """
    Check the bearer token against ADMIN_API_TOKEN.

    An empty ADMIN_API_TOKEN rejects every request.
    """
    token = credentials.credentials if credentials else ""
    expected = settings.ADMIN_API_TOKEN
    if not expected or not secrets.compare_digest(token, expected):
        logger.warning(f"Rejected admin request to {request.url.path}")
        raise AuthorizationError()

    forwarded = request.headers.get("x-forwarded-for")
    ip_address = forwarded.split(",")[0].strip() if forwarded else None
    if not ip_address and request.client:
        ip_address = request.client.host

    return AdminContext(
        admin_user_id=request.headers.get("x-admin-user-id", "admin"),
        ip_address=ip_address or "unknown",
        user_agent=request.headers.get("user-agent", "unknown"),
    )


def audited(error_action: str):
    """
    Wrap an admin endpoint so failures are rolled back, audited and mapped
    to DirectoryError.

    The endpoint must take `db` and `admin` keyword arguments.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            db: Session = kwargs["db"]
            admin: AdminContext = kwargs["admin"]
            try:
                return func(*args, **kwargs)
            except DirectoryError as e:
                db.rollback()
                logger.warning(f"{func.__name__} failed: {e.error_code}: {e.message}")
                _log_failure(db, admin, error_action, e.message)
                raise
            except Exception as e:
                db.rollback()
                logger.exception(f"Unexpected error in {func.__name__}: {e}")
                _log_failure(db, admin, error_action, str(e))
                raise DirectoryError(
                    "An unexpected error occurred",
                    error_code="INTERNAL_ERROR",
                    status_code=500,
                ) from e

        return wrapper

    return decorator


def _log_failure(db: Session, admin: AdminContext, action: str, message: str) -> None:
    log_admin_action(
        db,
        action,
        admin_user_id=admin.admin_user_id,
        details={"error": message},
        ip_address=admin.ip_address,
        user_agent=admin.user_agent,
        commit=True,
    )
