"""
Authentication Module for the Storefront
========================================

HTTP Basic Authentication for staff endpoints: the admin order views and the
status update endpoint used by kitchen, POS and courier integrations.

Credentials come from ADMIN_USERNAME / ADMIN_PASSWORD (see config.py) and are
compared in constant time with `secrets.compare_digest()`.

If ADMIN_PASSWORD is not configured, protected endpoints return
503 Service Unavailable instead of allowing unauthenticated access.

Usage:
------
    from storefront.auth import verify_admin_credentials

    @router.get("/admin/orders")
    def list_orders(
        admin_user: str = Depends(verify_admin_credentials),
        db: Session = Depends(get_db),
    ):
        ...
"""

import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from . import config


# =============================================================================
# HTTP Basic Auth Setup
# =============================================================================
# The realm is shared across all staff routes so browsers cache credentials.

security = HTTPBasic(realm="Storefront Admin")


# =============================================================================
# Admin Authentication Dependency
# =============================================================================

def verify_admin_credentials(
    credentials: HTTPBasicCredentials = Depends(security),
) -> str:
    """
    Verify HTTP Basic Auth credentials for staff endpoints.

    Returns:
        str: The authenticated username

    Raises:
        HTTPException (503): ADMIN_PASSWORD is not set
        HTTPException (401): Invalid credentials; includes WWW-Authenticate
    """
    if not config.ADMIN_PASSWORD:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin authentication not configured. Set ADMIN_PASSWORD environment variable.",
        )

    username_correct = secrets.compare_digest(
        credentials.username.encode("utf-8"),
        config.ADMIN_USERNAME.encode("utf-8"),
    )
    password_correct = secrets.compare_digest(
        credentials.password.encode("utf-8"),
        config.ADMIN_PASSWORD.encode("utf-8"),
    )

    if not (username_correct and password_correct):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username
