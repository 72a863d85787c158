# backend/fleetbook/api/dependencies/auth.py
"""
Caller identity and request deadline dependencies.

Authentication happens upstream (gateway or identity service). It forwards
the resolved identity in trusted headers, which are turned into a
CallerContext here.
"""

import logging
from time import monotonic
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from ...core.caller_context import CallerContext
from ...core.config import settings

logger = logging.getLogger(__name__)

TRUTHY_HEADER_VALUES = {"1", "true", "yes"}


def get_caller_context(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-Id"),
    x_partner_id: Optional[str] = Header(None, alias="X-Partner-Id"),
    x_admin: Optional[str] = Header(None, alias="X-Admin"),
) -> CallerContext:
    """
    Resolve the caller from identity headers.

    Raises:
        HTTPException: 401 if no user id was forwarded
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity",
        )
    return CallerContext(
        user_id=user_id,
        tenant_id=(x_tenant_id or "").strip() or None,
        partner_id=(x_partner_id or "").strip() or None,
        is_admin=(x_admin or "").strip().lower() in TRUTHY_HEADER_VALUES,
    )


def require_admin(caller: CallerContext = Depends(get_caller_context)) -> CallerContext:
    if not caller.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator required")
    return caller


def get_request_deadline(
    x_request_timeout: Optional[float] = Header(None, alias="X-Request-Timeout"),
) -> float:
    """
    Absolute monotonic deadline for the request's write.

    ``X-Request-Timeout`` (seconds) overrides the configured default but can
    only shorten it.
    """
    timeout = float(settings.booking_request_timeout_seconds)
    if x_request_timeout is not None:
        if x_request_timeout <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="X-Request-Timeout must be positive",
            )
        timeout = min(timeout, x_request_timeout)
    return monotonic() + timeout
