"""Audit logging for state-changing operations."""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from fastapi import Request

from wishqr.core.config import settings


logger = logging.getLogger("wishqr.audit")

_SENSITIVE_KEYS = ("password", "token", "secret", "key", "authorization")


def client_ip(request: Request) -> str | None:
    """Peer address, or the first X-Forwarded-For hop when the peer is a trusted proxy."""
    peer = request.client.host if request.client else None
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded and peer in settings.trusted_proxies:
        return forwarded.split(",")[0].strip() or peer
    return peer


class AuditAction(str, Enum):
    USER_SETUP = "user_setup"

    WISHLIST_CREATE = "wishlist_create"
    WISHLIST_UPDATE = "wishlist_update"
    WISHLIST_DELETE = "wishlist_delete"
    WISHLIST_RECONCILE = "wishlist_reconcile"

    ITEM_CREATE = "item_create"
    ITEM_UPDATE = "item_update"
    ITEM_DELETE = "item_delete"

    CONTRIBUTION_CREATE = "contribution_create"

    FRIEND_ADD = "friend_add"

    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"


def audit_log(
    action: AuditAction,
    request: Request | None = None,
    user_id: str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """
    Log an audit event.

    Args:
        action: The action being performed
        request: FastAPI request object (for IP, user agent)
        user_id: Identity subject of the caller, None for anonymous callers
        details: Additional details about the action
        success: Whether the action was successful
    """
    event: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action.value,
        "success": success,
    }

    if user_id is not None:
        event["user_id"] = str(user_id)

    if request:
        event["ip"] = client_ip(request)
        event["user_agent"] = request.headers.get("User-Agent", "")[:200]
        event["request_id"] = request.headers.get("X-Request-Id", "")

    if details:
        event["details"] = {
            key: "***REDACTED***" if key in _SENSITIVE_KEYS else value
            for key, value in details.items()
        }

    if success:
        logger.info("AUDIT: %s", event)
    else:
        logger.warning("AUDIT: %s", event)


def audit_wishlist_action(
    action: AuditAction,
    request: Request,
    user_id: str,
    wishlist_id: str,
    details: dict[str, Any] | None = None,
) -> None:
    event_details: dict[str, Any] = {"wishlist_id": wishlist_id}
    if details:
        event_details.update(details)
    audit_log(action, request=request, user_id=user_id, details=event_details)


def audit_item_action(
    action: AuditAction,
    request: Request,
    user_id: str,
    wishlist_id: str,
    item_id: str,
    details: dict[str, Any] | None = None,
) -> None:
    event_details: dict[str, Any] = {"wishlist_id": wishlist_id, "item_id": item_id}
    if details:
        event_details.update(details)
    audit_log(action, request=request, user_id=user_id, details=event_details)


def audit_contribution(
    request: Request,
    wishlist_id: str,
    contribution_id: str,
    amount: float,
) -> None:
    audit_log(
        AuditAction.CONTRIBUTION_CREATE,
        request=request,
        details={
            "wishlist_id": wishlist_id,
            "contribution_id": contribution_id,
            "amount": amount,
        },
    )


def audit_friend_added(request: Request, user_id: str, friend_id: str, via: str) -> None:
    audit_log(
        AuditAction.FRIEND_ADD,
        request=request,
        user_id=user_id,
        details={"friend_id": friend_id, "via": via},
    )


def audit_rate_limit_exceeded(request: Request, endpoint: str, retry_after: int) -> None:
    audit_log(
        AuditAction.RATE_LIMIT_EXCEEDED,
        request=request,
        details={"endpoint": endpoint, "retry_after": retry_after},
        success=False,
    )
