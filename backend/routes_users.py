"""
backend/routes_users.py

Current-user profile and notification feed endpoints.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Path, Query

try:
    from backend.auth_context import AuthContext, require_auth_context
    from backend.dependencies import get_notification_service, get_user_service
    from backend.modules.notifications import NotificationService
    from backend.modules.users import UserService
    from backend.schemas import DisplayNameUpdateRequest, ProfileEnsureRequest
except ModuleNotFoundError:
    from auth_context import AuthContext, require_auth_context
    from dependencies import get_notification_service, get_user_service
    from modules.notifications import NotificationService
    from modules.users import UserService
    from schemas import DisplayNameUpdateRequest, ProfileEnsureRequest


router = APIRouter(tags=["users"])


# ---------------------------------------------------------
# Profile
# ---------------------------------------------------------
@router.post("/users/me")
def ensure_profile(
    request: Optional[ProfileEnsureRequest] = None,
    ctx: AuthContext = Depends(require_auth_context),
    users: UserService = Depends(get_user_service),
) -> Dict[str, Any]:
    """Create the caller's profile on first sign-in (idempotent)."""
    display_name = request.displayName if request and request.displayName else ctx.display_name
    return users.ensure_user_profile(ctx.user_id, ctx.email, display_name)


@router.get("/users/me")
def get_profile(
    ctx: AuthContext = Depends(require_auth_context),
    users: UserService = Depends(get_user_service),
) -> Dict[str, Any]:
    return users.get_user_profile(ctx.user_id)


@router.patch("/users/me")
def update_profile(
    request: DisplayNameUpdateRequest,
    ctx: AuthContext = Depends(require_auth_context),
    users: UserService = Depends(get_user_service),
) -> Dict[str, Any]:
    return users.update_display_name(ctx.user_id, request.displayName)


# ---------------------------------------------------------
# Notifications
# ---------------------------------------------------------
@router.get("/notifications")
def list_notifications(
    limit: Optional[int] = Query(None, ge=1, le=500, description="Page size (default NOTIFICATIONS_LIMIT)"),
    ctx: AuthContext = Depends(require_auth_context),
    notifications: NotificationService = Depends(get_notification_service),
) -> Dict[str, Any]:
    return notifications.list_notifications(ctx.user_id, limit)


@router.post("/notifications/{notification_id}/read")
def mark_notification_read(
    notification_id: str = Path(..., description="Notification ID"),
    ctx: AuthContext = Depends(require_auth_context),
    notifications: NotificationService = Depends(get_notification_service),
) -> Dict[str, Any]:
    return notifications.mark_read(notification_id, ctx.user_id)


@router.delete("/notifications/{notification_id}")
def delete_notification(
    notification_id: str = Path(..., description="Notification ID"),
    ctx: AuthContext = Depends(require_auth_context),
    notifications: NotificationService = Depends(get_notification_service),
) -> Dict[str, Any]:
    return notifications.delete_notification(notification_id, ctx.user_id)
