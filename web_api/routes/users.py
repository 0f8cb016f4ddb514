"""
User routes.

Endpoints:
- PATCH /api/users/me - Update notification settings and profile
- POST /api/users/logout - Drop this session's push subscriptions
"""

import logging
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from core.database import get_transaction
from core.queries.push_subscriptions import delete_session_subscriptions
from core.queries.users import update_user
from core.timezone import is_valid_timezone
from web_api.auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


class UserSettingsUpdate(BaseModel):
    """Schema for updating user settings."""

    display_name: str | None = Field(default=None, max_length=100)
    timezone: str | None = None
    notification_frequency: Literal[1, 2, 3, 7] | None = None


@router.patch("/me")
async def update_my_settings(
    updates: UserSettingsUpdate,
    user: dict = Depends(get_current_user),
) -> dict[str, Any]:
    """
    Update the current user's settings.

    Only allows updating specific fields: display_name, timezone,
    notification_frequency (days between solo pings: 1, 2, 3 or 7)
    """
    update_data = updates.model_dump(exclude_none=True)

    if "timezone" in update_data and not is_valid_timezone(update_data["timezone"]):
        raise HTTPException(400, f"Unknown timezone: {update_data['timezone']}")

    async with get_transaction() as conn:
        row = await update_user(conn, user["user_id"], **update_data)

    if not row:
        raise HTTPException(404, "User not found")

    return {"status": "updated", "user": row}


@router.post("/logout")
async def logout(user: dict = Depends(get_current_user)) -> dict[str, Any]:
    """
    Remove push subscriptions registered under the current session.

    Other devices the user is signed in on keep receiving pings.
    """
    removed = 0
    if user["session_id"]:
        async with get_transaction() as conn:
            removed = await delete_session_subscriptions(conn, user["session_id"])
        logger.info(
            f"Logout for user {user['user_id']}: removed {removed} push subscriptions"
        )

    return {"status": "logged_out", "subscriptions_removed": removed}
