"""
Group routes.

Endpoints:
- PATCH /api/groups/{group_id}/schedule - Update a group's ping schedule (owner only)
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from core.database import get_transaction
from core.enums import IntervalMode
from core.exceptions import SchedulingInputError
from core.notifications.intervals import validate_schedule_values
from core.queries.groups import get_group, update_group_settings
from core.timezone import is_valid_timezone
from web_api.auth import get_current_user

router = APIRouter(prefix="/api/groups", tags=["groups"])


class GroupScheduleUpdate(BaseModel):
    """Schema for updating a group's notification schedule."""

    frequency: int | None = Field(default=None, gt=0, le=50)
    interval_mode: IntervalMode | None = None
    schedule_days: list[int] | None = None
    schedule_times: list[int] | None = None
    quiet_hours_start: int | None = Field(default=None, ge=0, le=23)
    quiet_hours_end: int | None = Field(default=None, ge=0, le=23)
    owner_timezone: str | None = None
    notification_title: str | None = Field(default=None, max_length=100)
    notification_body: str | None = Field(default=None, max_length=200)


@router.patch("/{group_id}/schedule")
async def update_group_schedule(
    group_id: int,
    updates: GroupScheduleUpdate,
    user: dict = Depends(get_current_user),
) -> dict[str, Any]:
    """
    Update a group's schedule and notification text.

    Fields sent as null are cleared (e.g. quiet hours, custom text); omitted
    fields are left alone. Any scheduling change resets next_ping_time so
    the next cron run picks a time under the new settings.
    """
    update_data = updates.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(400, "No fields to update")

    try:
        if "schedule_days" in update_data:
            validate_schedule_values(update_data["schedule_days"], 6, "schedule_days")
        if "schedule_times" in update_data:
            validate_schedule_values(update_data["schedule_times"], 23, "schedule_times")
    except SchedulingInputError as e:
        raise HTTPException(400, str(e))

    for field in ("frequency", "interval_mode"):
        if field in update_data and update_data[field] is None:
            raise HTTPException(400, f"{field} cannot be cleared")

    owner_timezone = update_data.get("owner_timezone")
    if owner_timezone is not None and not is_valid_timezone(owner_timezone):
        raise HTTPException(400, f"Unknown timezone: {owner_timezone}")

    async with get_transaction() as conn:
        group = await get_group(conn, group_id)
        if not group:
            raise HTTPException(404, "Group not found")
        if group["owner_id"] != user["user_id"]:
            raise HTTPException(403, "Only the group owner can change the schedule")

        updated = await update_group_settings(conn, group_id, **update_data)

    return {"status": "updated", "group": updated}
