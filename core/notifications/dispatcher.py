"""
Notification dispatcher - delivers push payloads to subscriptions.

The dispatcher never writes user records. Callers (the cron orchestrator)
decide what a successful delivery means for last_notified_at, through the
`on_delivered` hook of send_to_group.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable

from core.database import get_connection, get_transaction, with_db_retry
from core.exceptions import (
    DeliveryError,
    SubscriptionGoneError,
    UnknownTimezoneError,
)
from core.notifications.channels.web_push import send_push
from core.notifications.quiet_hours import is_quiet_hours
from core.notifications.rate_limit import RateLimiter
from core.notifications.templates import PushPayload
from core.queries.groups import get_group_members_with_subscriptions
from core.queries.push_subscriptions import (
    delete_push_subscription,
    list_user_subscriptions,
)

logger = logging.getLogger(__name__)

# Returns a skip reason (e.g. "recent") or None to let the member through
MemberGate = Callable[[dict], str | None]
# Awaited with the user id right after a member's first successful delivery
DeliveredHook = Callable[[int], Awaitable[None]]


@dataclass
class DeliveryResult:
    success: bool
    error: str | None = None
    status_code: int | None = None
    removed: bool = False


def _short(endpoint: str) -> str:
    return endpoint[:50] + "..." if len(endpoint) > 50 else endpoint


async def _remove_subscription(endpoint: str) -> bool:
    async def delete():
        async with get_transaction() as conn:
            return await delete_push_subscription(conn, endpoint)

    return await with_db_retry(delete, f"delete subscription {_short(endpoint)}")


async def send_to_one(subscription: dict, payload: PushPayload) -> DeliveryResult:
    """
    Deliver a payload to a single subscription.

    A permanent failure (404/410 from the push service) deletes the
    subscription before returning. Other failures leave it in place and
    are not retried here.

    Raises:
        ConfigurationError: If VAPID keys are missing
    """
    endpoint = subscription["endpoint"]
    try:
        await send_push(subscription, payload)
    except SubscriptionGoneError as e:
        logger.info(
            f"Subscription {_short(endpoint)} expired ({e.status_code}), removing"
        )
        removed = False
        try:
            removed = await _remove_subscription(endpoint)
        except Exception as cleanup_error:
            logger.error(
                f"Failed to remove expired subscription {_short(endpoint)}: {cleanup_error}"
            )
        return DeliveryResult(
            success=False,
            error=str(e),
            status_code=e.status_code,
            removed=removed,
        )
    except DeliveryError as e:
        logger.warning(f"Push to {_short(endpoint)} failed: {e}")
        return DeliveryResult(success=False, error=str(e), status_code=e.status_code)

    return DeliveryResult(success=True)


async def deliver_to_subscriptions(
    subscriptions: list[dict],
    payload: PushPayload,
) -> dict:
    """
    Deliver to every subscription in turn, tallying outcomes.

    Returns:
        {"sent": int, "failed": int}
    """
    sent = 0
    failed = 0
    for subscription in subscriptions:
        result = await send_to_one(subscription, payload)
        if result.success:
            sent += 1
        else:
            failed += 1
    return {"sent": sent, "failed": failed}


async def send_to_user(
    user: dict,
    payload: PushPayload,
    rate_limiter: RateLimiter | None = None,
) -> dict:
    """
    Send a payload to all of a user's subscriptions.

    Args:
        user: Dict with "user_id" and optionally a preloaded "subscriptions" list
        payload: Payload to deliver
        rate_limiter: If given and it refuses the user, nothing is sent

    Returns:
        {"sent": int, "failed": int, "rate_limited": bool}
    """
    user_id = user["user_id"]

    if rate_limiter is not None and not rate_limiter.allow(str(user_id)):
        logger.info(f"Push to user {user_id} rate limited")
        return {"sent": 0, "failed": 0, "rate_limited": True}

    subscriptions = user.get("subscriptions")
    if subscriptions is None:
        async with get_connection() as conn:
            subscriptions = await list_user_subscriptions(conn, user_id)

    result = await deliver_to_subscriptions(subscriptions, payload)
    return {**result, "rate_limited": False}


async def send_to_group(
    group_id: int,
    payload: PushPayload,
    quiet_start: int | None,
    quiet_end: int | None,
    now: datetime | None = None,
    member_gate: MemberGate | None = None,
    on_delivered: DeliveredHook | None = None,
) -> dict:
    """
    Fan a payload out to every member of a group.

    Each member is checked, in order, against `member_gate` (if given) and
    then against the group's quiet hours evaluated in the member's own
    timezone. Members who pass get the payload on all their subscriptions.
    `on_delivered` (if given) is awaited for each notified member before the
    next member is processed.

    A member whose stored timezone is unknown is logged and counted as
    failed; the remaining members are still processed.

    Returns:
        {
            "members": int,
            "sent": int,                 # successful subscription deliveries
            "failed": int,               # failed subscription deliveries
            "skipped_quiet_hours": int,
            "skipped": {reason: count},  # members refused by member_gate
            "notified_user_ids": [...],  # members with >= 1 successful delivery
            "failed_user_ids": [...],    # members attempted with no success
        }
    """
    now = now or datetime.now(timezone.utc)

    async def load_members():
        async with get_connection() as conn:
            return await get_group_members_with_subscriptions(conn, group_id)

    members = await with_db_retry(load_members, f"load members of group {group_id}")

    summary = {
        "members": len(members),
        "sent": 0,
        "failed": 0,
        "skipped_quiet_hours": 0,
        "skipped": {},
        "notified_user_ids": [],
        "failed_user_ids": [],
    }

    for member in members:
        user_id = member["user_id"]

        if member_gate is not None:
            reason = member_gate(member)
            if reason:
                summary["skipped"][reason] = summary["skipped"].get(reason, 0) + 1
                continue

        try:
            quiet = is_quiet_hours(quiet_start, quiet_end, member.get("timezone"), now)
        except UnknownTimezoneError as e:
            logger.error(f"User {user_id} in group {group_id}: {e}")
            summary["failed_user_ids"].append(user_id)
            continue

        if quiet:
            logger.info(f"User {user_id} in group {group_id}: skipped (quiet hours)")
            summary["skipped_quiet_hours"] += 1
            continue

        if not member["subscriptions"]:
            continue

        result = await deliver_to_subscriptions(member["subscriptions"], payload)
        summary["sent"] += result["sent"]
        summary["failed"] += result["failed"]
        if result["sent"] > 0:
            summary["notified_user_ids"].append(user_id)
            if on_delivered is not None:
                await on_delivered(user_id)
        else:
            summary["failed_user_ids"].append(user_id)

    return summary
