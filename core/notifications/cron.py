"""
Ping cycle - the periodic job that sends check-in prompts.

One run:
1. Initializes next_ping_time for groups that have none.
2. For each due group: gate each member, send, record that member's
   last_notified_at before moving on, then persist last_ping_time and a
   fresh next_ping_time.
3. Sends to groupless ("solo") users whose own cadence allows it.

A user notified once in a run is not notified again in the same run,
whether through a second group or as a solo user. Failures are isolated
per group, per solo user, and for the initialization and solo passes;
a missing VAPID key aborts the run.
"""

import logging
from datetime import datetime, timezone

import sentry_sdk

from core.database import get_connection, get_transaction, with_db_retry
from core.exceptions import ConfigurationError
from core.notifications.dispatcher import send_to_group, send_to_user
from core.notifications.intervals import normalize_frequency, next_ping_time_for_group
from core.notifications.recency import (
    can_notify_group_member,
    can_notify_solo_user,
    group_min_gap_hours,
    hours_since,
)
from core.notifications.templates import build_group_payload, get_payload
from core.queries.groups import (
    get_due_groups,
    get_unscheduled_groups,
    record_group_ping,
    set_group_next_ping_time,
)
from core.queries.users import get_solo_users_with_subscriptions, mark_user_notified
from core.timezone import format_datetime_in_timezone

logger = logging.getLogger(__name__)

SKIP_CONSOLIDATED = "consolidated"
SKIP_RECENT = "recent"


async def _mark_notified(user_id: int, now: datetime) -> None:
    async def write():
        async with get_transaction() as conn:
            await mark_user_notified(conn, user_id, now)

    await with_db_retry(write, f"update last_notified_at for user {user_id}")


# =============================================================================
# Initialization
# =============================================================================


async def initialize_unscheduled_groups(now: datetime) -> int:
    """
    Give every group without a next_ping_time its first one.

    Each group is written in its own transaction so a failure leaves the
    others initialized. Returns the number of groups initialized.
    """

    async def load():
        async with get_connection() as conn:
            return await get_unscheduled_groups(conn)

    pending = await with_db_retry(load, "load unscheduled groups")
    initialized = 0

    for group in pending:
        group_id = group["group_id"]
        try:
            first_ping = next_ping_time_for_group(group, now=now, initialize=True)

            async def write():
                async with get_transaction() as conn:
                    await set_group_next_ping_time(conn, group_id, first_ping)

            await with_db_retry(write, f"initialize group {group_id}")
            initialized += 1
            logger.info(
                f"Initialized group {group_id}: first ping "
                f"{format_datetime_in_timezone(first_ping, group.get('owner_timezone'))}"
            )
        except Exception as e:
            logger.error(f"Failed to initialize group {group_id}: {e}")
            sentry_sdk.capture_exception(e)

    return initialized


# =============================================================================
# Group pings
# =============================================================================


async def process_due_group(
    group: dict,
    now: datetime,
    notified_user_ids: set[int],
) -> dict:
    """
    Ping one due group and schedule its next ping.

    Members already in `notified_user_ids` are skipped without counting as
    recent; newly notified members are added to it.

    Returns:
        Per-group result entry for the run summary
    """
    group_id = group["group_id"]
    frequency = normalize_frequency(group.get("frequency"))
    min_gap = group_min_gap_hours(frequency)

    def gate(member: dict) -> str | None:
        if member["user_id"] in notified_user_ids:
            logger.info(
                f"User {member['user_id']}: already notified in this run (consolidated)"
            )
            return SKIP_CONSOLIDATED
        if not can_notify_group_member(member["last_notified_at"], frequency, now):
            logger.info(
                f"User {member['user_id']}: skipped (notified "
                f"{hours_since(member['last_notified_at'], now):.1f}h ago, min {min_gap}h)"
            )
            return SKIP_RECENT
        return None

    async def delivered(user_id: int) -> None:
        notified_user_ids.add(user_id)
        try:
            await _mark_notified(user_id, now)
        except Exception as e:
            logger.error(f"Failed to record notification for user {user_id}: {e}")
            sentry_sdk.capture_exception(e)

    delivery = await send_to_group(
        group_id,
        build_group_payload(group),
        group.get("quiet_hours_start"),
        group.get("quiet_hours_end"),
        now=now,
        member_gate=gate,
        on_delivered=delivered,
    )

    notified = len(delivery["notified_user_ids"])
    failed = len(delivery["failed_user_ids"])

    next_ping_time = next_ping_time_for_group(group, now=now)

    async def persist():
        async with get_transaction() as conn:
            await record_group_ping(conn, group_id, now, next_ping_time)

    await with_db_retry(persist, f"record ping for group {group_id}")

    result = {
        "group_id": group_id,
        "group_name": group.get("group_name"),
        "users_eligible": delivery["members"],
        "users_notified": notified,
        "users_skipped_recent_notification": delivery["skipped"].get(SKIP_RECENT, 0),
        "users_skipped_quiet_hours": delivery["skipped_quiet_hours"],
        "users_failed": failed,
        "next_ping_time": next_ping_time.isoformat(),
    }
    logger.info(
        f"Pinged group {group.get('group_name')} ({group_id}): "
        f"eligible={result['users_eligible']}, notified={notified}, "
        f"skipped_recent={result['users_skipped_recent_notification']}, "
        f"skipped_quiet={result['users_skipped_quiet_hours']}, failed={failed}, "
        f"next={format_datetime_in_timezone(next_ping_time, group.get('owner_timezone'))}"
    )
    return result


# =============================================================================
# Solo users
# =============================================================================


async def process_solo_users(now: datetime, notified_user_ids: set[int]) -> dict:
    """
    Notify groupless users with subscriptions, per their notification_frequency.

    Returns:
        {"eligible": int, "notified": int, "skipped_recent": int, "failed": int}
    """

    async def load():
        async with get_connection() as conn:
            return await get_solo_users_with_subscriptions(conn)

    solo_users = await with_db_retry(load, "load solo users")
    logger.info(f"Found {len(solo_users)} solo users with push subscriptions")

    counts = {"eligible": 0, "notified": 0, "skipped_recent": 0, "failed": 0}
    payload = get_payload("check_in_prompt")

    for user in solo_users:
        user_id = user["user_id"]
        counts["eligible"] += 1

        if user_id in notified_user_ids:
            logger.info(f"Solo user {user_id}: already notified in this run")
            continue

        if not can_notify_solo_user(
            user["last_notified_at"], user["notification_frequency"], now
        ):
            logger.info(
                f"Solo user {user_id}: skipped (notified "
                f"{hours_since(user['last_notified_at'], now):.1f}h ago, "
                f"frequency={user['notification_frequency']})"
            )
            counts["skipped_recent"] += 1
            continue

        logger.info(f"Notifying solo user {user_id}")
        try:
            result = await send_to_user(user, payload)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Error notifying solo user {user_id}: {e}")
            sentry_sdk.capture_exception(e)
            counts["failed"] += 1
            continue

        if result["sent"] == 0:
            counts["failed"] += 1
            continue

        notified_user_ids.add(user_id)
        counts["notified"] += 1
        try:
            await _mark_notified(user_id, now)
        except Exception as e:
            logger.error(f"Failed to record notification for user {user_id}: {e}")
            sentry_sdk.capture_exception(e)

    logger.info(
        f"Solo users: eligible={counts['eligible']}, notified={counts['notified']}, "
        f"skipped_recent={counts['skipped_recent']}"
    )
    return counts


# =============================================================================
# Entry point
# =============================================================================


async def run_ping_cycle(now: datetime | None = None) -> dict:
    """
    Run one complete ping cycle.

    Args:
        now: Instant the run treats as current (defaults to the current time)

    Returns:
        Run summary, JSON-serializable. A failed initialization or solo pass
        adds "initialization_error" or "solo_error" and the run continues.

    Raises:
        ConfigurationError: If push key material is missing
        TransientStoreError: If the due-group list cannot be loaded
    """
    now = now or datetime.now(timezone.utc)
    notified_user_ids: set[int] = set()

    summary_errors: dict[str, str] = {}

    try:
        groups_initialized = await initialize_unscheduled_groups(now)
    except Exception as e:
        logger.error(f"Group initialization failed: {e}")
        sentry_sdk.capture_exception(e)
        groups_initialized = 0
        summary_errors["initialization_error"] = str(e)

    async def load_due():
        async with get_connection() as conn:
            return await get_due_groups(conn, now)

    due_groups = await with_db_retry(load_due, "load due groups")
    logger.info(f"Found {len(due_groups)} groups due for a ping")

    results = []
    groups_failed = 0
    for group in due_groups:
        try:
            results.append(await process_due_group(group, now, notified_user_ids))
        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Failed to process group {group['group_id']}: {e}")
            sentry_sdk.capture_exception(e)
            groups_failed += 1
            results.append(
                {
                    "group_id": group["group_id"],
                    "group_name": group.get("group_name"),
                    "error": str(e),
                }
            )

    try:
        solo = await process_solo_users(now, notified_user_ids)
    except ConfigurationError:
        raise
    except Exception as e:
        logger.error(f"Solo user processing failed: {e}")
        sentry_sdk.capture_exception(e)
        solo = {"eligible": 0, "notified": 0, "skipped_recent": 0, "failed": 0}
        summary_errors["solo_error"] = str(e)

    return {
        "success": True,
        "timestamp": now.isoformat(),
        "groups_processed": len(due_groups),
        "groups_initialized": groups_initialized,
        "groups_failed": groups_failed,
        "total_users_notified": len(notified_user_ids),
        "solo_users_eligible": solo["eligible"],
        "solo_users_notified": solo["notified"],
        "solo_users_skipped_recent_notification": solo["skipped_recent"],
        "results": results,
        **summary_errors,
    }
