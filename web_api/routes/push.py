"""
Push subscription routes.

Endpoints:
- POST /api/push/subscribe - Register (or refresh) this browser's subscription
- POST /api/push/unsubscribe - Remove a subscription
- GET /api/push/subscriptions - List the current user's subscriptions
- POST /api/push/test - Send a test notification to the current user
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from core.database import get_connection, get_transaction
from core.notifications.dispatcher import send_to_user
from core.notifications.rate_limit import push_test_limiter
from core.notifications.templates import get_payload
from core.queries.push_subscriptions import (
    delete_push_subscription,
    list_user_subscriptions,
    upsert_push_subscription,
)
from core.queries.users import get_user_by_id
from web_api.auth import get_current_user

router = APIRouter(prefix="/api/push", tags=["push"])


class SubscriptionKeys(BaseModel):
    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class SubscribeRequest(BaseModel):
    """Shape of the browser's PushSubscription.toJSON()."""

    endpoint: str = Field(min_length=1)
    keys: SubscriptionKeys


class UnsubscribeRequest(BaseModel):
    endpoint: str = Field(min_length=1)


def _public(subscription: dict) -> dict[str, Any]:
    return {
        "subscription_id": subscription["subscription_id"],
        "endpoint": subscription["endpoint"],
        "created_at": subscription["created_at"],
    }


@router.post("/subscribe")
async def subscribe(
    request: SubscribeRequest,
    user: dict = Depends(get_current_user),
) -> dict[str, Any]:
    """
    Store a push subscription for the current user and session.

    Re-subscribing an endpoint that already exists refreshes its keys and
    moves it to the current user.
    """
    async with get_transaction() as conn:
        subscription = await upsert_push_subscription(
            conn,
            user_id=user["user_id"],
            endpoint=request.endpoint,
            p256dh=request.keys.p256dh,
            auth=request.keys.auth,
            session_id=user["session_id"],
        )

    return {"status": "subscribed", "subscription": _public(subscription)}


@router.post("/unsubscribe")
async def unsubscribe(
    request: UnsubscribeRequest,
    user: dict = Depends(get_current_user),
) -> dict[str, Any]:
    """Remove one of the current user's subscriptions."""
    async with get_transaction() as conn:
        removed = await delete_push_subscription(
            conn, request.endpoint, user_id=user["user_id"]
        )

    return {"status": "unsubscribed", "removed": removed}


@router.get("/subscriptions")
async def my_subscriptions(user: dict = Depends(get_current_user)) -> dict[str, Any]:
    async with get_connection() as conn:
        subscriptions = await list_user_subscriptions(conn, user["user_id"])

    return {"subscriptions": [_public(s) for s in subscriptions]}


@router.post("/test")
async def send_test_notification(
    user: dict = Depends(get_current_user),
) -> dict[str, Any]:
    """
    Send a test push to all of the current user's devices.

    Limited to 3 per user per 10 minutes.
    """
    async with get_connection() as conn:
        db_user = await get_user_by_id(conn, user["user_id"])
    if not db_user:
        raise HTTPException(404, "User not found")

    payload = get_payload(
        "test_notification",
        context={"name": db_user.get("display_name") or "there"},
    )
    result = await send_to_user(db_user, payload, rate_limiter=push_test_limiter)

    if result["rate_limited"]:
        raise HTTPException(429, "Too many test notifications. Try again later.")
    if result["sent"] == 0 and result["failed"] == 0:
        raise HTTPException(400, "No push subscriptions registered")

    return {"sent": result["sent"], "failed": result["failed"]}
