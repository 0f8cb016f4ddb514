"""Tests for the notification dispatcher."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from core.exceptions import ConfigurationError, DeliveryError, SubscriptionGoneError
from core.notifications.rate_limit import InMemoryRateLimiter
from core.notifications.templates import PushPayload

PAYLOAD = PushPayload(title="Vibe Check!", body="How are you feeling right now?")
NOW = datetime(2026, 10, 20, 14, 0, tzinfo=timezone.utc)


def sub(name: str) -> dict:
    return {"endpoint": f"https://push.example.com/{name}", "p256dh": "key", "auth": "auth"}


def member(user_id: int, tz: str | None = "UTC", subscriptions=None) -> dict:
    return {
        "user_id": user_id,
        "email": f"user{user_id}@example.com",
        "timezone": tz,
        "last_notified_at": None,
        "notification_frequency": 1,
        "subscriptions": [sub(f"u{user_id}")] if subscriptions is None else subscriptions,
    }


def mock_db(mock_cm):
    """Wire a patched get_connection/get_transaction to yield an AsyncMock conn."""
    mock_conn = AsyncMock()
    mock_cm.return_value.__aenter__.return_value = mock_conn
    return mock_conn


class TestSendToOne:
    @pytest.mark.asyncio
    async def test_success(self):
        from core.notifications.dispatcher import send_to_one

        with patch("core.notifications.dispatcher.send_push", AsyncMock()) as mock_push:
            result = await send_to_one(sub("a"), PAYLOAD)

        assert result.success is True
        assert result.error is None
        mock_push.assert_awaited_once_with(sub("a"), PAYLOAD)

    @pytest.mark.asyncio
    async def test_gone_subscription_is_deleted(self):
        from core.notifications.dispatcher import send_to_one

        gone = SubscriptionGoneError("gone", status_code=410, endpoint=sub("a")["endpoint"])

        with patch("core.notifications.dispatcher.send_push", AsyncMock(side_effect=gone)):
            with patch("core.notifications.dispatcher.get_transaction") as mock_txn:
                mock_conn = mock_db(mock_txn)
                with patch(
                    "core.notifications.dispatcher.delete_push_subscription",
                    AsyncMock(return_value=True),
                ) as mock_delete:
                    result = await send_to_one(sub("a"), PAYLOAD)

        assert result.success is False
        assert result.status_code == 410
        assert result.removed is True
        mock_delete.assert_awaited_once_with(mock_conn, sub("a")["endpoint"])

    @pytest.mark.asyncio
    async def test_transient_failure_keeps_subscription(self):
        from core.notifications.dispatcher import send_to_one

        error = DeliveryError("service unavailable", status_code=503)

        with patch("core.notifications.dispatcher.send_push", AsyncMock(side_effect=error)):
            with patch(
                "core.notifications.dispatcher.delete_push_subscription", AsyncMock()
            ) as mock_delete:
                result = await send_to_one(sub("a"), PAYLOAD)

        assert result.success is False
        assert result.status_code == 503
        assert result.removed is False
        mock_delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cleanup_failure_still_reports_delivery_result(self):
        from core.notifications.dispatcher import send_to_one

        gone = SubscriptionGoneError("gone", status_code=404)

        with patch("core.notifications.dispatcher.send_push", AsyncMock(side_effect=gone)):
            with patch("core.notifications.dispatcher.get_transaction") as mock_txn:
                mock_db(mock_txn)
                with patch(
                    "core.notifications.dispatcher.delete_push_subscription",
                    AsyncMock(side_effect=ValueError("constraint")),
                ):
                    result = await send_to_one(sub("a"), PAYLOAD)

        assert result.success is False
        assert result.status_code == 404
        assert result.removed is False

    @pytest.mark.asyncio
    async def test_missing_keys_propagate(self):
        from core.notifications.dispatcher import send_to_one

        with patch(
            "core.notifications.dispatcher.send_push",
            AsyncMock(side_effect=ConfigurationError("VAPID keys not configured")),
        ):
            with pytest.raises(ConfigurationError):
                await send_to_one(sub("a"), PAYLOAD)


class TestSendToUser:
    @pytest.mark.asyncio
    async def test_sends_to_every_subscription(self):
        from core.notifications.dispatcher import send_to_user

        user = member(1, subscriptions=[sub("phone"), sub("laptop"), sub("old")])
        outcomes = [None, None, DeliveryError("timeout")]

        with patch(
            "core.notifications.dispatcher.send_push", AsyncMock(side_effect=outcomes)
        ) as mock_push:
            result = await send_to_user(user, PAYLOAD)

        assert result == {"sent": 2, "failed": 1, "rate_limited": False}
        assert mock_push.await_count == 3

    @pytest.mark.asyncio
    async def test_loads_subscriptions_when_not_given(self):
        from core.notifications.dispatcher import send_to_user

        with patch("core.notifications.dispatcher.get_connection") as mock_get_conn:
            mock_conn = mock_db(mock_get_conn)
            with patch(
                "core.notifications.dispatcher.list_user_subscriptions",
                AsyncMock(return_value=[sub("phone")]),
            ) as mock_list:
                with patch("core.notifications.dispatcher.send_push", AsyncMock()):
                    result = await send_to_user({"user_id": 7}, PAYLOAD)

        mock_list.assert_awaited_once_with(mock_conn, 7)
        assert result["sent"] == 1

    @pytest.mark.asyncio
    async def test_rate_limited_user_gets_nothing(self):
        from core.notifications.dispatcher import send_to_user

        limiter = InMemoryRateLimiter(max_requests=1, window_seconds=600)
        user = member(1)

        with patch("core.notifications.dispatcher.send_push", AsyncMock()) as mock_push:
            first = await send_to_user(user, PAYLOAD, rate_limiter=limiter)
            second = await send_to_user(user, PAYLOAD, rate_limiter=limiter)

        assert first["rate_limited"] is False
        assert second == {"sent": 0, "failed": 0, "rate_limited": True}
        assert mock_push.await_count == 1


class TestSendToGroup:
    async def _send(self, members, push_side_effect=None, member_gate=None, on_delivered=None):
        from core.notifications.dispatcher import send_to_group

        with patch("core.notifications.dispatcher.get_connection") as mock_get_conn:
            mock_db(mock_get_conn)
            with patch(
                "core.notifications.dispatcher.get_group_members_with_subscriptions",
                AsyncMock(return_value=members),
            ):
                with patch(
                    "core.notifications.dispatcher.send_push",
                    AsyncMock(side_effect=push_side_effect),
                ) as mock_push:
                    summary = await send_to_group(
                        10,
                        PAYLOAD,
                        22,
                        7,
                        now=NOW,
                        member_gate=member_gate,
                        on_delivered=on_delivered,
                    )
        return summary, mock_push

    @pytest.mark.asyncio
    async def test_quiet_hours_use_each_members_timezone(self):
        """14:00 UTC is 23:00 in Tokyo, inside the 22-7 window."""
        members = [member(1, "UTC"), member(2, "Asia/Tokyo"), member(3, None)]

        summary, mock_push = await self._send(members)

        assert summary["members"] == 3
        assert summary["skipped_quiet_hours"] == 1
        assert summary["sent"] == 2
        assert summary["notified_user_ids"] == [1, 3]
        assert mock_push.await_count == 2

    @pytest.mark.asyncio
    async def test_tallies_per_subscription(self):
        members = [member(1, subscriptions=[sub("a"), sub("b")]), member(2)]
        outcomes = [None, DeliveryError("boom"), DeliveryError("boom")]

        summary, _ = await self._send(members, push_side_effect=outcomes)

        assert summary["sent"] == 1
        assert summary["failed"] == 2
        assert summary["notified_user_ids"] == [1]
        assert summary["failed_user_ids"] == [2]

    @pytest.mark.asyncio
    async def test_member_without_subscriptions_is_neither_notified_nor_failed(self):
        summary, mock_push = await self._send([member(1, subscriptions=[])])

        assert summary["notified_user_ids"] == []
        assert summary["failed_user_ids"] == []
        mock_push.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_timezone_fails_only_that_member(self):
        members = [member(1, "Not/AZone"), member(2, "UTC")]

        summary, _ = await self._send(members)

        assert summary["failed_user_ids"] == [1]
        assert summary["notified_user_ids"] == [2]

    @pytest.mark.asyncio
    async def test_member_gate_reasons_are_counted(self):
        members = [member(1), member(2), member(3)]

        def gate(m):
            return {1: "recent", 2: "consolidated"}.get(m["user_id"])

        summary, mock_push = await self._send(members, member_gate=gate)

        assert summary["skipped"] == {"recent": 1, "consolidated": 1}
        assert summary["notified_user_ids"] == [3]
        assert mock_push.await_count == 1

    @pytest.mark.asyncio
    async def test_gate_runs_before_quiet_hours(self):
        members = [member(1, "Asia/Tokyo")]

        summary, _ = await self._send(members, member_gate=lambda m: "recent")

        assert summary["skipped"] == {"recent": 1}
        assert summary["skipped_quiet_hours"] == 0

    @pytest.mark.asyncio
    async def test_does_not_touch_user_records(self):
        with patch("core.notifications.dispatcher.get_transaction") as mock_txn:
            await self._send([member(1)])

        mock_txn.assert_not_called()

    @pytest.mark.asyncio
    async def test_on_delivered_runs_before_next_member(self):
        events = []

        async def push(subscription, payload):
            events.append(("push", subscription["endpoint"]))

        async def delivered(user_id):
            events.append(("delivered", user_id))

        members = [member(1), member(2, subscriptions=[]), member(3)]
        summary, _ = await self._send(
            members, push_side_effect=push, on_delivered=delivered
        )

        assert events == [
            ("push", sub("u1")["endpoint"]),
            ("delivered", 1),
            ("push", sub("u3")["endpoint"]),
            ("delivered", 3),
        ]
        assert summary["notified_user_ids"] == [1, 3]

    @pytest.mark.asyncio
    async def test_on_delivered_skipped_for_failed_member(self):
        delivered = AsyncMock()

        await self._send(
            [member(1)], push_side_effect=DeliveryError("boom"), on_delivered=delivered
        )

        delivered.assert_not_awaited()
