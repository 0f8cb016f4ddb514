"""Tests for push subscription queries."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, insert, select
from sqlalchemy.dialects import postgresql

from core.tables import push_subscriptions, users


def compile_pg(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


class TestBuildUpsertStatement:
    def test_conflicts_on_endpoint(self):
        from core.queries.push_subscriptions import build_upsert_statement

        sql = compile_pg(build_upsert_statement(1, "https://push.example.com/a", "k", "a"))

        assert "ON CONFLICT (endpoint) DO UPDATE" in sql
        assert "RETURNING" in sql

    def test_conflict_updates_keys_and_owner(self):
        from core.queries.push_subscriptions import build_upsert_statement

        sql = compile_pg(
            build_upsert_statement(1, "https://push.example.com/a", "k", "a", "sess_1")
        )
        update_clause = sql.split("DO UPDATE SET", 1)[1]

        for column in ("user_id", "session_id", "p256dh", "auth", "updated_at"):
            assert f"{column} =" in update_clause
        assert "endpoint =" not in update_clause


class TestDeletePushSubscription:
    @pytest.mark.asyncio
    async def test_returns_true_when_row_deleted(self):
        from core.queries.push_subscriptions import delete_push_subscription

        mock_conn = AsyncMock()
        mock_result = MagicMock()
        mock_result.rowcount = 1
        mock_conn.execute.return_value = mock_result

        assert await delete_push_subscription(mock_conn, "https://push.example.com/a") is True

    @pytest.mark.asyncio
    async def test_scopes_to_user_when_given(self):
        from core.queries.push_subscriptions import delete_push_subscription

        mock_conn = AsyncMock()
        mock_result = MagicMock()
        mock_result.rowcount = 0
        mock_conn.execute.return_value = mock_result

        removed = await delete_push_subscription(
            mock_conn, "https://push.example.com/a", user_id=5
        )

        assert removed is False
        stmt = mock_conn.execute.call_args.args[0]
        assert "push_subscriptions.user_id" in compile_pg(stmt)


class TestUpsertAgainstDatabase:
    async def _create_user(self, conn) -> int:
        result = await conn.execute(
            insert(users)
            .values(email=f"push-{uuid.uuid4().hex[:8]}@example.com")
            .returning(users.c.user_id)
        )
        return result.scalar_one()

    @pytest.mark.asyncio
    async def test_same_endpoint_twice_keeps_one_row(self, db_conn):
        from core.queries.push_subscriptions import upsert_push_subscription

        first_user = await self._create_user(db_conn)
        second_user = await self._create_user(db_conn)
        endpoint = f"https://push.example.com/{uuid.uuid4().hex}"

        first = await upsert_push_subscription(db_conn, first_user, endpoint, "k1", "a1")
        second = await upsert_push_subscription(
            db_conn, second_user, endpoint, "k2", "a2", session_id="sess_2"
        )

        assert first["subscription_id"] == second["subscription_id"]
        assert second["user_id"] == second_user
        assert second["p256dh"] == "k2"
        assert second["session_id"] == "sess_2"

        count = await db_conn.execute(
            select(func.count())
            .select_from(push_subscriptions)
            .where(push_subscriptions.c.endpoint == endpoint)
        )
        assert count.scalar_one() == 1

    @pytest.mark.asyncio
    async def test_logout_removes_only_that_session(self, db_conn):
        from core.queries.push_subscriptions import (
            delete_session_subscriptions,
            list_user_subscriptions,
            upsert_push_subscription,
        )

        user_id = await self._create_user(db_conn)
        base = f"https://push.example.com/{uuid.uuid4().hex}"
        await upsert_push_subscription(db_conn, user_id, base + "/phone", "k", "a", "sess_a")
        await upsert_push_subscription(db_conn, user_id, base + "/laptop", "k", "a", "sess_b")

        removed = await delete_session_subscriptions(db_conn, "sess_a")

        remaining = await list_user_subscriptions(db_conn, user_id)
        assert removed == 1
        assert [s["endpoint"] for s in remaining] == [base + "/laptop"]
