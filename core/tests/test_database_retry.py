"""Tests for retrying transient database failures."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from core.database import get_retry_delay, is_connection_error, with_db_retry
from core.exceptions import TransientStoreError


def connection_refused():
    return OperationalError("SELECT 1", {}, ConnectionRefusedError("ECONNREFUSED"))


class TestGetRetryDelay:
    def test_doubles_from_one_second(self):
        assert get_retry_delay(0) == 1
        assert get_retry_delay(1) == 2
        assert get_retry_delay(2) == 4

    def test_custom_base(self):
        assert get_retry_delay(1, base_delay=0.5) == 1.0


class TestIsConnectionError:
    def test_operational_error(self):
        assert is_connection_error(connection_refused()) is True

    def test_os_level_errors(self):
        assert is_connection_error(ConnectionResetError()) is True
        assert is_connection_error(TimeoutError()) is True

    def test_query_errors_are_not_retried(self):
        error = IntegrityError("INSERT", {}, Exception("duplicate key"))
        assert is_connection_error(error) is False
        assert is_connection_error(ValueError("bad")) is False


class TestWithDbRetry:
    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        operation = AsyncMock(return_value=42)

        result = await with_db_retry(operation)

        assert result == 42
        operation.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_retries_connection_errors_then_succeeds(self):
        operation = AsyncMock(side_effect=[connection_refused(), connection_refused(), "ok"])

        with patch("core.database.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            result = await with_db_retry(operation, "load groups")

        assert result == "ok"
        assert operation.await_count == 3
        assert [c.args[0] for c in mock_sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_three_attempts(self):
        operation = AsyncMock(side_effect=connection_refused())

        with patch("core.database.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(TransientStoreError, match="load groups failed after 3 attempts"):
                await with_db_retry(operation, "load groups")

        assert operation.await_count == 3
        assert mock_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_non_connection_errors_propagate_immediately(self):
        operation = AsyncMock(side_effect=ValueError("bad query"))

        with patch("core.database.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(ValueError):
                await with_db_retry(operation)

        operation.assert_awaited_once()
        mock_sleep.assert_not_awaited()
