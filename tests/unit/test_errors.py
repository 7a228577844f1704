"""Unit tests for the agent error hierarchy and the safe_execute helpers."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.utils.errors import (
    AgentConfigurationError,
    AgentError,
    AgentTimeoutError,
    CannotHandleError,
    RequestValidationError,
    safe_execute_async,
    safe_execute_sync,
)


class TestErrorHierarchy:
    def test_codes(self):
        assert RequestValidationError("bad").code == "INVALID_REQUEST"
        assert RequestValidationError("bad", code="INVALID_RESPONSE").code == "INVALID_RESPONSE"
        assert CannotHandleError("sous-chef").code == "AGENT_CANNOT_HANDLE"
        assert AgentTimeoutError("sous-chef", 500).code == "AGENT_TIMEOUT"
        assert AgentConfigurationError("sous-chef", "duplicate id").code == "AGENT_CONFIG_ERROR"

    def test_all_errors_are_agent_errors(self):
        for error in (
            RequestValidationError("bad"),
            CannotHandleError("a"),
            AgentTimeoutError("a", 1),
            AgentConfigurationError("a", "x"),
        ):
            assert isinstance(error, AgentError)

    def test_timeout_has_user_safe_message(self):
        error = AgentTimeoutError("sous-chef", 250)

        assert "250ms" in str(error)
        assert "250" not in error.user_message
        assert error.timeout_ms == 250

    def test_cannot_handle_message_uses_name(self):
        error = CannotHandleError("sous-chef", "Sous Chef")

        assert error.message == "Agent Sous Chef cannot handle this request"
        assert error.agent_type == "sous-chef"


class TestSafeExecuteAsync:
    @pytest.mark.asyncio
    async def test_returns_result(self):
        operation = AsyncMock(return_value=42)

        assert await safe_execute_async(operation(), "Answer") == 42
        operation.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_returns_default_and_logs(self):
        operation = AsyncMock(side_effect=ConnectionError("down"))

        with patch("src.utils.errors.logger") as mock_logger:
            result = await safe_execute_async(operation(), "Fetch candidates", default_return=[])

        assert result == []
        mock_logger.warning.assert_called_once_with("Fetch candidates: down")

    @pytest.mark.asyncio
    async def test_reraise(self):
        operation = AsyncMock(side_effect=ConnectionError("down"))

        with patch("src.utils.errors.logger") as mock_logger:
            with pytest.raises(ConnectionError):
                await safe_execute_async(operation(), "Fetch candidates", log_level="error", reraise=True)

        mock_logger.error.assert_called_once()


class TestSafeExecuteSync:
    def test_returns_result(self):
        assert safe_execute_sync(lambda: "ok", "Noop") == "ok"

    @pytest.mark.parametrize("level", ["debug", "warning", "error"])
    def test_failure_logs_at_requested_level(self, level):
        func = MagicMock(side_effect=ValueError("broken"))

        with patch("src.utils.errors.logger") as mock_logger:
            result = safe_execute_sync(func, "Score candidate", log_level=level, default_return=0)

        assert result == 0
        getattr(mock_logger, level).assert_called_once_with("Score candidate: broken")
