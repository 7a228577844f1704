"""Error types and graceful-degradation helpers for the agent core.

All agent-level errors inherit from AgentError so the lifecycle envelope can
convert them into user-safe responses. Optional sub-engine work (profile
building, context analysis, candidate scoring) goes through
safe_execute_async / safe_execute_sync so a failure degrades to a
conservative default instead of failing the request.
"""

from typing import Any, Awaitable, Callable, Optional

from src.utils.logger import logger


class AgentError(Exception):
    """Base exception for every agent lifecycle failure.

    Attributes:
        code: Machine-readable error code (e.g. "AGENT_TIMEOUT").
        agent_type: Id of the agent that raised the error.
        user_message: Text that is safe to show to the end user.
    """

    default_code = "AGENT_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        agent_type: str = "unknown",
        user_message: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.agent_type = agent_type
        self.user_message = user_message or message


class RequestValidationError(AgentError):
    """Malformed request or response shape. Never retried."""

    default_code = "INVALID_REQUEST"


class CannotHandleError(AgentError):
    """The agent does not support the request; the registry may try another agent."""

    default_code = "AGENT_CANNOT_HANDLE"

    def __init__(self, agent_type: str, agent_name: Optional[str] = None) -> None:
        super().__init__(
            f"Agent {agent_name or agent_type} cannot handle this request",
            agent_type=agent_type,
        )


class AgentTimeoutError(AgentError):
    """Processing exceeded the agent's time budget."""

    default_code = "AGENT_TIMEOUT"

    def __init__(self, agent_type: str, timeout_ms: int) -> None:
        super().__init__(
            f"Agent {agent_type} timed out after {timeout_ms}ms",
            agent_type=agent_type,
            user_message=(
                "I'm sorry, this is taking longer than expected. "
                "Please try again in a moment."
            ),
        )
        self.timeout_ms = timeout_ms


class AgentConfigurationError(AgentError):
    """The agent is misconfigured and cannot be registered."""

    default_code = "AGENT_CONFIG_ERROR"

    def __init__(self, agent_type: str, config_issue: str) -> None:
        super().__init__(
            f"Agent {agent_type} configuration error: {config_issue}",
            agent_type=agent_type,
        )


def _log_error(operation_name: str, exception: Exception, log_level: str = "warning") -> None:
    """Log error with appropriate level.

    Args:
        operation_name: Description for logging
        exception: Exception that occurred
        log_level: Logging level ("debug", "warning", "error"). Default: "warning".
    """
    msg = f"{operation_name}: {exception}"
    if log_level == "debug":
        logger.debug(msg)
    elif log_level == "error":
        logger.error(msg)
    else:
        logger.warning(msg)


async def safe_execute_async(
    coro: Awaitable[Any],
    operation_name: str,
    log_level: str = "warning",
    default_return: Any = None,
    reraise: bool = False,
) -> Any:
    """Safely execute async operation with consistent error logging.

    Used for the optional stages of the pipeline where failure is not critical:
    - Profile building: fall back to the default profile
    - Context analysis: fall back to a minimal environmental context
    - Candidate supply: continue with the snapshot's own recipes

    Args:
        coro: Awaitable coroutine to execute.
        operation_name: Description for logging (e.g., "Build profile").
        log_level: Logging level ("debug", "warning", "error"). Default: "warning".
        default_return: Value to return on exception. Default: None.
        reraise: If True, re-raise exception after logging. Default: False.

    Returns:
        Result of coroutine if successful, default_return on exception if reraise=False.

    Raises:
        Exception: Original exception if reraise=True.
    """
    try:
        return await coro
    except Exception as e:
        _log_error(operation_name, e, log_level)
        if reraise:
            raise
        return default_return


def safe_execute_sync(
    func: Callable[[], Any],
    operation_name: str,
    log_level: str = "warning",
    default_return: Any = None,
    reraise: bool = False,
) -> Any:
    """Safely execute sync operation with consistent error logging.

    Synchronous version of safe_execute_async. Same behavior and patterns.

    Args:
        func: Callable to execute (no args).
        operation_name: Description for logging.
        log_level: Logging level ("debug", "warning", "error"). Default: "warning".
        default_return: Value to return on exception. Default: None.
        reraise: If True, re-raise exception after logging. Default: False.

    Returns:
        Result of func if successful, default_return on exception if reraise=False.

    Raises:
        Exception: Original exception if reraise=True.
    """
    try:
        return func()
    except Exception as e:
        _log_error(operation_name, e, log_level)
        if reraise:
            raise
        return default_return
