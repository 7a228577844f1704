"""Base agent lifecycle and the agent registry.

Every agent runs requests through the same envelope:

    idle -> validating -> processing -> responding -> idle
                                    \\-> error

Validation happens before any processing. Processing is bounded by the
agent's max_processing_time_ms with asyncio.timeout, so an overrunning
pipeline is cancelled rather than merely ignored. Any failure becomes a
user-safe, very-low-confidence response; `handle()` never raises.
"""

import asyncio
import inspect
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from src.models.models import AgentRequest, QueryIntent, UserContext
from src.models.responses import (
    AgentConfig,
    AgentResponse,
    AgentStatus,
    ConfidenceLevel,
    PROTOCOL_VERSION,
    ResponseData,
    ResponseMetadata,
    ResponsePriority,
    SuggestedAction,
    UserAgentPreferences,
)
from src.utils.cache import Clock, utc_now
from src.utils.errors import (
    AgentConfigurationError,
    AgentError,
    AgentTimeoutError,
    CannotHandleError,
    RequestValidationError,
)
from src.utils.logger import logger, request_logger


GENERIC_ERROR_MESSAGE = "I encountered an error while processing your request. Please try again."
GENERIC_FOLLOW_UPS = [
    "Try rephrasing your question",
    "Check if you have the necessary ingredients",
    "Contact support if the problem persists",
]
NO_AGENT_MESSAGE = (
    "I'm not able to help with that request right now. "
    "Try asking about recipes, meal plans or your ingredients."
)

PostHook = Callable[[AgentRequest, AgentResponse], Union[None, Awaitable[None]]]


def confidence_level(score: float) -> ConfidenceLevel:
    """Bucket a 0-100 score: >=90 very-high, >=70 high, >=50 medium, >=30 low, else very-low."""
    if score >= 90:
        return "very-high"
    if score >= 70:
        return "high"
    if score >= 50:
        return "medium"
    if score >= 30:
        return "low"
    return "very-low"


def response_priority(intent: str, context: UserContext) -> ResponsePriority:
    """Safety-related intents (and any known allergen) are high priority."""
    if intent in ("dietary-guidance", "substitution-help") or context.dietary_preferences.allergens:
        return "high"
    if intent in ("meal-planning", "recipe-recommendation"):
        return "medium"
    return "low"


def follow_up_suggestions(intent: str) -> List[str]:
    if intent == "recipe-search":
        return ["Would you like me to suggest similar recipes?", "Do you want to add any of these to your meal plan?"]
    if intent == "meal-planning":
        return ["Should I create a shopping list for this meal plan?", "Would you like recipe suggestions for the empty slots?"]
    if intent == "ingredient-management":
        return ["Do you want recipe suggestions using these ingredients?", "Should I check what's expiring soon?"]
    if intent == "recipe-recommendation":
        return ["Would you like to see the full recipe details?", "Should I add this to your favorites?"]
    return ["Is there anything else I can help you with?"]


def new_response_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class BaseAgent:
    """Request lifecycle shared by all agents.

    Subclasses implement `process_request` and may narrow `can_handle`.
    """

    def __init__(
        self,
        agent_config: AgentConfig,
        post_hooks: Optional[List[PostHook]] = None,
        clock: Clock = utc_now,
    ):
        self.config = agent_config
        self.post_hooks: List[PostHook] = list(post_hooks or [])
        self.clock = clock
        self.status: AgentStatus = "idle"
        self.metrics: Dict[str, float] = {
            "requests": 0,
            "successes": 0,
            "errors": 0,
            "timeouts": 0,
            "total_processing_ms": 0.0,
        }

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def name(self) -> str:
        return self.config.name

    # ------------------------------------------------------------------
    # Hooks for subclasses
    # ------------------------------------------------------------------

    def can_handle(self, request: AgentRequest) -> bool:
        return request.intent is None or request.intent in self.config.supported_intents

    async def process_request(self, request: AgentRequest) -> AgentResponse:
        raise NotImplementedError

    async def dispose(self) -> None:
        """Release resources held by the agent."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def is_available(self, request: AgentRequest) -> bool:
        if not self.config.enabled:
            return False
        if request.intent is not None and request.intent not in self.config.supported_intents:
            return False
        return self.can_handle(request)

    def validate_request(self, request: Union[AgentRequest, Dict[str, Any]]) -> AgentRequest:
        """Return a validated AgentRequest.

        Raises:
            RequestValidationError: If id, query, context or metadata is missing or invalid.
        """
        if isinstance(request, AgentRequest):
            return request
        if not isinstance(request, dict):
            raise RequestValidationError("Invalid request: expected an object", agent_type=self.id)
        for field in ("id", "query", "context", "metadata"):
            if not request.get(field):
                raise RequestValidationError(f"Invalid request: missing or invalid {field}", agent_type=self.id)
        try:
            return AgentRequest.model_validate(request)
        except ValidationError as e:
            raise RequestValidationError(
                f"Invalid request: {e.error_count()} validation error(s)", agent_type=self.id
            ) from e

    def validate_response(self, response: AgentResponse) -> None:
        """Raises RequestValidationError (INVALID_RESPONSE) on a malformed response."""
        if response.agent_type != self.id:
            raise RequestValidationError(
                "Invalid response: incorrect agent_type", code="INVALID_RESPONSE", agent_type=self.id
            )
        if response.data is not None:
            data_intent = response.data.intent
            if data_intent != response.intent:
                raise RequestValidationError(
                    f"Invalid response: data for {data_intent} attached to {response.intent}",
                    code="INVALID_RESPONSE",
                    agent_type=self.id,
                )

    async def handle(self, request: Union[AgentRequest, Dict[str, Any]]) -> AgentResponse:
        """Run one request through the full lifecycle. Never raises.

        The agent is back to "idle" once a response has been returned,
        whether the request succeeded or failed.
        """
        started = time.perf_counter()
        self.metrics["requests"] += 1
        self.status = "validating"

        try:
            try:
                validated = self.validate_request(request)
                log = request_logger(validated.id, validated.metadata.session_id, validated.user_id, self.id)
                if not self.is_available(validated):
                    raise CannotHandleError(self.id, self.name)

                self.status = "processing"
                log.info(f"Processing request with {self.name}")
                response = await self._process_with_timeout(validated)

                self.status = "responding"
                self.validate_response(response)
                response = self._stamp(response, started)
            except Exception as e:
                return self.handle_error(request, e, started)

            await self._run_post_hooks(validated, response)
            self.metrics["successes"] += 1
            self.metrics["total_processing_ms"] += response.metadata.processing_time_ms
            log.info(f"✓ Responded with {response.intent} ({response.confidence}) in {response.metadata.processing_time_ms:.0f}ms")
            return response
        finally:
            self.status = "idle"

    async def _process_with_timeout(self, request: AgentRequest) -> AgentResponse:
        timeout_ms = self.config.max_processing_time_ms
        try:
            async with asyncio.timeout(timeout_ms / 1000):
                return await self.process_request(request)
        except TimeoutError as e:
            raise AgentTimeoutError(self.id, timeout_ms) from e

    def _stamp(self, response: AgentResponse, started: float) -> AgentResponse:
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        metadata = response.metadata.model_copy(
            update={"processing_time_ms": elapsed_ms, "version": PROTOCOL_VERSION, "timestamp": self.clock()}
        )
        return response.model_copy(update={"metadata": metadata})

    async def _run_post_hooks(self, request: AgentRequest, response: AgentResponse) -> None:
        for hook in self.post_hooks:
            try:
                result = hook(request, response)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                name = getattr(hook, "__name__", str(hook))
                logger.warning(f"Post-hook {name} failed: {e}")

    def handle_error(
        self,
        request: Union[AgentRequest, Dict[str, Any], Any],
        error: Exception,
        started: float,
    ) -> AgentResponse:
        """Convert any failure into a user-safe response."""
        self.status = "error"
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        if isinstance(error, AgentTimeoutError):
            self.metrics["timeouts"] += 1
            message = error.user_message
        else:
            message = GENERIC_ERROR_MESSAGE
        self.metrics["errors"] += 1

        code = error.code if isinstance(error, AgentError) else "PROCESSING_ERROR"
        if isinstance(error, (CannotHandleError, RequestValidationError)):
            logger.warning(f"{self.name}: {error}")
        else:
            logger.error(f"{self.name} failed [{code}]: {error}")

        intent: QueryIntent = "general-help"
        if isinstance(request, AgentRequest) and request.intent is not None:
            intent = request.intent

        return AgentResponse(
            id=new_response_id("error"),
            agent_type=self.id,
            message=message,
            intent=intent,
            confidence="very-low",
            priority="medium",
            follow_up_suggestions=list(GENERIC_FOLLOW_UPS),
            metadata=ResponseMetadata(processing_time_ms=elapsed_ms, timestamp=self.clock(), error_code=code),
        )

    def create_response(
        self,
        request: AgentRequest,
        message: str,
        intent: QueryIntent,
        confidence: ConfidenceLevel = "medium",
        priority: ResponsePriority = "medium",
        data: Optional[ResponseData] = None,
        follow_ups: Optional[List[str]] = None,
        actions: Optional[List[SuggestedAction]] = None,
        sources: Optional[List[str]] = None,
    ) -> AgentResponse:
        return AgentResponse(
            id=new_response_id(self.id),
            agent_type=self.id,
            message=message,
            intent=intent,
            confidence=confidence,
            priority=priority,
            data=data,
            follow_up_suggestions=follow_ups if follow_ups is not None else follow_up_suggestions(intent),
            suggested_actions=actions or [],
            sources=sources or [],
            metadata=ResponseMetadata(timestamp=self.clock()),
        )


class AgentRegistry:
    """Explicitly constructed registry of agents, one per composition root."""

    def __init__(self, clock: Clock = utc_now):
        self.clock = clock
        self._agents: Dict[str, BaseAgent] = {}
        self._disposed = False

    @classmethod
    def create(cls, agents: Iterable[BaseAgent] = (), clock: Clock = utc_now) -> "AgentRegistry":
        registry = cls(clock=clock)
        for agent in agents:
            registry.register(agent)
        return registry

    def register(self, agent: BaseAgent) -> None:
        """Add an agent.

        Raises:
            AgentConfigurationError: If the registry is disposed, the agent's
                config is invalid or its id is already registered.
        """
        agent_id = getattr(getattr(agent, "config", None), "id", None) or "unknown"
        if self._disposed:
            raise AgentConfigurationError(agent_id, "registry has been disposed")
        try:
            AgentConfig.model_validate(agent.config.model_dump())
        except (AttributeError, ValidationError) as e:
            raise AgentConfigurationError(agent_id, f"invalid configuration: {e}") from e
        if agent_id in self._agents:
            raise AgentConfigurationError(agent_id, "an agent with this id is already registered")
        self._agents[agent_id] = agent
        logger.info(f"Registered agent: {agent.name} ({agent_id})")

    def unregister(self, agent_id: str) -> bool:
        removed = self._agents.pop(agent_id, None) is not None
        if removed:
            logger.info(f"Unregistered agent: {agent_id}")
        return removed

    def get_all(self) -> List[BaseAgent]:
        return list(self._agents.values())

    def get_by_id(self, agent_id: str) -> Optional[BaseAgent]:
        return self._agents.get(agent_id)

    def get_available_agents(
        self,
        request: AgentRequest,
        preferences: Optional[UserAgentPreferences] = None,
    ) -> List[BaseAgent]:
        """Agents willing to handle the request, preferred first, then by priority (desc)."""
        disabled = set(preferences.preferences.disabled_agents) if preferences else set()
        preferred = list(preferences.preferences.preferred_agents) if preferences else []

        candidates = [
            agent
            for agent in self._agents.values()
            if agent.id not in disabled and agent.is_available(request)
        ]

        def rank(agent: BaseAgent):
            position = preferred.index(agent.id) if agent.id in preferred else len(preferred)
            return (position, -agent.config.priority)

        return sorted(candidates, key=rank)

    def get_best_agent(
        self,
        request: AgentRequest,
        preferences: Optional[UserAgentPreferences] = None,
    ) -> Optional[BaseAgent]:
        available = self.get_available_agents(request, preferences)
        return available[0] if available else None

    @property
    def agent_configs(self) -> List[AgentConfig]:
        return [agent.config.model_copy() for agent in self._agents.values()]

    async def handle(
        self,
        request: AgentRequest,
        preferences: Optional[UserAgentPreferences] = None,
    ) -> AgentResponse:
        """Dispatch to the best available agent, falling through agents that cannot handle it."""
        for agent in self.get_available_agents(request, preferences):
            response = await agent.handle(request)
            if response.metadata.error_code == CannotHandleError.default_code:
                logger.info(f"Agent {agent.id} declined request {request.id}; trying next agent")
                continue
            return response

        logger.warning(f"No agent available for request {request.id}")
        return AgentResponse(
            id=new_response_id("registry"),
            agent_type="registry",
            message=NO_AGENT_MESSAGE,
            intent="general-help",
            confidence="very-low",
            priority="low",
            follow_up_suggestions=list(GENERIC_FOLLOW_UPS),
            metadata=ResponseMetadata(timestamp=self.clock(), error_code="NO_AGENT_AVAILABLE"),
        )

    async def dispose(self) -> None:
        """Dispose every agent and refuse further registrations."""
        for agent in list(self._agents.values()):
            try:
                await agent.dispose()
            except Exception as e:
                logger.warning(f"Failed to dispose agent {agent.id}: {e}")
        self._agents.clear()
        self._disposed = True
        logger.info("✓ Agent registry disposed")

    def __len__(self) -> int:
        return len(self._agents)
