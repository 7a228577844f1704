"""Unit tests for the agent lifecycle and the agent registry."""

import asyncio

import pytest

from src.agents.base import (
    GENERIC_ERROR_MESSAGE,
    GENERIC_FOLLOW_UPS,
    AgentRegistry,
    BaseAgent,
    confidence_level,
    response_priority,
)
from src.models.responses import PROTOCOL_VERSION, AgentConfig, UserAgentPreferences
from src.utils.errors import AgentConfigurationError, CannotHandleError


class EchoAgent(BaseAgent):
    """Test agent whose behavior is set per instance."""

    def __init__(self, agent_id="echo", priority=1, delay=0.0, fail=None, agent_type=None, **config_overrides):
        data = {
            "id": agent_id,
            "name": agent_id.title(),
            "supported_intents": ["general-help", "recipe-search"],
            "priority": priority,
            "max_processing_time_ms": 50,
        }
        data.update(config_overrides)
        super().__init__(AgentConfig(**data))
        self.delay = delay
        self.fail = fail
        self.agent_type = agent_type
        self.disposed = False

    async def process_request(self, request):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail is not None:
            raise self.fail
        response = self.create_response(request, f"{self.id} says hi", request.intent or "general-help", "high", "low")
        if self.agent_type:
            response = response.model_copy(update={"agent_type": self.agent_type})
        return response

    async def dispose(self):
        self.disposed = True


class DecliningAgent(EchoAgent):
    async def process_request(self, request):
        raise CannotHandleError(self.id, self.name)


class TestHelpers:
    @pytest.mark.parametrize(
        "score,level",
        [(95, "very-high"), (90, "very-high"), (75, "high"), (50, "medium"), (30, "low"), (29.9, "very-low")],
    )
    def test_confidence_level(self, score, level):
        assert confidence_level(score) == level

    def test_response_priority(self, make_context):
        plain = make_context()
        allergic = make_context(dietary_preferences={"allergens": ["peanut"]})

        assert response_priority("substitution-help", plain) == "high"
        assert response_priority("meal-planning", plain) == "medium"
        assert response_priority("cooking-tips", plain) == "low"
        assert response_priority("cooking-tips", allergic) == "high"


class TestAgentLifecycle:
    @pytest.mark.asyncio
    async def test_successful_request_is_stamped(self, make_request):
        agent = EchoAgent()

        response = await agent.handle(make_request("hello"))

        assert response.message == "echo says hi"
        assert response.agent_type == "echo"
        assert response.metadata.version == PROTOCOL_VERSION
        assert response.metadata.processing_time_ms >= 0
        assert response.metadata.error_code is None
        assert agent.status == "idle"
        assert agent.metrics["successes"] == 1

    @pytest.mark.asyncio
    async def test_timeout_returns_very_low_confidence_response(self, make_request):
        agent = EchoAgent(delay=1.0)

        response = await agent.handle(make_request("hello", intent="recipe-search"))

        assert response.confidence == "very-low"
        assert response.priority == "medium"
        assert response.message == "I'm sorry, this is taking longer than expected. Please try again in a moment."
        assert response.metadata.error_code == "AGENT_TIMEOUT"
        assert response.intent == "recipe-search"
        assert response.follow_up_suggestions == GENERIC_FOLLOW_UPS
        assert agent.metrics["timeouts"] == 1
        assert agent.status == "idle"

    @pytest.mark.asyncio
    async def test_processing_failure_is_contained(self, make_request):
        agent = EchoAgent(fail=RuntimeError("database exploded"))

        response = await agent.handle(make_request("hello"))

        assert response.message == GENERIC_ERROR_MESSAGE
        assert "database" not in response.message
        assert response.metadata.error_code == "PROCESSING_ERROR"
        assert response.intent == "general-help"
        assert agent.metrics["errors"] == 1

    @pytest.mark.asyncio
    async def test_status_returns_to_idle_after_failure(self, make_request):
        agent = EchoAgent(fail=RuntimeError("database exploded"))
        seen = []
        original = agent.handle_error

        def recording_handle_error(*args):
            response = original(*args)
            seen.append(agent.status)
            return response

        agent.handle_error = recording_handle_error

        await agent.handle(make_request("hello"))
        assert seen == ["error"]
        assert agent.status == "idle"

        agent.fail = None
        response = await agent.handle(make_request("hello again"))

        assert response.metadata.error_code is None
        assert agent.status == "idle"

    @pytest.mark.asyncio
    async def test_dict_request_is_validated(self, now):
        agent = EchoAgent()
        request = {
            "id": "req-1",
            "query": "hello",
            "context": {"user_id": "user-1"},
            "metadata": {"timestamp": now.isoformat(), "session_id": "s"},
        }

        response = await agent.handle(request)

        assert response.message == "echo says hi"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["id", "query", "context", "metadata"])
    async def test_missing_field_is_invalid_request(self, now, missing):
        request = {
            "id": "req-1",
            "query": "hello",
            "context": {"user_id": "user-1"},
            "metadata": {"timestamp": now.isoformat(), "session_id": "s"},
        }
        del request[missing]

        response = await EchoAgent().handle(request)

        assert response.metadata.error_code == "INVALID_REQUEST"
        assert response.confidence == "very-low"

    @pytest.mark.asyncio
    async def test_unsupported_intent_cannot_be_handled(self, make_request):
        response = await EchoAgent().handle(make_request("plan my week", intent="meal-planning"))
        assert response.metadata.error_code == "AGENT_CANNOT_HANDLE"

    @pytest.mark.asyncio
    async def test_disabled_agent_cannot_be_handled(self, make_request):
        response = await EchoAgent(enabled=False).handle(make_request("hello"))
        assert response.metadata.error_code == "AGENT_CANNOT_HANDLE"

    @pytest.mark.asyncio
    async def test_malformed_response_is_rejected(self, make_request):
        response = await EchoAgent(agent_type="impostor").handle(make_request("hello"))

        assert response.metadata.error_code == "INVALID_RESPONSE"
        assert response.message == GENERIC_ERROR_MESSAGE


class TestPostHooks:
    @pytest.mark.asyncio
    async def test_sync_and_async_hooks_receive_request_and_response(self, make_request):
        seen = []

        def sync_hook(request, response):
            seen.append(("sync", request.id, response.id))

        async def async_hook(request, response):
            seen.append(("async", request.id, response.id))

        agent = EchoAgent()
        agent.post_hooks = [sync_hook, async_hook]
        request = make_request("hello")

        response = await agent.handle(request)

        assert seen == [("sync", request.id, response.id), ("async", request.id, response.id)]

    @pytest.mark.asyncio
    async def test_failing_hook_does_not_affect_response(self, make_request):
        calls = []

        def broken_hook(request, response):
            raise ValueError("hook bug")

        def later_hook(request, response):
            calls.append(response.id)

        agent = EchoAgent()
        agent.post_hooks = [broken_hook, later_hook]

        response = await agent.handle(make_request("hello"))

        assert response.metadata.error_code is None
        assert calls == [response.id]

    @pytest.mark.asyncio
    async def test_hooks_skipped_on_error(self, make_request):
        calls = []
        agent = EchoAgent(fail=RuntimeError("boom"))
        agent.post_hooks = [lambda request, response: calls.append(1)]

        await agent.handle(make_request("hello"))

        assert calls == []


class TestAgentRegistry:
    def test_register_and_lookup(self):
        registry = AgentRegistry.create([EchoAgent("a"), EchoAgent("b")])

        assert len(registry) == 2
        assert registry.get_by_id("a").id == "a"
        assert registry.get_by_id("missing") is None
        assert [c.id for c in registry.agent_configs] == ["a", "b"]
        assert [a.id for a in registry.get_all()] == ["a", "b"]

    def test_duplicate_id_rejected(self):
        registry = AgentRegistry.create([EchoAgent("a")])

        with pytest.raises(AgentConfigurationError):
            registry.register(EchoAgent("a"))

    def test_unregister(self):
        registry = AgentRegistry.create([EchoAgent("a")])

        assert registry.unregister("a") is True
        assert registry.unregister("a") is False
        assert len(registry) == 0

    def test_available_agents_by_priority_and_preference(self, make_request):
        low, high, other = EchoAgent("low", priority=1), EchoAgent("high", priority=9), EchoAgent("other", priority=5)
        registry = AgentRegistry.create([low, high, other])
        request = make_request("hello")

        assert [a.id for a in registry.get_available_agents(request)] == ["high", "other", "low"]

        preferences = UserAgentPreferences(
            user_id="user-1",
            preferences={"preferred_agents": ["low"], "disabled_agents": ["other"]},
        )
        assert [a.id for a in registry.get_available_agents(request, preferences)] == ["low", "high"]
        assert registry.get_best_agent(request, preferences).id == "low"

    @pytest.mark.asyncio
    async def test_falls_through_to_next_agent(self, make_request):
        registry = AgentRegistry.create([DecliningAgent("picky", priority=9), EchoAgent("helper", priority=1)])

        response = await registry.handle(make_request("hello"))

        assert response.agent_type == "helper"

    @pytest.mark.asyncio
    async def test_no_agent_available(self, make_request):
        registry = AgentRegistry.create([EchoAgent("a")])

        response = await registry.handle(make_request("plan my meals", intent="meal-planning"))

        assert response.agent_type == "registry"
        assert response.metadata.error_code == "NO_AGENT_AVAILABLE"
        assert response.confidence == "very-low"
        assert response.intent == "general-help"

    @pytest.mark.asyncio
    async def test_agent_errors_are_returned_not_retried(self, make_request):
        failing = EchoAgent("failing", priority=9, fail=RuntimeError("boom"))
        registry = AgentRegistry.create([failing, EchoAgent("backup")])

        response = await registry.handle(make_request("hello"))

        assert response.agent_type == "failing"
        assert response.metadata.error_code == "PROCESSING_ERROR"

    @pytest.mark.asyncio
    async def test_dispose(self):
        agent = EchoAgent("a")
        registry = AgentRegistry.create([agent])

        await registry.dispose()

        assert agent.disposed is True
        assert len(registry) == 0
        with pytest.raises(AgentConfigurationError):
            registry.register(EchoAgent("b"))
