"""Unit tests for src/agents/agent.py - the initialize_sous_chef() factory."""

from unittest.mock import AsyncMock

import pytest

from src.adapters.demo_data import demo_recipes
from src.agents.agent import initialize_sous_chef
from src.utils.config import config


class TestInitializeSousChef:
    @pytest.mark.asyncio
    async def test_wires_components(self, clock, monkeypatch):
        monkeypatch.setattr(config, "ENABLE_LEARNING", True)

        runtime = await initialize_sous_chef(recipes=demo_recipes(), clock=clock)
        try:
            assert len(runtime.registry) == 1
            assert runtime.registry.get_by_id("sous-chef") is runtime.agent
            assert runtime.sink is runtime.history
            assert len(runtime.supplier) == len(demo_recipes())
            assert [h.__name__ for h in runtime.agent.post_hooks][0] == "emit_learning_event"
            assert runtime.worker.running is True
        finally:
            await runtime.dispose()

        assert runtime.worker.running is False
        assert len(runtime.registry) == 0

    @pytest.mark.asyncio
    async def test_worker_not_started_when_learning_disabled(self, clock, monkeypatch):
        monkeypatch.setattr(config, "ENABLE_LEARNING", False)

        runtime = await initialize_sous_chef(clock=clock)
        try:
            assert runtime.worker.running is False
            assert len(runtime.agent.post_hooks) == 1
        finally:
            await runtime.dispose()

    @pytest.mark.asyncio
    async def test_start_worker_flag(self, clock, monkeypatch):
        monkeypatch.setattr(config, "ENABLE_LEARNING", True)

        runtime = await initialize_sous_chef(clock=clock, start_worker=False)
        try:
            assert runtime.worker.running is False
        finally:
            await runtime.dispose()

    @pytest.mark.asyncio
    async def test_handle_records_learning_event(self, clock, monkeypatch, make_request, make_context):
        monkeypatch.setattr(config, "ENABLE_LEARNING", True)
        runtime = await initialize_sous_chef(recipes=demo_recipes(), clock=clock)

        response = await runtime.handle(make_request("suggest a recipe", context=make_context(ingredients=["rice"])))
        await runtime.dispose()

        assert response.metadata.error_code is None
        assert runtime.history.count("user-1") == 1

    @pytest.mark.asyncio
    async def test_handle_survives_unreadable_preferences(self, clock, monkeypatch, make_request, make_context):
        monkeypatch.setattr(config, "ENABLE_LEARNING", False)
        runtime = await initialize_sous_chef(recipes=demo_recipes(), clock=clock)
        runtime.preference_store = AsyncMock()
        runtime.preference_store.get.side_effect = RuntimeError("preferences down")
        try:
            response = await runtime.handle(make_request("suggest a recipe", context=make_context(ingredients=["rice"])))
        finally:
            await runtime.dispose()

        assert response.agent_type == "sous-chef"
        assert response.metadata.error_code is None
        runtime.preference_store.get.assert_awaited_once_with("user-1")
