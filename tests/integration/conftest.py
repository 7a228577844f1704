"""Pytest configuration and fixtures for integration tests.

Loads .env and pins the settings the end-to-end pipeline depends on, so a
developer's local overrides cannot change what these tests observe.
"""

import os
from pathlib import Path

import pytest_asyncio
from dotenv import load_dotenv

from src.adapters.demo_data import demo_recipes
from src.agents.agent import initialize_sous_chef
from src.utils.config import config as app_config


def pytest_configure(config):
    """Load .env and report the settings the pipeline tests run with."""
    env_path = Path(__file__).parent.parent.parent / ".env"
    load_dotenv(env_path)

    print("\n" + "=" * 70)
    print(f"Environment loaded from: {env_path}")
    print("Integration test configuration:")
    print("  - Learning events: ENABLED")
    print("  - Recipe catalog: demo recipes")
    print(f"  - Max recommendations: {os.getenv('MAX_RECOMMENDATIONS', '10')}")
    print("=" * 70 + "\n")


@pytest_asyncio.fixture
async def runtime(clock, monkeypatch):
    """A fully wired runtime over the demo catalog, disposed after the test."""
    monkeypatch.setattr(app_config, "ENABLE_LEARNING", True)
    monkeypatch.setattr(app_config, "MAX_RECOMMENDATIONS", 10)
    runtime = await initialize_sous_chef(recipes=demo_recipes(), clock=clock)
    yield runtime
    await runtime.dispose()
