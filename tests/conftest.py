"""Shared fixtures: a controllable clock and builders for snapshots, requests and interactions."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from src.models.models import AgentRequest, Recipe, RequestMetadata, UserContext
from src.models.responses import (
    AgentResponse,
    InteractionFeedback,
    RecipeResultsData,
    ResponseMetadata,
    UserInteraction,
)
from src.models.analysis import ScoredCandidate, SubScores

# A Wednesday evening in autumn
REFERENCE_TIME = datetime(2024, 10, 16, 18, 30, tzinfo=timezone.utc)


class FakeClock:
    """Clock whose current time only moves when told to."""

    def __init__(self, now: datetime = REFERENCE_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def now():
    return REFERENCE_TIME


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_recipe():
    def _make(recipe_id="r1", **overrides):
        data = {"id": recipe_id, "title": recipe_id.replace("-", " ").title()}
        data.update(overrides)
        return Recipe(**data)

    return _make


@pytest.fixture
def make_context():
    def _make(user_id="user-1", ingredients=(), recipes=(), time_of_day="evening", **overrides):
        data = {
            "user_id": user_id,
            "available_ingredients": list(ingredients),
            "available_recipes": list(recipes),
            "session_context": {"time_of_day": time_of_day, "timezone": "UTC"},
        }
        data.update(overrides)
        return UserContext(**data)

    return _make


@pytest.fixture
def make_request(make_context):
    def _make(query="what can I make for dinner?", context=None, intent=None, timestamp=REFERENCE_TIME, **overrides):
        data = {
            "id": f"req-{uuid.uuid4().hex[:8]}",
            "query": query,
            "intent": intent,
            "context": context or make_context(),
            "metadata": RequestMetadata(timestamp=timestamp, session_id="sess-1"),
        }
        data.update(overrides)
        return AgentRequest(**data)

    return _make


@pytest.fixture
def make_interaction(make_request):
    """Build a UserInteraction whose response recommends `recipe`."""

    def _make(recipe, query="what can I make?", created_at=REFERENCE_TIME, rating=5, intent="recipe-recommendation"):
        request = make_request(query=query, timestamp=created_at)
        candidate = ScoredCandidate(
            recipe=recipe,
            sub_scores=SubScores(),
            final_score=80,
            explanation="Good match.",
            success_probability=0.8,
        )
        response = AgentResponse(
            id=f"resp-{uuid.uuid4().hex[:8]}",
            agent_type="sous-chef",
            message="Here you go",
            intent=intent,
            confidence="high",
            priority="medium",
            data=RecipeResultsData(intent=intent, candidates=[candidate], total_candidates=1)
            if intent in ("recipe-search", "recipe-recommendation")
            else None,
            metadata=ResponseMetadata(timestamp=created_at),
        )
        return UserInteraction(
            id=f"int-{uuid.uuid4().hex[:8]}",
            user_id=request.user_id,
            session_id="sess-1",
            created_at=created_at,
            request=request,
            response=response,
            feedback=InteractionFeedback(helpful=rating >= 4, rating=rating),
        )

    return _make
