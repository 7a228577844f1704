"""Response, interaction and agent configuration models.

AgentResponse.data is a tagged union discriminated on `intent`: each variant
carries only the fields relevant to that intent, so consumers can match on
the variant type instead of probing optional fields.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from src.models.analysis import (
    CookingTip,
    MealPlanRecommendation,
    NutritionSummary,
    ScoredCandidate,
    ShoppingOptimization,
    Substitution,
)
from src.models.models import AgentRequest, Ingredient, QueryIntent, RecipeNutrition

ConfidenceLevel = Literal["very-low", "low", "medium", "high", "very-high"]
ResponsePriority = Literal["low", "medium", "high", "urgent"]
AgentStatus = Literal["idle", "validating", "processing", "responding", "error"]

PROTOCOL_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# Intent-specific response data
# ---------------------------------------------------------------------------

class RecipeResultsData(BaseModel):
    """Ranked candidates for search and recommendation requests."""

    intent: Literal["recipe-search", "recipe-recommendation"]
    candidates: List[ScoredCandidate] = Field(default_factory=list)
    insights: List[str] = Field(default_factory=list)
    total_candidates: int = 0


class MealPlanData(BaseModel):
    intent: Literal["meal-planning"] = "meal-planning"
    plan: MealPlanRecommendation


class IngredientData(BaseModel):
    intent: Literal["ingredient-management"] = "ingredient-management"
    ingredients: List[Ingredient] = Field(default_factory=list)
    expiring: List[Ingredient] = Field(default_factory=list)
    suggested_recipes: List[ScoredCandidate] = Field(default_factory=list)


class ShoppingListData(BaseModel):
    intent: Literal["shopping-list"] = "shopping-list"
    shopping: ShoppingOptimization


class NutritionData(BaseModel):
    intent: Literal["nutrition-info"] = "nutrition-info"
    summaries: List[NutritionSummary] = Field(default_factory=list)
    average: Optional[RecipeNutrition] = None
    guidance: List[str] = Field(default_factory=list)


class CookingTipsData(BaseModel):
    intent: Literal["cooking-tips"] = "cooking-tips"
    tips: List[CookingTip] = Field(default_factory=list)


class SubstitutionData(BaseModel):
    intent: Literal["substitution-help"] = "substitution-help"
    substitutions: List[Substitution] = Field(default_factory=list)


class DietaryGuidanceData(BaseModel):
    intent: Literal["dietary-guidance"] = "dietary-guidance"
    restrictions: List[str] = Field(default_factory=list)
    compliant_recipes: List[ScoredCandidate] = Field(default_factory=list)
    guidance: List[str] = Field(default_factory=list)


class GeneralHelpData(BaseModel):
    intent: Literal["general-help"] = "general-help"
    capabilities: List[str] = Field(default_factory=list)


ResponseData = Annotated[
    Union[
        RecipeResultsData,
        MealPlanData,
        IngredientData,
        ShoppingListData,
        NutritionData,
        CookingTipsData,
        SubstitutionData,
        DietaryGuidanceData,
        GeneralHelpData,
    ],
    Field(discriminator="intent"),
]


# ---------------------------------------------------------------------------
# Response envelope
# ---------------------------------------------------------------------------

class SuggestedAction(BaseModel):
    label: str
    action: str
    data: Dict[str, Any] = Field(default_factory=dict)


class ResponseMetadata(BaseModel):
    processing_time_ms: Annotated[float, Field(0.0, ge=0)]
    timestamp: datetime
    version: str = PROTOCOL_VERSION
    error_code: Optional[str] = None


class AgentResponse(BaseModel):
    """Terminal artifact of a request; ownership passes to the caller."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: Annotated[str, Field(min_length=1)]
    agent_type: Annotated[str, Field(min_length=1)]
    message: Annotated[str, Field(min_length=1)]
    intent: QueryIntent
    confidence: ConfidenceLevel
    priority: ResponsePriority
    data: Optional[ResponseData] = None
    follow_up_suggestions: List[str] = Field(default_factory=list)
    suggested_actions: List[SuggestedAction] = Field(default_factory=list)
    sources: List[str] = Field(default_factory=list)
    metadata: ResponseMetadata


# ---------------------------------------------------------------------------
# Interactions and preferences
# ---------------------------------------------------------------------------

class InteractionFeedback(BaseModel):
    helpful: bool = False
    rating: Annotated[int, Field(3, ge=1, le=5)]
    comments: Optional[str] = None
    followed_suggestions: List[str] = Field(default_factory=list)


class InteractionOutcome(BaseModel):
    task_completed: bool = False
    actions_taken: List[str] = Field(default_factory=list)
    time_to_completion: Optional[float] = None


class UserInteraction(BaseModel):
    """A recorded request/response pair, the unit of personalization history."""

    id: str
    user_id: str
    session_id: str
    created_at: datetime
    request: AgentRequest
    response: AgentResponse
    feedback: Optional[InteractionFeedback] = None
    outcome: Optional[InteractionOutcome] = None

    @property
    def successful(self) -> bool:
        """Marked helpful or rated at least 4 out of 5."""
        if self.feedback is None:
            return False
        return self.feedback.helpful or self.feedback.rating >= 4


class AgentBehaviorPreferences(BaseModel):
    response_style: Literal["concise", "detailed", "conversational"] = "conversational"
    preferred_agents: List[str] = Field(default_factory=list)
    disabled_agents: List[str] = Field(default_factory=list)
    auto_suggestions: bool = True
    proactive_help: bool = True


class PrivacySettings(BaseModel):
    allow_data_collection: bool = True
    allow_personalization: bool = True
    share_anonymous_data: bool = False


class UserAgentPreferences(BaseModel):
    """Small, non-learned preference object held by the preference store."""

    user_id: str
    preferences: AgentBehaviorPreferences = Field(default_factory=AgentBehaviorPreferences)
    privacy: PrivacySettings = Field(default_factory=PrivacySettings)
    updated_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Agent configuration and learning events
# ---------------------------------------------------------------------------

class AgentConfig(BaseModel):
    """Static description of an agent: identity, intents and limits."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: Annotated[str, Field(min_length=1)]
    name: Annotated[str, Field(min_length=1)]
    description: str = ""
    supported_intents: Annotated[List[QueryIntent], Field(min_length=1)]
    priority: int = 0
    max_processing_time_ms: Annotated[int, Field(gt=0)]
    enabled: bool = True
    settings: Dict[str, Any] = Field(default_factory=dict)


class LearningEvent(BaseModel):
    """One-way message emitted after a response has been produced."""

    id: str
    created_at: datetime
    request: AgentRequest
    response: AgentResponse
