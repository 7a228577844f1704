"""Intermediate pipeline models.

QueryAnalysis, PersonalizationProfile, EnvironmentalContext and
ScoredCandidate are derived fresh per request (the profile is cached per
user) and are never persisted by the core.
"""

from datetime import date, datetime
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from src.models.models import (
    Difficulty,
    MealSlot,
    QueryIntent,
    Recipe,
    SkillLevel,
    TimeOfDay,
)

Season = Literal["spring", "summer", "fall", "winter"]
SocialSetting = Literal["solo", "couple", "family", "party"]
Level = Literal["low", "medium", "high"]
SpiceLevel = Literal["mild", "medium", "hot", "extra-hot"]


# ---------------------------------------------------------------------------
# Query analysis
# ---------------------------------------------------------------------------

class TimeConstraints(BaseModel):
    max_prep_time: Optional[int] = None
    max_cook_time: Optional[int] = None
    max_total_time: Optional[int] = None


class BudgetConstraints(BaseModel):
    max_cost: Optional[float] = None
    economical: bool = False


class QueryEntities(BaseModel):
    """Structured constraints extracted from the query text."""

    ingredients: List[str] = Field(default_factory=list)
    cuisines: List[str] = Field(default_factory=list)
    meal_types: List[str] = Field(default_factory=list)
    dietary_restrictions: List[str] = Field(default_factory=list)
    time_constraints: TimeConstraints = Field(default_factory=TimeConstraints)
    budget_constraints: BudgetConstraints = Field(default_factory=BudgetConstraints)
    servings: Optional[int] = None
    difficulty: Optional[Difficulty] = None
    equipment: List[str] = Field(default_factory=list)
    cooking_methods: List[str] = Field(default_factory=list)


class QueryMood(BaseModel):
    sentiment: Literal["positive", "neutral", "negative"] = "neutral"
    energy: Level = "medium"
    urgency: Level = "low"
    adventurous: bool = False


class SituationalContext(BaseModel):
    time_of_day: TimeOfDay = "evening"
    season: Season = "spring"
    social: SocialSetting = "solo"
    occasion: Optional[str] = None


class QueryBreakdown(BaseModel):
    action: str = "find"
    subject: str = "recipe"
    modifiers: List[str] = Field(default_factory=list)
    questions: List[str] = Field(default_factory=list)


class QueryAnalysis(BaseModel):
    """Result of interpreting one query against one snapshot."""

    intent: QueryIntent = "general-help"
    confidence: Annotated[float, Field(0.1, ge=0.0, le=1.0)]
    entities: QueryEntities = Field(default_factory=QueryEntities)
    mood: QueryMood = Field(default_factory=QueryMood)
    context: SituationalContext = Field(default_factory=SituationalContext)
    breakdown: QueryBreakdown = Field(default_factory=QueryBreakdown)
    normalized_query: str = ""
    tokens: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Personalization profile
# ---------------------------------------------------------------------------

class CookingFrequency(BaseModel):
    weekdays: float = 2
    weekends: float = 1
    average_per_week: float = 3


class ComplexityPreference(BaseModel):
    weekdays: Difficulty = "easy"
    weekends: Difficulty = "medium"
    when_tired: Difficulty = "easy"


class SeasonalPattern(BaseModel):
    preferred_cuisines: List[str] = Field(default_factory=list)
    preferred_meal_types: List[str] = Field(default_factory=list)
    cooking_methods: List[str] = Field(default_factory=list)


class SocialPattern(BaseModel):
    preferred_cuisines: List[str] = Field(default_factory=list)
    portion_size: float = 1
    complexity: Difficulty = "easy"


class CookingPattern(BaseModel):
    time_preferences: Dict[str, List[str]] = Field(default_factory=dict)
    meal_type_preferences: Dict[str, List[str]] = Field(default_factory=dict)
    cooking_frequency: CookingFrequency = Field(default_factory=CookingFrequency)
    complexity_preference: ComplexityPreference = Field(default_factory=ComplexityPreference)
    seasonal_patterns: Dict[str, SeasonalPattern] = Field(default_factory=dict)
    social_patterns: Dict[str, SocialPattern] = Field(default_factory=dict)


class FlavorIntensities(BaseModel):
    sweet: float = 5
    salty: float = 5
    spicy: float = 5
    sour: float = 5
    umami: float = 5
    bitter: float = 5


class TexturePreferences(BaseModel):
    crispy: float = 5
    creamy: float = 5
    chewy: float = 5
    soft: float = 5
    crunchy: float = 5


class CuisinePreference(BaseModel):
    score: Annotated[float, Field(ge=0, le=10)]
    confidence: Annotated[float, Field(ge=0, le=1)]
    last_updated: datetime
    attempts: int = 0
    successes: int = 0


class FlavorProfile(BaseModel):
    intensity_preferences: FlavorIntensities = Field(default_factory=FlavorIntensities)
    spice_level: SpiceLevel = "medium"
    texture_preferences: TexturePreferences = Field(default_factory=TexturePreferences)
    cooking_method_preferences: Dict[str, float] = Field(default_factory=dict)
    ingredient_affinities: Dict[str, float] = Field(default_factory=dict)
    cuisine_preferences: Dict[str, CuisinePreference] = Field(default_factory=dict)

    def top_cuisines(self, count: int = 3) -> List[str]:
        ranked = sorted(self.cuisine_preferences.items(), key=lambda item: (-item[1].score, item[0]))
        return [cuisine for cuisine, _ in ranked[:count]]


class SkillAreas(BaseModel):
    basic_techniques: float = 5
    knifework: float = 5
    timing: float = 5
    seasoning: float = 5
    heat_control: float = 5
    plating: float = 5
    baking: float = 5
    improvisation: float = 5


class LearningTrajectory(BaseModel):
    recent_improvement: bool = False
    suggested_next_skills: List[str] = Field(default_factory=list)
    challenge_areas: List[str] = Field(default_factory=list)


class SkillAssessment(BaseModel):
    overall_level: SkillLevel = "intermediate"
    confidence: Annotated[float, Field(0.5, ge=0, le=1)]
    skill_areas: SkillAreas = Field(default_factory=SkillAreas)
    learning_trajectory: LearningTrajectory = Field(default_factory=LearningTrajectory)
    equipment_familiarity: Dict[str, float] = Field(default_factory=dict)


Persona = Literal[
    "quick_cook",
    "weekend_chef",
    "health_focused",
    "comfort_seeker",
    "adventurous_eater",
    "budget_conscious",
]


class PersonalizationInsights(BaseModel):
    persona: Persona = "comfort_seeker"
    persona_confidence: Annotated[float, Field(0.0, ge=0, le=1)]
    behavior_patterns: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    growth_areas: List[str] = Field(default_factory=list)
    predicted_trends: List[str] = Field(default_factory=list)


class PersonalizationProfile(BaseModel):
    """Cooking patterns, flavor profile and skill assessment for one user.

    Built and cached as a single unit. `learned` is False for the default
    profile returned when history is insufficient or unavailable.
    """

    user_id: str
    patterns: CookingPattern = Field(default_factory=CookingPattern)
    flavor_profile: FlavorProfile = Field(default_factory=FlavorProfile)
    skill_assessment: SkillAssessment = Field(default_factory=SkillAssessment)
    insights: Optional[PersonalizationInsights] = None
    learned: bool = False
    dominant_intent: Optional[QueryIntent] = None


class PersonalizedFilters(BaseModel):
    max_difficulty: Difficulty = "medium"
    preferred_cuisines: List[str] = Field(default_factory=list)
    max_total_time: Optional[int] = None
    max_spice_level: SpiceLevel = "medium"


# ---------------------------------------------------------------------------
# Environmental context
# ---------------------------------------------------------------------------

WeatherCondition = Literal["sunny", "rainy", "cold", "hot", "mild"]


class ExternalSignal(BaseModel):
    """Optional weather/region signal. Every field may be absent."""

    weather_condition: Optional[WeatherCondition] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    region: Optional[str] = None


class TemporalContext(BaseModel):
    reference_time: datetime
    time_of_day: TimeOfDay
    day_of_week: str
    season: Season
    month: str
    is_weekend: bool
    is_holiday: bool = False
    holiday_name: Optional[str] = None
    minutes_until_next_meal: int = 240


class LocationContext(BaseModel):
    timezone: str = "UTC"
    region: Optional[str] = None
    weather_condition: Optional[WeatherCondition] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    seasonal_produce: List[str] = Field(default_factory=list)


class KitchenContext(BaseModel):
    available_equipment: List[str] = Field(default_factory=lambda: ["oven", "stovetop", "microwave"])
    kitchen_size: Literal["small", "medium", "large"] = "medium"
    storage_capacity: Literal["limited", "adequate", "spacious"] = "adequate"
    time_available: int = 45
    energy_level: Level = "medium"
    noise_restrictions: bool = False


class SocialContext(BaseModel):
    companion_count: int = 1
    guest_types: List[Literal["adults", "children", "elderly"]] = Field(default_factory=lambda: ["adults"])
    occasion: Literal["casual", "special", "romantic", "family", "party", "work"] = "casual"
    dietary_restrictions: List[str] = Field(default_factory=list)
    budget_band: Literal["tight", "moderate", "flexible"] = "moderate"


class EnvironmentalContext(BaseModel):
    temporal: TemporalContext
    location: LocationContext = Field(default_factory=LocationContext)
    kitchen: KitchenContext = Field(default_factory=KitchenContext)
    social: SocialContext = Field(default_factory=SocialContext)


class TimeRecommendations(BaseModel):
    suggested_meal_types: List[str] = Field(default_factory=list)
    optimal_cooking_window: int = 45
    prep_time_recommendations: List[str] = Field(default_factory=list)
    energy_considerations: List[str] = Field(default_factory=list)


class SeasonalRecommendations(BaseModel):
    ingredient_suggestions: List[str] = Field(default_factory=list)
    cooking_method_suggestions: List[str] = Field(default_factory=list)
    nutritional_focus: List[str] = Field(default_factory=list)
    comfort_factors: List[str] = Field(default_factory=list)


class SocialRecommendations(BaseModel):
    portion_adjustment: float = 1.0
    complexity_adjustment: Literal["simpler", "same", "more_complex"] = "same"
    presentation_suggestions: List[str] = Field(default_factory=list)
    serving_style_suggestions: List[str] = Field(default_factory=list)


class MoodAdaptations(BaseModel):
    effort_level: Literal["minimal", "moderate", "high"] = "moderate"
    comfort_factors: List[str] = Field(default_factory=list)
    motivational_suggestions: List[str] = Field(default_factory=list)
    simplicity_recommendations: List[str] = Field(default_factory=list)


class ContextualRecommendations(BaseModel):
    time: TimeRecommendations = Field(default_factory=TimeRecommendations)
    seasonal: SeasonalRecommendations = Field(default_factory=SeasonalRecommendations)
    social: SocialRecommendations = Field(default_factory=SocialRecommendations)
    mood: MoodAdaptations = Field(default_factory=MoodAdaptations)


PositiveMultiplier = Annotated[float, Field(gt=0)]


class TimeMultipliers(BaseModel):
    urgency: PositiveMultiplier = 1.0
    energy: PositiveMultiplier = 1.0
    appropriateness: PositiveMultiplier = 1.0


class EnvironmentMultipliers(BaseModel):
    seasonal: PositiveMultiplier = 1.0
    weather: PositiveMultiplier = 1.0
    equipment: PositiveMultiplier = 1.0


class SocialMultipliers(BaseModel):
    complexity: PositiveMultiplier = 1.0
    portion: PositiveMultiplier = 1.0
    presentation: PositiveMultiplier = 1.0


class ContextualScoring(BaseModel):
    time_multipliers: TimeMultipliers = Field(default_factory=TimeMultipliers)
    environment_multipliers: EnvironmentMultipliers = Field(default_factory=EnvironmentMultipliers)
    social_multipliers: SocialMultipliers = Field(default_factory=SocialMultipliers)
    overall_context_score: PositiveMultiplier = 1.0


# ---------------------------------------------------------------------------
# Candidates and scoring
# ---------------------------------------------------------------------------

class Candidate(BaseModel):
    """A recipe, optionally paired with the meal slot it would fill."""

    recipe: Recipe
    meal_slot: Optional[MealSlot] = None
    missing_ingredients: List[str] = Field(default_factory=list)


class CandidateFilters(BaseModel):
    cuisines: List[str] = Field(default_factory=list)
    max_missing_ingredients: int = 5
    limit: int = 50


class CandidateSet(BaseModel):
    perfect_matches: List[Recipe] = Field(default_factory=list)
    partial_matches: List[Candidate] = Field(default_factory=list)

    def all_candidates(self) -> List[Candidate]:
        return [Candidate(recipe=recipe) for recipe in self.perfect_matches] + list(self.partial_matches)


Score = Annotated[float, Field(ge=0.0, le=100.0)]


class SubScores(BaseModel):
    ingredient_match: Score = 0.0
    skill_alignment: Score = 0.0
    time_alignment: Score = 0.0
    dietary_match: Score = 0.0
    cuisine_preference: Score = 0.0
    seasonality: Score = 0.0
    popularity: Score = 0.0
    personalization: Score = 0.0
    context: Score = 0.0
    budget: Score = 0.0
    nutrition: Score = 0.0
    waste_reduction: Score = 0.0


class ScoredCandidate(BaseModel):
    recipe: Recipe
    meal_slot: Optional[MealSlot] = None
    sub_scores: SubScores
    final_score: Score
    explanation: str
    suggestions: List[str] = Field(default_factory=list)
    success_probability: Annotated[float, Field(ge=0.0, le=1.0)]
    missing_ingredients: List[str] = Field(default_factory=list)
    match_percentage: Score = 0.0


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------

class NutrientBalance(BaseModel):
    target: float
    actual: float
    score: Score


class NutritionalBalance(BaseModel):
    calories: NutrientBalance
    protein: NutrientBalance
    carbs: NutrientBalance
    fat: NutrientBalance


class BudgetAnalysis(BaseModel):
    estimated_cost: float = 0.0
    budget_efficiency: Score = 0.0
    cost_per_meal: float = 0.0


class PlanShoppingSummary(BaseModel):
    new_ingredients: List[str] = Field(default_factory=list)
    can_use_existing: List[str] = Field(default_factory=list)
    waste_minimization: Score = 0.0


class MealPlanRecommendation(BaseModel):
    start_date: date
    days: int
    meal_plan: List[MealSlot] = Field(default_factory=list)
    plan_score: Score = 0.0
    nutritional_balance: NutritionalBalance
    budget_analysis: BudgetAnalysis = Field(default_factory=BudgetAnalysis)
    shopping: PlanShoppingSummary = Field(default_factory=PlanShoppingSummary)
    explanation: str = ""
    alternatives: List[str] = Field(default_factory=list)


class ShoppingItem(BaseModel):
    name: str
    category: str
    amount: float
    unit: str = ""
    estimated_cost: float = 0.0
    priority: Literal["high", "medium", "low"] = "medium"
    recipes: List[str] = Field(default_factory=list)


class ShoppingOptimization(BaseModel):
    items: List[ShoppingItem] = Field(default_factory=list)
    total_cost: float = 0.0
    optimization: Score = 0.0
    budget_tips: List[str] = Field(default_factory=list)
    store_suggestions: List[str] = Field(default_factory=list)


class SubstituteOption(BaseModel):
    ingredient: str
    ratio: str
    impact: Literal["minimal", "moderate", "significant"]
    notes: str = ""
    available: bool = False


class Substitution(BaseModel):
    original: str
    substitutes: List[SubstituteOption] = Field(default_factory=list)


class CookingTip(BaseModel):
    title: str
    description: str
    difficulty: Difficulty
    tags: List[str] = Field(default_factory=list)


class NutritionSummary(BaseModel):
    recipe_id: str
    title: str
    calories: float
    protein: float
    carbs: float
    fat: float
    balanced: bool
    estimated: bool = False
