"""Domain and request models for the Sous Chef agent core.

Defines Pydantic models for the kitchen snapshot (ingredients, recipes, meal
plans, dietary preferences) and the immutable agent request. All models use
Pydantic v2 for strict validation; request-side models are frozen because the
core never mutates caller-supplied state.
"""

import re
from datetime import date, datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


QueryIntent = Literal[
    "recipe-search",
    "recipe-recommendation",
    "meal-planning",
    "ingredient-management",
    "shopping-list",
    "nutrition-info",
    "cooking-tips",
    "substitution-help",
    "dietary-guidance",
    "general-help",
]
QUERY_INTENTS: tuple[str, ...] = get_args(QueryIntent)

TimeOfDay = Literal["morning", "afternoon", "evening", "night"]
SkillLevel = Literal["beginner", "intermediate", "advanced"]
Difficulty = Literal["easy", "medium", "hard"]
MealType = Literal["breakfast", "lunch", "dinner", "snack"]

SKILL_RANK: Dict[str, int] = {"beginner": 0, "intermediate": 1, "advanced": 2}
DIFFICULTY_RANK: Dict[str, int] = {"easy": 0, "medium": 1, "hard": 2}


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC so snapshot and request times compare safely."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def normalize_name(name: str) -> str:
    """Lowercase and collapse whitespace in an ingredient or cuisine name."""
    return " ".join(name.lower().split())


def normalize_text(text: str) -> str:
    """Lowercase, drop apostrophes, turn other punctuation into spaces, collapse whitespace."""
    text = text.lower().replace("'", "").replace("’", "")
    text = re.sub(r"[^\w\s]", " ", text)
    return " ".join(text.split())


def singular(token: str) -> str:
    """Strip common English plural endings ("tomatoes" -> "tomato", "berries" -> "berry")."""
    if len(token) > 4 and token.endswith("ies"):
        return token[:-3] + "y"
    if len(token) > 4 and token.endswith("oes"):
        return token[:-2]
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def name_tokens(name: str) -> frozenset:
    return frozenset(singular(token) for token in re.findall(r"[a-z0-9]+", name.lower()))


def ingredient_matches(first: str, second: str) -> bool:
    """True when one ingredient name's tokens are a subset of the other's.

    "chicken" matches "chicken breast" and "eggs" matches "egg", while
    "rice" does not match "chicken".
    """
    a, b = name_tokens(first), name_tokens(second)
    if not a or not b:
        return False
    return a <= b or b <= a


def ingredient_covers(available: str, needed: str) -> bool:
    """True when an ingredient on hand satisfies a required one.

    Only the kitchen side may be more specific: "chicken breast" covers
    "chicken", but "butter" does not cover "peanut butter".
    """
    have, need = name_tokens(available), name_tokens(needed)
    if not have or not need:
        return False
    return need <= have


def same_ingredient(first: str, second: str) -> bool:
    """Exact match after normalization and singularization ("Eggs" == "egg")."""
    a = name_tokens(first)
    return bool(a) and a == name_tokens(second)


class Ingredient(BaseModel):
    """An ingredient currently in the user's kitchen.

    A bare string is accepted and treated as the ingredient name.
    """

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: Optional[str] = None
    name: Annotated[str, Field(min_length=1, max_length=100, description="Ingredient name")]
    quantity: Annotated[float, Field(1.0, ge=0, description="Amount on hand")]
    unit: str = ""
    expiration_date: Optional[datetime] = None
    category: str = "other"
    location: Literal["fridge", "pantry", "freezer"] = "pantry"

    @model_validator(mode="before")
    @classmethod
    def coerce_plain_name(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"name": data}
        return data

    @field_validator("expiration_date", mode="after")
    @classmethod
    def make_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_aware(value)

    @property
    def key(self) -> str:
        return normalize_name(self.name)


class RecipeIngredient(BaseModel):
    """A single ingredient line of a recipe."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    name: Annotated[str, Field(min_length=1, max_length=100)]
    amount: Optional[float] = None
    unit: Optional[str] = None
    optional: bool = False

    @model_validator(mode="before")
    @classmethod
    def coerce_plain_name(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"name": data}
        return data

    @property
    def key(self) -> str:
        return normalize_name(self.name)


class RecipeNutrition(BaseModel):
    """Per-serving nutrition facts."""

    model_config = ConfigDict(frozen=True)

    calories: Annotated[float, Field(ge=0)]
    protein: Annotated[float, Field(0, ge=0, description="grams")]
    carbs: Annotated[float, Field(0, ge=0, description="grams")]
    fat: Annotated[float, Field(0, ge=0, description="grams")]


class Recipe(BaseModel):
    """Domain model for a recipe.

    total_time defaults to prep_time + cook_time when not supplied.
    Only id and title are required; every other field has a neutral default.
    """

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: Annotated[str, Field(min_length=1, description="Recipe identifier")]
    title: Annotated[str, Field(min_length=1, max_length=200, description="Recipe name (1-200 chars)")]
    description: str = ""
    difficulty: Difficulty = "medium"
    cuisine: Optional[str] = None
    meal_types: List[str] = Field(default_factory=list)
    prep_time: Annotated[int, Field(0, ge=0, le=1440, description="Preparation time in minutes")]
    cook_time: Annotated[int, Field(0, ge=0, le=1440, description="Cooking time in minutes")]
    total_time: Annotated[Optional[int], Field(None, ge=0, le=2880, description="Total time in minutes")]
    servings: Annotated[int, Field(1, ge=1, le=100)]
    ingredients: List[RecipeIngredient] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    dietary: List[str] = Field(default_factory=list)
    equipment: List[str] = Field(default_factory=list)
    nutrition: Optional[RecipeNutrition] = None
    estimated_cost: Annotated[Optional[float], Field(None, ge=0, description="Estimated total cost in dollars")]
    is_favorite: bool = False

    @model_validator(mode="before")
    @classmethod
    def fill_total_time(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("total_time") is None:
            data = dict(data)
            data["total_time"] = int(data.get("prep_time") or 0) + int(data.get("cook_time") or 0)
        return data

    @property
    def minutes(self) -> int:
        """Total time in minutes (always populated after validation)."""
        return self.total_time or 0

    @property
    def ingredient_keys(self) -> List[str]:
        return [ingredient.key for ingredient in self.ingredients]

    @property
    def searchable_text(self) -> str:
        """Title, description, tags and ingredient names as normalized text for keyword lookups."""
        return normalize_text(" ".join([self.title, self.description, *self.tags, *self.ingredient_keys]))


class MealSlot(BaseModel):
    """One meal on one day of a plan, optionally filled with a recipe."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    date: date
    meal_type: MealType
    recipe_id: Optional[str] = None
    recipe: Optional[Recipe] = None
    servings: Optional[int] = Field(None, ge=1)
    notes: Optional[str] = None


class MealPlan(BaseModel):
    """A week of meal slots."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    user_id: str
    week_start: date
    meals: List[MealSlot] = Field(default_factory=list)


class DietaryPreferences(BaseModel):
    """Stated dietary restrictions, allergens and cuisine preferences."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    restrictions: List[str] = Field(default_factory=list)
    favorite_categories: List[str] = Field(default_factory=list)
    allergens: List[str] = Field(default_factory=list)
    preferred_cuisines: List[str] = Field(default_factory=list)


class RecentActivity(BaseModel):
    model_config = ConfigDict(frozen=True)

    last_viewed_recipes: List[str] = Field(default_factory=list)
    recent_searches: List[str] = Field(default_factory=list)
    last_cooked_recipes: List[str] = Field(default_factory=list)
    frequent_ingredients: List[str] = Field(default_factory=list)


class SessionContext(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    current_page: str = "home"
    time_of_day: TimeOfDay = "evening"
    timezone: str = "UTC"
    device: Literal["mobile", "tablet", "desktop"] = "desktop"


class UserContext(BaseModel):
    """Snapshot of the user's kitchen state supplied with every request.

    The core reads this snapshot and never mutates it.
    """

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    user_id: Annotated[str, Field(min_length=1, description="Authenticated user id")]
    available_ingredients: List[Ingredient] = Field(default_factory=list)
    available_recipes: List[Recipe] = Field(default_factory=list)
    current_meal_plan: Optional[MealPlan] = None
    current_shopping_list: List[str] = Field(default_factory=list)
    dietary_preferences: DietaryPreferences = Field(default_factory=DietaryPreferences)
    cooking_skill_level: SkillLevel = "intermediate"
    recent_activity: RecentActivity = Field(default_factory=RecentActivity)
    session_context: SessionContext = Field(default_factory=SessionContext)

    @property
    def ingredient_keys(self) -> List[str]:
        return [ingredient.key for ingredient in self.available_ingredients]


class RequestMetadata(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    timestamp: datetime
    source: Literal["chat", "voice", "form", "api"] = "chat"
    session_id: Annotated[str, Field(min_length=1)]

    @field_validator("timestamp", mode="after")
    @classmethod
    def make_aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)


class AgentRequest(BaseModel):
    """Immutable request passed to agents for processing."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: Annotated[str, Field(min_length=1, description="Unique request identifier")]
    query: Annotated[str, Field(min_length=1, max_length=2000, description="User's natural language query")]
    intent: Annotated[Optional[QueryIntent], Field(None, description="Explicit intent override")]
    context: UserContext
    parameters: Dict[str, Any] = Field(default_factory=dict)
    metadata: RequestMetadata

    @property
    def user_id(self) -> str:
        return self.context.user_id
