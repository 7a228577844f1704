"""In-memory implementations of the core's external ports.

Used by the CLI and by tests; production deployments swap these for database
or API backed gateways that satisfy the same protocols.
"""

from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional

from src.models.analysis import Candidate, CandidateFilters, CandidateSet
from src.models.models import Ingredient, Recipe, ingredient_covers, normalize_name
from src.models.responses import UserAgentPreferences, UserInteraction
from src.utils.cache import Clock, utc_now
from src.utils.logger import logger


def missing_ingredients(recipe: Recipe, available: Iterable[str]) -> List[str]:
    """Names of the recipe's required ingredients not covered by `available`."""
    have = list(available)
    return [
        item.name
        for item in recipe.ingredients
        if not item.optional and not any(ingredient_covers(name, item.name) for name in have)
    ]


class InMemoryRecipeCatalog:
    """CandidateSupplier over a fixed list of recipes."""

    def __init__(self, recipes: Optional[Iterable[Recipe]] = None):
        self._recipes: Dict[str, Recipe] = {}
        for recipe in recipes or []:
            self.add(recipe)

    def add(self, recipe: Recipe) -> None:
        self._recipes[recipe.id] = recipe

    def __len__(self) -> int:
        return len(self._recipes)

    async def find_candidates(
        self,
        ingredients: List[Ingredient],
        filters: CandidateFilters,
    ) -> CandidateSet:
        names = [ingredient.name for ingredient in ingredients]
        wanted_cuisines = {normalize_name(c) for c in filters.cuisines}

        result = CandidateSet()
        for recipe in self._recipes.values():
            if wanted_cuisines and normalize_name(recipe.cuisine or "") not in wanted_cuisines:
                continue
            missing = missing_ingredients(recipe, names)
            if not missing:
                result.perfect_matches.append(recipe)
            elif len(missing) <= filters.max_missing_ingredients:
                result.partial_matches.append(Candidate(recipe=recipe, missing_ingredients=missing))

        result.partial_matches.sort(key=lambda c: (len(c.missing_ingredients), c.recipe.id))
        result.perfect_matches = result.perfect_matches[: filters.limit]
        result.partial_matches = result.partial_matches[: max(filters.limit - len(result.perfect_matches), 0)]
        logger.debug(
            f"Catalog: {len(result.perfect_matches)} perfect, "
            f"{len(result.partial_matches)} partial matches"
        )
        return result


class InMemoryInteractionStore:
    """Both HistoryReader and InteractionSink, keyed by user id."""

    def __init__(self, interactions: Optional[Iterable[UserInteraction]] = None):
        self._by_user: Dict[str, List[UserInteraction]] = defaultdict(list)
        for interaction in interactions or []:
            self._by_user[interaction.user_id].append(interaction)

    async def recent_interactions(self, user_id: str, limit: int) -> List[UserInteraction]:
        history = sorted(self._by_user.get(user_id, []), key=lambda i: i.created_at, reverse=True)
        return history[:limit]

    async def record(self, interaction: UserInteraction) -> None:
        self._by_user[interaction.user_id].append(interaction)

    def count(self, user_id: str) -> int:
        return len(self._by_user.get(user_id, []))


def _deep_merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class InMemoryPreferenceStore:
    """PreferenceStore with merge-update semantics."""

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock
        self._preferences: Dict[str, UserAgentPreferences] = {}

    async def get(self, user_id: str) -> Optional[UserAgentPreferences]:
        return self._preferences.get(user_id)

    async def update(self, user_id: str, updates: Dict[str, Any]) -> UserAgentPreferences:
        """Merge `updates` into the stored preferences (nested dicts merge key by key).

        Raises:
            pydantic.ValidationError: If the merged object is invalid; the stored
                value is left unchanged.
        """
        current = self._preferences.get(user_id) or UserAgentPreferences(user_id=user_id)
        merged = _deep_merge(current.model_dump(), updates)
        merged["user_id"] = user_id
        merged["updated_at"] = self._clock()
        preferences = UserAgentPreferences.model_validate(merged)
        self._preferences[user_id] = preferences
        return preferences
