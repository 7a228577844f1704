"""Personalization profile builder.

Aggregates a user's interaction history into cooking patterns, a flavor
profile, a skill assessment and persona insights. "Learning" here is plain
frequency and recency counting over the most recent interactions; with fewer
than LEARNING_THRESHOLD interactions the documented default profile is
returned instead.

Profiles are cached per user in a TTLCache and always built and stored as one
unit, so a caller sees either a cached profile or a freshly completed one.
"""

from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from src.engines.query_interpreter import SOCIAL_KEYWORDS, season_for
from src.models.analysis import (
    ComplexityPreference,
    CookingFrequency,
    CookingPattern,
    CuisinePreference,
    FlavorIntensities,
    FlavorProfile,
    LearningTrajectory,
    PersonalizationInsights,
    PersonalizationProfile,
    PersonalizedFilters,
    QueryAnalysis,
    SeasonalPattern,
    SkillAreas,
    SkillAssessment,
    SocialPattern,
    TexturePreferences,
)
from src.models.models import (
    DIFFICULTY_RANK,
    QUERY_INTENTS,
    Recipe,
    UserContext,
    ensure_aware,
    normalize_text,
)
from src.models.responses import (
    DietaryGuidanceData,
    IngredientData,
    MealPlanData,
    RecipeResultsData,
    UserInteraction,
)
from src.ports.ports import HistoryReader
from src.utils.cache import Clock, TTLCache, utc_now
from src.utils.config import config
from src.utils.errors import safe_execute_sync
from src.utils.logger import logger


FLAVOR_KEYWORDS: Dict[str, List[str]] = {
    "sweet": ["sweet", "honey", "sugar", "caramel", "chocolate", "maple", "dessert"],
    "salty": ["salty", "soy sauce", "bacon", "parmesan", "feta", "olive", "anchovy"],
    "spicy": ["spicy", "chili", "chilli", "jalapeno", "curry", "sriracha", "cayenne", "hot"],
    "sour": ["sour", "lemon", "lime", "vinegar", "pickled", "tamarind", "yogurt"],
    "umami": ["umami", "mushroom", "soy sauce", "parmesan", "tomato", "miso", "beef"],
    "bitter": ["bitter", "kale", "coffee", "arugula", "radicchio", "dark chocolate"],
}

TEXTURE_KEYWORDS: Dict[str, List[str]] = {
    "crispy": ["crispy", "crisp", "fried", "tempura"],
    "creamy": ["creamy", "cream", "risotto", "alfredo", "avocado", "yogurt"],
    "chewy": ["chewy", "noodle", "noodles", "mochi", "bagel"],
    "soft": ["soft", "mashed", "braised", "stew", "pudding"],
    "crunchy": ["crunchy", "nuts", "slaw", "granola", "toasted"],
}

METHOD_KEYWORDS: Dict[str, List[str]] = {
    "baking": ["bake", "baked", "baking"],
    "roasting": ["roast", "roasted", "roasting"],
    "grilling": ["grill", "grilled", "grilling", "bbq"],
    "sauteing": ["saute", "sauteed", "sauteing", "stir fry", "stir fried"],
    "frying": ["fry", "fried", "frying"],
    "steaming": ["steam", "steamed", "steaming"],
    "braising": ["braise", "braised", "braising", "stew"],
    "boiling": ["boil", "boiled", "poach", "poached", "simmer"],
}

SKILL_AREA_KEYWORDS: Dict[str, List[str]] = {
    "basic_techniques": ["boil", "scramble", "toast", "saute", "roast"],
    "knifework": ["chop", "dice", "julienne", "mince", "slice", "salad", "stir fry"],
    "timing": ["steak", "stir fry", "souffle", "roast", "risotto"],
    "seasoning": ["spice", "herb", "curry", "marinade", "seasoning", "sauce"],
    "heat_control": ["sear", "saute", "caramelize", "fry", "steak", "stir fry"],
    "plating": ["plated", "garnish", "elegant", "tart", "gourmet"],
    "baking": ["bake", "baked", "bread", "cake", "cookie", "pastry", "muffin"],
    "improvisation": ["leftover", "leftovers", "substitute", "fusion", "clean out"],
}

SKILL_AREA_NAMES: Dict[str, str] = {
    "basic_techniques": "Basic techniques",
    "knifework": "Knife skills",
    "timing": "Timing coordination",
    "seasoning": "Seasoning",
    "heat_control": "Heat control",
    "plating": "Plating",
    "baking": "Baking",
    "improvisation": "Improvisation",
}

TIRED_KEYWORDS = ["quick", "easy", "simple", "tired", "fast", "lazy"]
ECONOMY_KEYWORDS = ["cheap", "budget", "affordable", "inexpensive"]
HEALTH_INTENTS = ("nutrition-info", "dietary-guidance")
DIFFICULTY_FOR_SKILL = {"beginner": "easy", "intermediate": "medium", "advanced": "hard"}
WEEKDAY_NAMES = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]


def recipes_in_response(interaction: UserInteraction) -> List[Recipe]:
    """Recipes an interaction's response showed the user, best first."""
    data = interaction.response.data
    if isinstance(data, RecipeResultsData):
        return [candidate.recipe for candidate in data.candidates]
    if isinstance(data, DietaryGuidanceData):
        return [candidate.recipe for candidate in data.compliant_recipes]
    if isinstance(data, IngredientData):
        return [candidate.recipe for candidate in data.suggested_recipes]
    if isinstance(data, MealPlanData):
        return [slot.recipe for slot in data.plan.meal_plan if slot.recipe is not None]
    return []


def primary_recipe(interaction: UserInteraction) -> Optional[Recipe]:
    recipes = recipes_in_response(interaction)
    return recipes[0] if recipes else None


def _has_keyword(text: str, keywords: Iterable[str]) -> bool:
    padded = f" {text} "
    return any(f" {keyword} " in padded for keyword in keywords)


def _top_entries(counter: Counter, count: int) -> List[str]:
    return [key for key, _ in sorted(counter.items(), key=lambda item: (-item[1], item[0]))[:count]]


def _most_common_difficulty(recipes: Sequence[Recipe]) -> Optional[str]:
    if not recipes:
        return None
    counts = Counter(recipe.difficulty for recipe in recipes)
    # Ties go to the easier difficulty
    return min(counts, key=lambda d: (-counts[d], DIFFICULTY_RANK[d]))


def _clamp(value: float, low: float = 0.0, high: float = 10.0) -> float:
    return max(low, min(high, value))


def _shrunk_intensity(hits: int, total: int) -> float:
    """Blend observed keyword frequency toward the neutral 5 with a prior weight of 2."""
    return round(_clamp((5 * 2 + 10 * hits) / (2 + total)), 1)


def spice_level_for(intensity: float) -> str:
    if intensity < 2.5:
        return "mild"
    if intensity < 6:
        return "medium"
    if intensity < 8.5:
        return "hot"
    return "extra-hot"


class PersonalizationEngine:
    """Builds and caches PersonalizationProfile objects."""

    def __init__(
        self,
        history: HistoryReader,
        cache: Optional[TTLCache] = None,
        clock: Clock = utc_now,
        learning_threshold: Optional[int] = None,
        history_limit: Optional[int] = None,
    ):
        self.history = history
        self.clock = clock
        self.cache = cache or TTLCache(
            timedelta(minutes=config.PROFILE_CACHE_TTL_MINUTES), clock=clock, name="profile-cache"
        )
        self.learning_threshold = learning_threshold if learning_threshold is not None else config.LEARNING_THRESHOLD
        self.history_limit = history_limit if history_limit is not None else config.HISTORY_LIMIT

    # ------------------------------------------------------------------
    # Profile lifecycle
    # ------------------------------------------------------------------

    def default_profile(self, user_id: str, context: UserContext) -> PersonalizationProfile:
        """The documented default: neutral flavors, empty patterns, snapshot skill level."""
        return PersonalizationProfile(
            user_id=user_id,
            skill_assessment=SkillAssessment(overall_level=context.cooking_skill_level),
        )

    async def build_profile(
        self,
        user_id: str,
        context: UserContext,
        allow_personalization: bool = True,
    ) -> PersonalizationProfile:
        """Return the cached profile or build a new one.

        Never raises: read or aggregation failures produce the default profile,
        which is not cached so the next request retries.
        """
        if not allow_personalization:
            logger.debug(f"Personalization disabled for user {user_id}; using default profile")
            return self.default_profile(user_id, context)

        cached = self.cache.get(user_id)
        if cached is not None:
            logger.debug(f"Profile cache hit for user {user_id}")
            return cached

        try:
            interactions = await self.history.recent_interactions(user_id, self.history_limit)
        except Exception as e:
            logger.warning(f"History read failed for user {user_id}, using default profile: {e}")
            return self.default_profile(user_id, context)

        profile = safe_execute_sync(
            lambda: self.compute_profile(user_id, interactions[: self.history_limit], context),
            f"Compute profile for user {user_id}",
        )
        if profile is None:
            return self.default_profile(user_id, context)

        self.cache.put(user_id, profile)
        logger.info(f"✓ Profile built for user {user_id} from {len(interactions)} interactions")
        return profile

    def compute_profile(
        self,
        user_id: str,
        interactions: List[UserInteraction],
        context: UserContext,
    ) -> PersonalizationProfile:
        """Pure aggregation over a history window (most recent first)."""
        if len(interactions) < self.learning_threshold:
            return self.default_profile(user_id, context)

        patterns = self.analyze_cooking_patterns(interactions)
        flavor = self.build_flavor_profile(interactions)
        skill = self.assess_skill_level(interactions, context)
        insights = self.generate_insights(patterns, flavor, skill, interactions)

        return PersonalizationProfile(
            user_id=user_id,
            patterns=patterns,
            flavor_profile=flavor,
            skill_assessment=skill,
            insights=insights,
            learned=True,
            dominant_intent=self._dominant_intent(interactions),
        )

    # ------------------------------------------------------------------
    # Cooking patterns
    # ------------------------------------------------------------------

    def analyze_cooking_patterns(self, interactions: List[UserInteraction]) -> CookingPattern:
        time_preferences: Dict[str, List[str]] = defaultdict(list)
        meal_type_preferences: Dict[str, List[str]] = defaultdict(list)

        for interaction in interactions:
            created = ensure_aware(interaction.created_at)
            day = WEEKDAY_NAMES[created.weekday()]
            time_of_day = interaction.request.context.session_context.time_of_day
            if time_of_day not in time_preferences[day]:
                time_preferences[day].append(time_of_day)

            if interaction.successful:
                for recipe in recipes_in_response(interaction)[:3]:
                    for meal_type in recipe.meal_types:
                        if meal_type not in meal_type_preferences[time_of_day]:
                            meal_type_preferences[time_of_day].append(meal_type)

        return CookingPattern(
            time_preferences=dict(time_preferences),
            meal_type_preferences=dict(meal_type_preferences),
            cooking_frequency=self._cooking_frequency(interactions),
            complexity_preference=self._complexity_preference(interactions),
            seasonal_patterns=self._seasonal_patterns(interactions),
            social_patterns=self._social_patterns(interactions),
        )

    def _cooking_frequency(self, interactions: List[UserInteraction]) -> CookingFrequency:
        weeks: Dict[tuple, List[int]] = defaultdict(lambda: [0, 0])
        for interaction in interactions:
            created = ensure_aware(interaction.created_at)
            iso = created.isocalendar()
            weeks[(iso[0], iso[1])][1 if created.weekday() >= 5 else 0] += 1

        total_weeks = len(weeks)
        if total_weeks == 0:
            return CookingFrequency(weekdays=0, weekends=0, average_per_week=0)
        weekdays = sum(counts[0] for counts in weeks.values())
        weekends = sum(counts[1] for counts in weeks.values())
        return CookingFrequency(
            weekdays=round(weekdays / total_weeks, 2),
            weekends=round(weekends / total_weeks, 2),
            average_per_week=round((weekdays + weekends) / total_weeks, 2),
        )

    def _complexity_preference(self, interactions: List[UserInteraction]) -> ComplexityPreference:
        weekday, weekend, tired = [], [], []
        for interaction in interactions:
            recipe = primary_recipe(interaction)
            if recipe is None:
                continue
            if ensure_aware(interaction.created_at).weekday() >= 5:
                weekend.append(recipe)
            else:
                weekday.append(recipe)
            query = normalize_text(interaction.request.query)
            if (
                interaction.request.context.session_context.time_of_day == "evening"
                and _has_keyword(query, TIRED_KEYWORDS)
            ):
                tired.append(recipe)

        return ComplexityPreference(
            weekdays=_most_common_difficulty(weekday) or "medium",
            weekends=_most_common_difficulty(weekend) or "medium",
            when_tired=_most_common_difficulty(tired) or "easy",
        )

    def _seasonal_patterns(self, interactions: List[UserInteraction]) -> Dict[str, SeasonalPattern]:
        data: Dict[str, Dict[str, Counter]] = defaultdict(
            lambda: {"cuisines": Counter(), "meal_types": Counter(), "methods": Counter()}
        )
        for interaction in interactions:
            season = season_for(ensure_aware(interaction.created_at))
            for recipe in recipes_in_response(interaction)[:3]:
                if recipe.cuisine:
                    data[season]["cuisines"][recipe.cuisine] += 1
                data[season]["meal_types"].update(recipe.meal_types)
                text = recipe.searchable_text
                for method, keywords in METHOD_KEYWORDS.items():
                    if _has_keyword(text, keywords):
                        data[season]["methods"][method] += 1

        return {
            season: SeasonalPattern(
                preferred_cuisines=_top_entries(counts["cuisines"], 3),
                preferred_meal_types=_top_entries(counts["meal_types"], 3),
                cooking_methods=_top_entries(counts["methods"], 3),
            )
            for season, counts in data.items()
        }

    def _social_patterns(self, interactions: List[UserInteraction]) -> Dict[str, SocialPattern]:
        grouped: Dict[str, List[Recipe]] = defaultdict(list)
        for interaction in interactions:
            recipe = primary_recipe(interaction)
            if recipe is None:
                continue
            query = normalize_text(interaction.request.query)
            setting = next(
                (name for name, keywords in SOCIAL_KEYWORDS if _has_keyword(query, keywords)),
                "solo",
            )
            grouped[setting].append(recipe)

        patterns = {}
        for setting, recipes in grouped.items():
            cuisines = Counter(recipe.cuisine for recipe in recipes if recipe.cuisine)
            patterns[setting] = SocialPattern(
                preferred_cuisines=_top_entries(cuisines, 3),
                portion_size=round(sum(recipe.servings for recipe in recipes) / len(recipes), 1),
                complexity=_most_common_difficulty(recipes) or "easy",
            )
        return patterns

    # ------------------------------------------------------------------
    # Flavor profile
    # ------------------------------------------------------------------

    def build_flavor_profile(self, interactions: List[UserInteraction]) -> FlavorProfile:
        """Flavor and texture scales from successful interactions only.

        Cuisine preferences count every attempt so that success rates can be
        derived; everything else ignores unsuccessful interactions.
        """
        liked = [
            recipe
            for interaction in interactions
            if interaction.successful
            for recipe in recipes_in_response(interaction)[:1]
        ]
        texts = [recipe.searchable_text for recipe in liked]
        total = len(texts)

        intensities = {
            flavor: _shrunk_intensity(sum(1 for text in texts if _has_keyword(text, keywords)), total)
            for flavor, keywords in FLAVOR_KEYWORDS.items()
        }
        textures = {
            texture: _shrunk_intensity(sum(1 for text in texts if _has_keyword(text, keywords)), total)
            for texture, keywords in TEXTURE_KEYWORDS.items()
        }

        methods: Dict[str, float] = {}
        for method, keywords in METHOD_KEYWORDS.items():
            count = sum(1 for text in texts if _has_keyword(text, keywords))
            if count:
                methods[method] = round(_clamp(10 * count / total), 1)

        ingredient_counts = Counter(key for recipe in liked for key in set(recipe.ingredient_keys))
        affinities = {
            name: round(_clamp(10 * ingredient_counts[name] / total), 1)
            for name in _top_entries(ingredient_counts, 10)
        }

        return FlavorProfile(
            intensity_preferences=FlavorIntensities(**intensities),
            spice_level=spice_level_for(intensities["spicy"]),
            texture_preferences=TexturePreferences(**textures),
            cooking_method_preferences=methods,
            ingredient_affinities=affinities,
            cuisine_preferences=self._cuisine_preferences(interactions),
        )

    def _cuisine_preferences(self, interactions: List[UserInteraction]) -> Dict[str, CuisinePreference]:
        attempts: Counter = Counter()
        successes: Counter = Counter()
        last_seen: Dict[str, datetime] = {}
        for interaction in interactions:
            recipe = primary_recipe(interaction)
            if recipe is None or not recipe.cuisine:
                continue
            cuisine = recipe.cuisine
            attempts[cuisine] += 1
            if interaction.successful:
                successes[cuisine] += 1
            created = ensure_aware(interaction.created_at)
            if cuisine not in last_seen or created > last_seen[cuisine]:
                last_seen[cuisine] = created

        return {
            cuisine: CuisinePreference(
                score=round(10 * successes[cuisine] / count, 1),
                confidence=round(min(1.0, count / 10), 2),
                last_updated=last_seen[cuisine],
                attempts=count,
                successes=successes[cuisine],
            )
            for cuisine, count in sorted(attempts.items())
        }

    # ------------------------------------------------------------------
    # Skill assessment
    # ------------------------------------------------------------------

    def assess_skill_level(self, interactions: List[UserInteraction], context: UserContext) -> SkillAssessment:
        attempts: Counter = Counter()
        successes: Counter = Counter()
        for interaction in interactions:
            recipe = primary_recipe(interaction)
            if recipe is None or interaction.feedback is None:
                continue
            attempts[recipe.difficulty] += 1
            if interaction.successful:
                successes[recipe.difficulty] += 1

        def rate(difficulty: str) -> float:
            return successes[difficulty] / attempts[difficulty] if attempts[difficulty] else 0.0

        level = context.cooking_skill_level
        if attempts["hard"] >= 2 and rate("hard") >= 0.6:
            level = "advanced"
        elif attempts["medium"] >= 2 and rate("medium") >= 0.6:
            level = "advanced" if level == "advanced" else "intermediate"
        elif attempts["medium"] >= 2 and rate("medium") < 0.3:
            level = "beginner"

        rated = sum(attempts.values())
        skill_areas = self._skill_areas(interactions)
        return SkillAssessment(
            overall_level=level,
            confidence=round(min(0.95, 0.4 + 0.02 * rated), 2),
            skill_areas=skill_areas,
            learning_trajectory=self._learning_trajectory(interactions, skill_areas),
            equipment_familiarity=self._equipment_familiarity(interactions),
        )

    def _skill_areas(self, interactions: List[UserInteraction]) -> SkillAreas:
        scores = {area: 5.0 for area in SKILL_AREA_KEYWORDS}
        for interaction in interactions:
            recipe = primary_recipe(interaction)
            if recipe is None or interaction.feedback is None:
                continue
            text = recipe.searchable_text
            delta = 1.5 if interaction.successful else -1.0
            for area, keywords in SKILL_AREA_KEYWORDS.items():
                if _has_keyword(text, keywords):
                    scores[area] += delta
        return SkillAreas(**{area: round(_clamp(score), 1) for area, score in scores.items()})

    def _learning_trajectory(self, interactions: List[UserInteraction], areas: SkillAreas) -> LearningTrajectory:
        successful = []
        for interaction in interactions:
            recipe = primary_recipe(interaction)
            if interaction.successful and recipe is not None:
                successful.append(DIFFICULTY_RANK[recipe.difficulty])
        half = len(successful) // 2
        recent, older = successful[:half], successful[half:]
        improved = bool(recent and older) and sum(recent) / len(recent) > sum(older) / len(older)

        ranked = sorted(areas.model_dump().items(), key=lambda item: (item[1], item[0]))
        return LearningTrajectory(
            recent_improvement=improved,
            suggested_next_skills=[SKILL_AREA_NAMES[area] for area, _ in ranked[:2]],
            challenge_areas=[SKILL_AREA_NAMES[area] for area, score in ranked if score < 5],
        )

    def _equipment_familiarity(self, interactions: List[UserInteraction]) -> Dict[str, float]:
        counts: Counter = Counter()
        for interaction in interactions:
            recipe = primary_recipe(interaction)
            if recipe is not None:
                counts.update(set(recipe.equipment))
        return {item: float(min(10, 2 * count)) for item, count in sorted(counts.items())}

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------

    def generate_insights(
        self,
        patterns: CookingPattern,
        flavor: FlavorProfile,
        skill: SkillAssessment,
        interactions: List[UserInteraction],
    ) -> PersonalizationInsights:
        total = max(len(interactions), 1)
        queries = [normalize_text(i.request.query) for i in interactions]
        quick = 0
        for interaction, query in zip(interactions, queries):
            recipe = primary_recipe(interaction)
            if _has_keyword(query, ["quick", "fast"]) or (recipe is not None and recipe.minutes <= 30):
                quick += 1
        frequency = patterns.cooking_frequency
        complexity = patterns.complexity_preference
        weekend_chef = (
            frequency.weekends > frequency.weekdays
            and DIFFICULTY_RANK[complexity.weekends] > DIFFICULTY_RANK[complexity.weekdays]
        )
        cuisines_tried = len(flavor.cuisine_preferences)

        persona_scores = {
            "quick_cook": quick / total,
            "weekend_chef": 0.7 if weekend_chef else 0.0,
            "health_focused": sum(
                1
                for interaction, query in zip(interactions, queries)
                if interaction.response.intent in HEALTH_INTENTS or _has_keyword(query, ["healthy"])
            ) / total,
            "budget_conscious": sum(1 for q in queries if _has_keyword(q, ECONOMY_KEYWORDS)) / total,
            "adventurous_eater": min(1.0, cuisines_tried / 5) if cuisines_tried >= 4 else 0.0,
            "comfort_seeker": 0.3,
        }
        persona = max(persona_scores, key=lambda name: persona_scores[name])

        behavior = [f"Cooks about {frequency.average_per_week:.1f} times per week"]
        behavior.append(f"Prefers {complexity.weekdays} recipes on weekdays")
        busiest = Counter(i.request.context.session_context.time_of_day for i in interactions).most_common(1)
        if busiest:
            behavior.append(f"Most active in the {busiest[0][0]}")

        recommendations = []
        if skill.overall_level == "beginner":
            recommendations.append("Build confidence with simple one-pan recipes")
        elif skill.overall_level == "advanced":
            recommendations.append("Try more advanced techniques on weekends")
        if persona == "quick_cook":
            recommendations.append("Batch-prep ingredients to speed up weeknight cooking")
        top = flavor.top_cuisines(1)
        if top:
            recommendations.append(f"Explore new dishes from {top[0]} cuisine")

        trends = []
        if skill.learning_trajectory.recent_improvement:
            trends.append("Growing confidence with complex recipes")
        if flavor.intensity_preferences.spicy >= 6:
            trends.append("Interest in spicier cuisines")
        if persona == "health_focused":
            trends.append("Interest in healthy cooking")

        return PersonalizationInsights(
            persona=persona,
            persona_confidence=round(min(1.0, persona_scores[persona]), 2),
            behavior_patterns=behavior,
            recommendations=recommendations,
            growth_areas=list(skill.learning_trajectory.challenge_areas or skill.learning_trajectory.suggested_next_skills),
            predicted_trends=trends,
        )

    def _dominant_intent(self, interactions: List[UserInteraction]) -> Optional[str]:
        counts = Counter(interaction.response.intent for interaction in interactions)
        if not counts:
            return None
        return min(counts, key=lambda intent: (-counts[intent], QUERY_INTENTS.index(intent)))

    # ------------------------------------------------------------------
    # Applying a profile
    # ------------------------------------------------------------------

    def personalized_filters(
        self,
        profile: PersonalizationProfile,
        context: UserContext,
        now: Optional[datetime] = None,
    ) -> PersonalizedFilters:
        """Soft recipe filters derived from the profile and session."""
        now = ensure_aware(now or self.clock())
        complexity = profile.patterns.complexity_preference
        is_weekday = now.weekday() < 5

        if context.session_context.time_of_day == "evening" and is_weekday and complexity.weekdays == "easy":
            max_difficulty = "easy"
        else:
            max_difficulty = DIFFICULTY_FOR_SKILL[profile.skill_assessment.overall_level]

        preferred = profile.flavor_profile.top_cuisines(3) or list(context.dietary_preferences.preferred_cuisines)
        quick_cook = profile.insights is not None and profile.insights.persona == "quick_cook"

        return PersonalizedFilters(
            max_difficulty=max_difficulty,
            preferred_cuisines=preferred,
            max_total_time=30 if quick_cook else None,
            max_spice_level=profile.flavor_profile.spice_level,
        )

    def personalize_query(
        self,
        analysis: QueryAnalysis,
        profile: PersonalizationProfile,
        context: UserContext,
    ) -> QueryAnalysis:
        """Return a copy of the analysis nudged by learned behavior."""
        if not profile.learned:
            return analysis

        confidence = analysis.confidence
        if profile.dominant_intent == analysis.intent:
            confidence = min(1.0, confidence + 0.05)

        mood = analysis.mood
        if (
            context.session_context.time_of_day == "evening"
            and profile.patterns.complexity_preference.when_tired == "easy"
            and mood.energy == "medium"
        ):
            mood = mood.model_copy(update={"energy": "low"})

        return analysis.model_copy(update={"confidence": confidence, "mood": mood})
