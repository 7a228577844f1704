"""Environmental context derivation and contextual scoring multipliers.

Temporal fields are calendar arithmetic over the request time; kitchen and
social fields are defaults refined by the snapshot and the query analysis.
Every table lookup has a default, so an absent or empty external signal still
yields a fully populated EnvironmentalContext.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.engines.query_interpreter import season_for
from src.models.analysis import (
    ContextualRecommendations,
    ContextualScoring,
    EnvironmentalContext,
    EnvironmentMultipliers,
    ExternalSignal,
    KitchenContext,
    LocationContext,
    MoodAdaptations,
    QueryAnalysis,
    SeasonalRecommendations,
    SocialContext,
    SocialMultipliers,
    SocialRecommendations,
    TemporalContext,
    TimeMultipliers,
    TimeRecommendations,
)
from src.models.models import Recipe, UserContext, ensure_aware, ingredient_matches, normalize_name
from src.utils.logger import logger


HOLIDAYS: Dict[str, str] = {
    "12-25": "Christmas",
    "01-01": "New Year",
    "07-04": "Independence Day",
    "11-28": "Thanksgiving",
}

SEASONAL_PRODUCE: Dict[str, List[str]] = {
    "spring": ["asparagus", "peas", "strawberries", "artichokes", "spinach", "radishes"],
    "summer": ["tomatoes", "zucchini", "corn", "peaches", "berries", "cucumber"],
    "fall": ["pumpkin", "apples", "squash", "sweet potatoes", "mushrooms"],
    "winter": ["citrus", "oranges", "cabbage", "kale", "persimmons", "root vegetables"],
}

MINUTES_UNTIL_NEXT_MEAL = {"morning": 240, "afternoon": 300, "evening": 720, "night": 480}
ENERGY_BY_TIME = {"morning": "high", "afternoon": "medium", "evening": "medium", "night": "low"}
AVAILABLE_MINUTES = {"morning": 30, "afternoon": 45, "evening": 60, "night": 15}
OPTIMAL_WINDOW = {"morning": 30, "afternoon": 45, "evening": 90, "night": 15}

MEAL_TYPES_BY_TIME = {
    "morning": ["breakfast", "brunch"],
    "afternoon": ["lunch", "snack"],
    "evening": ["dinner", "appetizer"],
    "night": ["snack", "dessert"],
}

SEASONAL_METHODS = {
    "spring": ["light sauteing", "steaming", "grilling"],
    "summer": ["grilling", "cold prep", "minimal cooking"],
    "fall": ["roasting", "braising", "baking"],
    "winter": ["slow cooking", "braising", "warming methods"],
}

WEATHER_METHODS = {
    "hot": ["grilling", "cold prep", "minimal cooking"],
    "cold": ["braising", "roasting", "slow cooking"],
    "rainy": ["indoor cooking", "comfort food"],
}

NUTRITIONAL_FOCUS = {
    "spring": ["detox", "fresh nutrients"],
    "summer": ["hydration", "light meals"],
    "fall": ["immune support", "comfort"],
    "winter": ["warming foods", "hearty nutrition"],
}

COMPANIONS = {"solo": 1, "couple": 2, "family": 4, "party": 8}
SOCIAL_OCCASION = {"couple": "romantic", "family": "family", "party": "party"}
SPECIAL_OCCASIONS = ("birthday", "anniversary", "celebration", "holiday")

WARMING_KEYWORDS = ["soup", "stew", "roast", "roasted", "braise", "braised", "curry", "chili", "casserole"]
REFRESHING_KEYWORDS = ["salad", "grill", "grilled", "cold", "chilled", "smoothie", "fresh"]
PRESENTATION_KEYWORDS = ["elegant", "impressive", "gourmet", "plated"]

# Axis weights for the overall context score
TIME_AXIS_WEIGHT = 0.4
ENVIRONMENT_AXIS_WEIGHT = 0.35
SOCIAL_AXIS_WEIGHT = 0.25


def _local_time(now: datetime, tz_name: str) -> datetime:
    try:
        return now.astimezone(ZoneInfo(tz_name))
    except (ZoneInfoNotFoundError, ValueError):
        logger.debug(f"Unknown timezone {tz_name!r}, using UTC")
        return now.astimezone(timezone.utc)


def _mentions(text: str, keywords: List[str]) -> bool:
    padded = f" {text} "
    return any(f" {keyword} " in padded for keyword in keywords)


def _mean(values: List[float]) -> float:
    return sum(values) / len(values)


class ContextAnalyzer:
    """Derives EnvironmentalContext and per-recipe contextual multipliers."""

    def analyze(
        self,
        context: UserContext,
        now: datetime,
        signal: Optional[ExternalSignal] = None,
        analysis: Optional[QueryAnalysis] = None,
    ) -> EnvironmentalContext:
        """Build the environmental context for one request.

        Args:
            context: Kitchen snapshot.
            now: Request time (naive values are treated as UTC).
            signal: Optional weather/region data; any field may be missing.
            analysis: Optional query analysis used to refine social and energy fields.
        """
        signal = signal or ExternalSignal()
        session = context.session_context
        local = _local_time(ensure_aware(now), session.timezone)
        season = season_for(local)
        time_of_day = session.time_of_day
        holiday = HOLIDAYS.get(local.strftime("%m-%d"))

        temporal = TemporalContext(
            reference_time=local,
            time_of_day=time_of_day,
            day_of_week=local.strftime("%A").lower(),
            season=season,
            month=local.strftime("%B"),
            is_weekend=local.weekday() >= 5,
            is_holiday=holiday is not None,
            holiday_name=holiday,
            minutes_until_next_meal=MINUTES_UNTIL_NEXT_MEAL.get(time_of_day, 240),
        )

        location = LocationContext(
            timezone=session.timezone,
            region=signal.region,
            weather_condition=signal.weather_condition,
            temperature=signal.temperature,
            humidity=signal.humidity,
            seasonal_produce=list(SEASONAL_PRODUCE[season]),
        )

        energy = ENERGY_BY_TIME.get(time_of_day, "medium")
        if analysis is not None and analysis.mood.energy == "low":
            energy = "low"

        kitchen = KitchenContext(
            time_available=AVAILABLE_MINUTES.get(time_of_day, 45),
            energy_level=energy,
            noise_restrictions=time_of_day in ("night", "morning"),
        )

        return EnvironmentalContext(
            temporal=temporal,
            location=location,
            kitchen=kitchen,
            social=self._social(context, analysis),
        )

    def fallback(self, context: UserContext, now: datetime) -> EnvironmentalContext:
        """Minimal context used when analysis fails: defaults only, no inference."""
        moment = ensure_aware(now)
        return EnvironmentalContext(
            temporal=TemporalContext(
                reference_time=moment,
                time_of_day=context.session_context.time_of_day,
                day_of_week=moment.strftime("%A").lower(),
                season=season_for(moment),
                month=moment.strftime("%B"),
                is_weekend=moment.weekday() >= 5,
            ),
            location=LocationContext(timezone=context.session_context.timezone),
            kitchen=KitchenContext(available_equipment=[], time_available=60),
            social=SocialContext(dietary_restrictions=list(context.dietary_preferences.restrictions)),
        )

    def _social(self, context: UserContext, analysis: Optional[QueryAnalysis]) -> SocialContext:
        restrictions = list(context.dietary_preferences.restrictions)
        if analysis is None:
            return SocialContext(dietary_restrictions=restrictions)

        for restriction in analysis.entities.dietary_restrictions:
            if restriction not in restrictions:
                restrictions.append(restriction)

        setting = analysis.context.social
        occasion = SOCIAL_OCCASION.get(setting, "casual")
        if analysis.context.occasion in SPECIAL_OCCASIONS:
            occasion = "special"

        budget = analysis.entities.budget_constraints
        tight = budget.economical or (budget.max_cost is not None and budget.max_cost <= 10)

        return SocialContext(
            companion_count=COMPANIONS.get(setting, 1),
            guest_types=["adults", "children"] if setting == "family" else ["adults"],
            occasion=occasion,
            dietary_restrictions=restrictions,
            budget_band="tight" if tight else "moderate",
        )

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def contextual_recommendations(
        self,
        env: EnvironmentalContext,
        analysis: QueryAnalysis,
    ) -> ContextualRecommendations:
        temporal = env.temporal
        season = temporal.season
        weather = env.location.weather_condition

        time = TimeRecommendations(
            suggested_meal_types=list(MEAL_TYPES_BY_TIME.get(temporal.time_of_day, [])),
            optimal_cooking_window=OPTIMAL_WINDOW.get(temporal.time_of_day, 45),
            prep_time_recommendations=[
                f"Aim for {min(temporal.minutes_until_next_meal // 2, 60)} minutes or less"
            ],
            energy_considerations=(
                ["Take your time", "Try something new"]
                if temporal.is_weekend
                else ["Keep it simple", "Prep ahead"]
            ),
        )

        methods = list(SEASONAL_METHODS[season])
        for method in WEATHER_METHODS.get(weather or "", []):
            if method not in methods:
                methods.append(method)
        cold = season == "winter" or (env.location.temperature is not None and env.location.temperature < 10)
        seasonal = SeasonalRecommendations(
            ingredient_suggestions=list(env.location.seasonal_produce),
            cooking_method_suggestions=methods,
            nutritional_focus=list(NUTRITIONAL_FOCUS[season]),
            comfort_factors=["warm meals", "comfort food"] if cold else ["fresh ingredients", "light preparation"],
        )

        social = self._social_recommendations(env.social)
        mood = self._mood_adaptations(env, analysis)
        return ContextualRecommendations(time=time, seasonal=seasonal, social=social, mood=mood)

    def _social_recommendations(self, social: SocialContext) -> SocialRecommendations:
        if "children" in social.guest_types or social.occasion == "party":
            complexity = "simpler"
        elif social.occasion in ("romantic", "special"):
            complexity = "more_complex"
        else:
            complexity = "same"

        presentation = {
            "romantic": ["Plate individually", "Add a simple garnish"],
            "special": ["Use your nicest serving dishes", "Garnish for color"],
            "party": ["Label dishes for guests with restrictions"],
        }.get(social.occasion, [])

        if social.occasion == "party":
            serving = ["Buffet or shareable bites"]
        elif social.occasion == "family" or social.companion_count >= 4:
            serving = ["Family-style platters"]
        elif social.companion_count == 2:
            serving = ["Plated for two"]
        else:
            serving = ["Single portion, leftovers for tomorrow"]

        return SocialRecommendations(
            portion_adjustment=float(social.companion_count),
            complexity_adjustment=complexity,
            presentation_suggestions=presentation,
            serving_style_suggestions=serving,
        )

    def _mood_adaptations(self, env: EnvironmentalContext, analysis: QueryAnalysis) -> MoodAdaptations:
        mood = analysis.mood
        if mood.energy == "low" or mood.urgency == "high" or env.kitchen.energy_level == "low":
            effort = "minimal"
        elif mood.energy == "high":
            effort = "high"
        else:
            effort = "moderate"

        comfort = []
        if mood.sentiment == "negative" or mood.energy == "low":
            comfort = ["Warm, familiar dishes", "One-pot meals with little cleanup"]

        motivation = []
        if mood.adventurous:
            motivation.append("Try a cuisine you have not cooked before")
        if mood.sentiment == "positive":
            motivation.append("A great time to try a new technique")

        simplicity = []
        if effort == "minimal":
            simplicity = ["Use pre-cut vegetables", "Pick recipes with under 8 ingredients"]

        return MoodAdaptations(
            effort_level=effort,
            comfort_factors=comfort,
            motivational_suggestions=motivation,
            simplicity_recommendations=simplicity,
        )

    # ------------------------------------------------------------------
    # Scoring multipliers
    # ------------------------------------------------------------------

    def contextual_scoring(
        self,
        env: EnvironmentalContext,
        analysis: QueryAnalysis,
        recipe: Recipe,
    ) -> ContextualScoring:
        """Per-axis multipliers for one recipe.

        Each multiplier is a small positive real around 1.0. Axes are averaged
        and then combined as a weighted sum, so one weak axis lowers the
        overall score without ever driving it to zero.
        """
        text = recipe.searchable_text
        time = self._time_multipliers(env, analysis, recipe)
        environment = self._environment_multipliers(env, recipe, text)
        social = self._social_multipliers(env.social, recipe, text)

        overall = (
            TIME_AXIS_WEIGHT * _mean([time.urgency, time.energy, time.appropriateness])
            + ENVIRONMENT_AXIS_WEIGHT * _mean([environment.seasonal, environment.weather, environment.equipment])
            + SOCIAL_AXIS_WEIGHT * _mean([social.complexity, social.portion, social.presentation])
        )
        return ContextualScoring(
            time_multipliers=time,
            environment_multipliers=environment,
            social_multipliers=social,
            overall_context_score=round(overall, 4),
        )

    def _time_multipliers(self, env: EnvironmentalContext, analysis: QueryAnalysis, recipe: Recipe) -> TimeMultipliers:
        urgency = 1.0
        if analysis.mood.urgency == "high":
            urgency = 1.2 if recipe.minutes <= 30 else 0.8

        energy = 1.0
        if env.kitchen.energy_level == "low":
            energy = {"easy": 1.1, "hard": 0.8}.get(recipe.difficulty, 1.0)
        elif env.kitchen.energy_level == "high" and recipe.difficulty == "hard":
            energy = 1.1

        appropriateness = 1.0
        if recipe.meal_types:
            suitable = MEAL_TYPES_BY_TIME.get(env.temporal.time_of_day, [])
            appropriateness = 1.15 if any(m in suitable for m in recipe.meal_types) else 0.9

        return TimeMultipliers(urgency=urgency, energy=energy, appropriateness=appropriateness)

    def _environment_multipliers(self, env: EnvironmentalContext, recipe: Recipe, text: str) -> EnvironmentMultipliers:
        produce = env.location.seasonal_produce
        seasonal = 1.15 if any(
            ingredient_matches(item, key) for key in recipe.ingredient_keys for item in produce
        ) else 1.0

        weather = 1.0
        condition = env.location.weather_condition
        if condition in ("cold", "rainy") and _mentions(text, WARMING_KEYWORDS):
            weather = 1.15
        elif condition in ("hot", "sunny"):
            if _mentions(text, REFRESHING_KEYWORDS):
                weather = 1.15
            elif _mentions(text, WARMING_KEYWORDS):
                weather = 0.9

        available = {normalize_name(item) for item in env.kitchen.available_equipment}
        needed = {normalize_name(item) for item in recipe.equipment}
        equipment = 1.0 if needed <= available else 0.85

        return EnvironmentMultipliers(seasonal=seasonal, weather=weather, equipment=equipment)

    def _social_multipliers(self, social: SocialContext, recipe: Recipe, text: str) -> SocialMultipliers:
        complexity = 1.0
        if "children" in social.guest_types or social.occasion == "party":
            complexity = {"easy": 1.1, "hard": 0.85}.get(recipe.difficulty, 1.0)
        elif social.occasion in ("romantic", "special") and recipe.difficulty != "easy":
            complexity = 1.1

        portion = 1.0 if recipe.servings >= social.companion_count else 0.9

        presentation = 1.0
        if social.occasion in ("romantic", "special") and _mentions(text, PRESENTATION_KEYWORDS):
            presentation = 1.1

        return SocialMultipliers(complexity=complexity, portion=portion, presentation=presentation)
