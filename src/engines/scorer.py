"""Multi-factor candidate scoring.

Every candidate gets twelve sub-scores in [0, 100], each computed
independently with additive bonuses and penalties. The final score is a
weighted sum over a weight table that always sums to 1.0.

Weight re-normalization: request flags pin individual weights to a minimum
value, applied in this order (a later pin on the same weight keeps the
larger value):

    1. economical budget flag        -> budget          0.15
    2. explicit maximum cost         -> budget          0.12
    3. any dietary restriction       -> dietary_match   0.20
    4. high urgency or a time cap    -> time_alignment  0.18
    5. inventory expiring soon       -> waste_reduction 0.12

A raised budget weight comes out of nutrition and waste reduction first, in
proportion to their base values. The unpinned weights are then rescaled
proportionally so that the table sums to 1.0 again.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from src.engines.context_analyzer import ContextAnalyzer
from src.engines.personalization import FLAVOR_KEYWORDS, METHOD_KEYWORDS
from src.models.analysis import (
    Candidate,
    ContextualScoring,
    EnvironmentalContext,
    PersonalizationProfile,
    PersonalizedFilters,
    QueryAnalysis,
    ScoredCandidate,
    SubScores,
)
from src.models.models import (
    DIFFICULTY_RANK,
    SKILL_RANK,
    Ingredient,
    Recipe,
    RecipeNutrition,
    UserContext,
    ensure_aware,
    ingredient_covers,
    ingredient_matches,
    normalize_name,
    same_ingredient,
)
from src.utils.config import config
from src.utils.errors import safe_execute_sync
from src.utils.logger import logger


BASE_WEIGHTS: Dict[str, float] = {
    "ingredient_match": 0.18,
    "skill_alignment": 0.08,
    "time_alignment": 0.10,
    "dietary_match": 0.12,
    "cuisine_preference": 0.06,
    "seasonality": 0.04,
    "popularity": 0.04,
    "personalization": 0.12,
    "context": 0.08,
    "budget": 0.06,
    "nutrition": 0.06,
    "waste_reduction": 0.06,
}

QUERY_ONLY_CREDIT = 0.8

# A raised budget weight is taken from these first
BUDGET_DONORS = ("nutrition", "waste_reduction")

MEAT_AND_FISH = [
    "chicken", "beef", "pork", "lamb", "bacon", "ham", "turkey", "sausage",
    "fish", "salmon", "tuna", "shrimp", "anchovy", "gelatin", "prosciutto",
    "chicken breast", "chicken thigh", "ground beef", "ground pork", "ground turkey",
    "chicken broth", "beef broth", "fish sauce",
]

FORBIDDEN_INGREDIENTS: Dict[str, List[str]] = {
    "vegetarian": MEAT_AND_FISH,
    "vegan": MEAT_AND_FISH + [
        "egg", "milk", "cheese", "butter", "cream", "yogurt", "honey", "parmesan",
    ],
    "gluten-free": ["flour", "wheat", "bread", "pasta", "spaghetti", "noodle", "barley", "rye", "couscous", "tortilla"],
    "dairy-free": ["milk", "cheese", "butter", "cream", "yogurt", "parmesan", "mozzarella"],
    "keto": ["sugar", "rice", "pasta", "spaghetti", "bread", "potato", "flour", "tortilla", "noodle"],
    "paleo": ["rice", "pasta", "bread", "flour", "beans", "cheese", "milk", "sugar", "tofu", "peanut"],
    "nut-free": ["peanut", "almond", "walnut", "cashew", "pecan", "pistachio", "hazelnut"],
}

# Rough per-recipe prices in dollars, used when a recipe carries no estimate
INGREDIENT_PRICES: Dict[str, float] = {
    "chicken": 5.0, "beef": 7.0, "pork": 5.0, "lamb": 9.0, "salmon": 9.0, "fish": 8.0,
    "shrimp": 9.0, "tofu": 3.0, "egg": 3.0, "rice": 1.0, "pasta": 1.5, "beans": 1.5,
    "cheese": 4.0, "milk": 2.0, "butter": 3.0, "potato": 1.0, "tomato": 2.0,
    "onion": 1.0, "garlic": 0.5, "spinach": 2.5, "bread": 2.5, "mushroom": 3.0,
}
DEFAULT_INGREDIENT_PRICE = 2.0

DEFAULT_NUTRITION = RecipeNutrition(calories=500, protein=20, carbs=50, fat=20)

SKILL_SUCCESS_ADJUSTMENT = {
    ("beginner", "easy"): 0.2,
    ("advanced", "hard"): 0.1,
    ("intermediate", "hard"): -0.1,
    ("beginner", "hard"): -0.3,
}

SPICE_RANK = {"mild": 0, "medium": 1, "hot": 2, "extra-hot": 3}


# ---------------------------------------------------------------------------
# Shared estimators
# ---------------------------------------------------------------------------

def estimate_cost(recipe: Recipe) -> float:
    """The recipe's stated cost, or the sum of rough ingredient prices."""
    if recipe.estimated_cost is not None:
        return recipe.estimated_cost
    return round(sum(ingredient_price(key) for key in recipe.ingredient_keys), 2)


def ingredient_price(name: str) -> float:
    for known, price in INGREDIENT_PRICES.items():
        if ingredient_matches(known, name):
            return price
    return DEFAULT_INGREDIENT_PRICE


def estimate_nutrition(recipe: Recipe) -> RecipeNutrition:
    return recipe.nutrition or DEFAULT_NUTRITION


def is_balanced(nutrition: RecipeNutrition) -> bool:
    """Macronutrient energy shares within broad dietary ranges."""
    energy = nutrition.protein * 4 + nutrition.carbs * 4 + nutrition.fat * 9
    if energy <= 0:
        return False
    protein = nutrition.protein * 4 / energy
    carbs = nutrition.carbs * 4 / energy
    fat = nutrition.fat * 9 / energy
    return 0.10 <= protein <= 0.35 and 0.30 <= carbs <= 0.65 and 0.15 <= fat <= 0.40


def expiring_ingredients(
    ingredients: Iterable[Ingredient],
    now: datetime,
    within_days: Optional[int] = None,
) -> List[Ingredient]:
    """Ingredients whose expiration falls before now + within_days (already expired included)."""
    days = within_days if within_days is not None else config.EXPIRING_WITHIN_DAYS
    cutoff = ensure_aware(now) + timedelta(days=days)
    return [
        ingredient
        for ingredient in ingredients
        if ingredient.expiration_date is not None and ingredient.expiration_date <= cutoff
    ]


def active_restrictions(analysis: QueryAnalysis, context: UserContext, env: EnvironmentalContext) -> List[str]:
    """Union of query, snapshot and social dietary restrictions, first-seen order."""
    restrictions: List[str] = []
    sources = [
        analysis.entities.dietary_restrictions,
        context.dietary_preferences.restrictions,
        env.social.dietary_restrictions,
    ]
    for source in sources:
        for restriction in source:
            name = normalize_name(restriction)
            if name not in restrictions:
                restrictions.append(name)
    return restrictions


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _has_any(keys: Sequence[str], names: Iterable[str]) -> bool:
    return any(ingredient_matches(name, key) for key in keys for name in names)


def _mentions(text: str, keywords: Iterable[str]) -> bool:
    padded = f" {text} "
    return any(f" {keyword} " in padded for keyword in keywords)


class CandidateScorer:
    """Ranks candidate recipes for one request."""

    def __init__(
        self,
        context_analyzer: Optional[ContextAnalyzer] = None,
        explanation_threshold: Optional[float] = None,
        expiring_within_days: Optional[int] = None,
    ):
        self.context_analyzer = context_analyzer or ContextAnalyzer()
        self.explanation_threshold = (
            explanation_threshold if explanation_threshold is not None else config.EXPLANATION_THRESHOLD
        )
        self.expiring_within_days = (
            expiring_within_days if expiring_within_days is not None else config.EXPIRING_WITHIN_DAYS
        )

    # ------------------------------------------------------------------
    # Weights
    # ------------------------------------------------------------------

    def weights(
        self,
        analysis: QueryAnalysis,
        context: UserContext,
        env: EnvironmentalContext,
    ) -> Dict[str, float]:
        """Weight table for this request. Always sums to 1.0."""
        budget = analysis.entities.budget_constraints
        pins: Dict[str, float] = {}

        def pin(name: str, target: float) -> None:
            pins[name] = max(pins.get(name, 0.0), target)

        if budget.economical:
            pin("budget", 0.15)
        if budget.max_cost is not None:
            pin("budget", 0.12)
        if active_restrictions(analysis, context, env) or context.dietary_preferences.allergens:
            pin("dietary_match", 0.20)
        if analysis.mood.urgency == "high" or analysis.entities.time_constraints.max_total_time is not None:
            pin("time_alignment", 0.18)
        if expiring_ingredients(context.available_ingredients, env.temporal.reference_time, self.expiring_within_days):
            pin("waste_reduction", 0.12)

        weights = dict(BASE_WEIGHTS)
        if not pins:
            return weights

        if "budget" in pins:
            shift = pins["budget"] - weights["budget"]
            pool = sum(weights[name] for name in BUDGET_DONORS)
            taken = min(max(shift, 0.0), pool)
            for name in BUDGET_DONORS:
                weights[name] -= taken * BASE_WEIGHTS[name] / pool
            weights["budget"] = pins["budget"]

        remaining = 1.0 - sum(pins.values())
        unpinned = sum(weight for name, weight in weights.items() if name not in pins)
        for name in weights:
            weights[name] = pins[name] if name in pins else weights[name] * remaining / unpinned
        return weights

    # ------------------------------------------------------------------
    # Sub-scores
    # ------------------------------------------------------------------

    def ingredient_match(self, recipe: Recipe, context: UserContext, query_ingredients: Sequence[str] = ()) -> float:
        """Share of recipe ingredients on hand; ones only named in the query count 0.8."""
        if not recipe.ingredients:
            return 100.0
        available = context.ingredient_keys
        credit = 0.0
        for key in recipe.ingredient_keys:
            if any(ingredient_covers(name, key) for name in available):
                credit += 1.0
            elif any(ingredient_covers(name, key) for name in query_ingredients):
                credit += QUERY_ONLY_CREDIT
        return _clamp(100.0 * credit / len(recipe.ingredients))

    def availability_ratio(self, recipe: Recipe, context: UserContext) -> float:
        return self.ingredient_match(recipe, context) / 100.0

    def skill_alignment(self, recipe: Recipe, skill_level: str) -> float:
        levels_above = DIFFICULTY_RANK[recipe.difficulty] - SKILL_RANK[skill_level]
        if levels_above == 0:
            return 100.0
        if levels_above == 1:
            return 80.0
        if levels_above == -1:
            return 90.0
        if levels_above > 1:
            return _clamp(40.0 - 20.0 * levels_above)
        return 70.0

    def time_alignment(self, recipe: Recipe, available_minutes: int) -> float:
        overage = recipe.minutes - available_minutes
        if overage <= 0:
            return 100.0
        if overage <= 15:
            return 80.0
        if overage <= 30:
            return 60.0
        return _clamp(40.0 - overage)

    def dietary_match(self, recipe: Recipe, restrictions: Sequence[str], allergens: Sequence[str] = ()) -> float:
        """100 minus 50 per violated restriction or allergen present."""
        return _clamp(100.0 - 50.0 * len(self.dietary_conflicts(recipe, restrictions, allergens)))

    def dietary_conflicts(
        self, recipe: Recipe, restrictions: Sequence[str], allergens: Sequence[str] = ()
    ) -> List[str]:
        """Restrictions the recipe violates and allergens it contains.

        Forbidden ingredients must match exactly, so "peanut butter" is not
        butter. Allergens match any ingredient that contains them.
        """
        declared = {normalize_name(item) for item in recipe.dietary}
        keys = recipe.ingredient_keys
        conflicts = []
        for restriction in restrictions:
            name = normalize_name(restriction)
            if name in declared:
                continue
            forbidden = FORBIDDEN_INGREDIENTS.get(name, [])
            if any(same_ingredient(key, item) for key in keys for item in forbidden):
                conflicts.append(name)
        for allergen in allergens:
            if any(ingredient_covers(key, allergen) for key in keys):
                conflicts.append(f"{normalize_name(allergen)} allergy")
        return conflicts

    def cuisine_preference(self, recipe: Recipe, preferred: Sequence[str]) -> float:
        if not preferred:
            return 100.0
        wanted = {normalize_name(cuisine) for cuisine in preferred}
        return 100.0 if normalize_name(recipe.cuisine or "") in wanted else 70.0

    def seasonality(self, recipe: Recipe, env: EnvironmentalContext) -> float:
        return 100.0 if _has_any(recipe.ingredient_keys, env.location.seasonal_produce) else 80.0

    def popularity(self, recipe: Recipe) -> float:
        score = 70.0
        if "popular" in {normalize_name(tag) for tag in recipe.tags}:
            score += 20
        if recipe.difficulty == "easy":
            score += 10
        if recipe.prep_time <= 30:
            score += 10
        return _clamp(score)

    def personalization(
        self,
        recipe: Recipe,
        context: UserContext,
        profile: PersonalizationProfile,
        filters: PersonalizedFilters,
    ) -> float:
        score = 50.0
        preferred = {normalize_name(cuisine) for cuisine in filters.preferred_cuisines}
        if recipe.cuisine and normalize_name(recipe.cuisine) in preferred:
            score += 20

        flavor = profile.flavor_profile
        affinity = 0.0
        for name, value in flavor.ingredient_affinities.items():
            if any(ingredient_matches(name, key) for key in recipe.ingredient_keys):
                affinity = max(affinity, value)
        score += min(15.0, affinity * 1.5)

        text = recipe.searchable_text
        method = 0.0
        for name, keywords in METHOD_KEYWORDS.items():
            if name in flavor.cooking_method_preferences and _mentions(text, keywords):
                method = max(method, flavor.cooking_method_preferences[name])
        score += min(10.0, method)

        if DIFFICULTY_RANK[recipe.difficulty] > DIFFICULTY_RANK[filters.max_difficulty]:
            score -= 15
        if SPICE_RANK[filters.max_spice_level] == 0 and _mentions(text, FLAVOR_KEYWORDS["spicy"]):
            score -= 10
        if recipe.is_favorite:
            score += 10
        if recipe.id in context.recent_activity.last_viewed_recipes:
            score += 5
        return _clamp(score)

    def context_score(self, scoring: ContextualScoring) -> float:
        score = 50.0
        time = scoring.time_multipliers
        environment = scoring.environment_multipliers
        social = scoring.social_multipliers
        if time.appropriateness >= 1.0:
            score += 20
        if environment.seasonal > 1.0:
            score += 15
        if social.complexity >= 1.0 and social.portion >= 1.0:
            score += 15
        score += (scoring.overall_context_score - 1.0) * 30
        return _clamp(score)

    def budget(self, recipe: Recipe, analysis: QueryAnalysis, env: EnvironmentalContext) -> float:
        score = 50.0
        cost = estimate_cost(recipe)
        budget = analysis.entities.budget_constraints
        if budget.economical:
            if cost < 10:
                score += 30
            elif cost < 20:
                score += 15
            else:
                score -= 10
        elif env.social.budget_band == "tight" and cost < 10:
            score += 15
        if budget.max_cost is not None:
            score += 20 if cost <= budget.max_cost else -30
        return _clamp(score)

    def nutrition(self, recipe: Recipe, analysis: QueryAnalysis) -> float:
        score = 50.0
        declared = {normalize_name(item) for item in recipe.dietary}
        for restriction in analysis.entities.dietary_restrictions:
            if normalize_name(restriction) in declared:
                score += 20
        facts = estimate_nutrition(recipe)
        if is_balanced(facts):
            score += 15
        if facts.calories < 600 and analysis.mood.energy == "low":
            score += 10
        return _clamp(score)

    def waste_reduction(self, recipe: Recipe, context: UserContext, env: EnvironmentalContext) -> float:
        score = 50.0 + self.availability_ratio(recipe, context) * 40
        expiring = expiring_ingredients(
            context.available_ingredients, env.temporal.reference_time, self.expiring_within_days
        )
        if _has_any(recipe.ingredient_keys, [ingredient.key for ingredient in expiring]):
            score += 20
        return _clamp(score)

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def sub_scores(
        self,
        recipe: Recipe,
        analysis: QueryAnalysis,
        context: UserContext,
        profile: PersonalizationProfile,
        env: EnvironmentalContext,
        filters: PersonalizedFilters,
    ) -> SubScores:
        entities = analysis.entities
        available_minutes = entities.time_constraints.max_total_time or env.kitchen.time_available
        stated_cuisines = list(context.dietary_preferences.preferred_cuisines) + list(entities.cuisines)
        scoring = self.context_analyzer.contextual_scoring(env, analysis, recipe)

        return SubScores(
            ingredient_match=self.ingredient_match(recipe, context, entities.ingredients),
            skill_alignment=self.skill_alignment(recipe, profile.skill_assessment.overall_level),
            time_alignment=self.time_alignment(recipe, available_minutes),
            dietary_match=self.dietary_match(
                recipe, active_restrictions(analysis, context, env), context.dietary_preferences.allergens
            ),
            cuisine_preference=self.cuisine_preference(recipe, stated_cuisines),
            seasonality=self.seasonality(recipe, env),
            popularity=self.popularity(recipe),
            personalization=self.personalization(recipe, context, profile, filters),
            context=self.context_score(scoring),
            budget=self.budget(recipe, analysis, env),
            nutrition=self.nutrition(recipe, analysis),
            waste_reduction=self.waste_reduction(recipe, context, env),
        )

    def score_candidate(
        self,
        candidate: Candidate,
        analysis: QueryAnalysis,
        context: UserContext,
        profile: PersonalizationProfile,
        env: EnvironmentalContext,
        filters: Optional[PersonalizedFilters] = None,
        weights: Optional[Dict[str, float]] = None,
    ) -> ScoredCandidate:
        recipe = candidate.recipe
        filters = filters or PersonalizedFilters()
        weights = weights or self.weights(analysis, context, env)

        sub_scores = self.sub_scores(recipe, analysis, context, profile, env, filters)
        values = sub_scores.model_dump()
        final_score = round(_clamp(sum(values[name] * weight for name, weight in weights.items())), 2)

        conflicts = self.dietary_conflicts(
            recipe, active_restrictions(analysis, context, env), context.dietary_preferences.allergens
        )
        missing = candidate.missing_ingredients or [
            item.name
            for item in recipe.ingredients
            if not item.optional and not any(ingredient_covers(name, item.key) for name in context.ingredient_keys)
        ]

        return ScoredCandidate(
            recipe=recipe,
            meal_slot=candidate.meal_slot,
            sub_scores=sub_scores,
            final_score=final_score,
            explanation=self.explain(sub_scores, final_score, env, conflicts),
            suggestions=self.suggestions(recipe, analysis, missing),
            success_probability=self.success_probability(recipe, context, profile),
            missing_ingredients=missing,
            match_percentage=round(self.availability_ratio(recipe, context) * 100, 1),
        )

    def score_candidates(
        self,
        candidates: Sequence[Candidate],
        analysis: QueryAnalysis,
        context: UserContext,
        profile: PersonalizationProfile,
        env: EnvironmentalContext,
        filters: Optional[PersonalizedFilters] = None,
        limit: Optional[int] = None,
    ) -> List[ScoredCandidate]:
        """Score and rank candidates.

        Sorted by final score (desc), then ingredient match (desc), then total
        time (asc). A candidate whose scoring fails is logged and left out.
        """
        weights = self.weights(analysis, context, env)
        scored: List[ScoredCandidate] = []
        for candidate in candidates:
            result = safe_execute_sync(
                lambda: self.score_candidate(candidate, analysis, context, profile, env, filters, weights),
                f"Score recipe {candidate.recipe.id}",
            )
            if result is not None:
                scored.append(result)

        scored.sort(key=lambda s: (-s.final_score, -s.sub_scores.ingredient_match, s.recipe.minutes, s.recipe.id))
        if limit is not None:
            scored = scored[:limit]
        logger.debug(f"Scored {len(scored)} of {len(candidates)} candidates")
        return scored

    # ------------------------------------------------------------------
    # Explanation, suggestions, success probability
    # ------------------------------------------------------------------

    def explain(
        self,
        sub_scores: SubScores,
        final_score: float,
        env: EnvironmentalContext,
        conflicts: Sequence[str] = (),
    ) -> str:
        """Template explanation; clause order is fixed. Dietary conflicts are always listed last."""
        clauses = [
            ("ingredient_match", "You already have most of the ingredients"),
            ("dietary_match", "It fits your dietary needs"),
            ("time_alignment", "It fits the time you have"),
            ("personalization", "Based on your preferences, you'll likely enjoy this"),
            ("context", f"Perfect for {env.temporal.time_of_day}"),
            ("skill_alignment", "It suits your cooking skills"),
            ("cuisine_preference", "It matches the cuisines you like"),
            ("budget", "Budget-friendly option"),
            ("nutrition", "Nutritionally balanced choice"),
            ("waste_reduction", "Great way to use your existing ingredients"),
            ("seasonality", "It uses seasonal produce"),
            ("popularity", "A popular, approachable recipe"),
        ]
        values = sub_scores.model_dump()
        parts = [text for name, text in clauses if values[name] > self.explanation_threshold]
        if parts:
            explanation = ". ".join(parts) + "."
        else:
            explanation = f"This recipe has an {round(final_score)}% match for your request."
        if conflicts:
            explanation += f" Heads up: it conflicts with your dietary needs ({', '.join(conflicts)})."
        return explanation

    def suggestions(self, recipe: Recipe, analysis: QueryAnalysis, missing: Sequence[str]) -> List[str]:
        entities = analysis.entities
        suggestions = []
        max_total = entities.time_constraints.max_total_time
        if max_total is not None and recipe.minutes > max_total:
            suggestions.append("Try prep-ahead techniques to save time")
        if 0 < len(missing) <= 2:
            suggestions.append(f"Consider substituting {missing[0]} with similar ingredients")
        if entities.servings and entities.servings != recipe.servings:
            suggestions.append(f"Scale recipe to serve {entities.servings} people")
        declared = {normalize_name(item) for item in recipe.dietary}
        unmet = [r for r in entities.dietary_restrictions if normalize_name(r) not in declared]
        if unmet:
            suggestions.append(f"Modify to be {unmet[0]}")
        return suggestions

    def success_probability(
        self,
        recipe: Recipe,
        context: UserContext,
        profile: PersonalizationProfile,
    ) -> float:
        """Base 0.7 adjusted for skill and availability, then blended with cuisine history."""
        skill = profile.skill_assessment.overall_level
        probability = 0.7 + SKILL_SUCCESS_ADJUSTMENT.get((skill, recipe.difficulty), 0.0)
        probability += (self.availability_ratio(recipe, context) - 0.5) * 0.4

        history = profile.flavor_profile.cuisine_preferences.get(recipe.cuisine or "")
        if history is not None and history.attempts >= 1:
            probability = (probability + history.successes / history.attempts) / 2

        return round(_clamp(probability, 0.0, 1.0), 3)
