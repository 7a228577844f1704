"""Planning helpers built on top of scored candidates.

Meal plans are filled greedily: each day x meal-type slot takes the best
scored candidate that suits the meal type and has not been used yet, and only
repeats a recipe once every suitable one has been used.
"""

from collections import OrderedDict
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from src.engines.personalization import DIFFICULTY_FOR_SKILL, SKILL_AREA_NAMES
from src.engines.scorer import estimate_cost, estimate_nutrition, ingredient_price, is_balanced
from src.models.analysis import (
    BudgetAnalysis,
    CookingTip,
    MealPlanRecommendation,
    NutrientBalance,
    NutritionalBalance,
    NutritionSummary,
    PersonalizationProfile,
    PlanShoppingSummary,
    QueryAnalysis,
    ScoredCandidate,
    ShoppingItem,
    ShoppingOptimization,
    SubstituteOption,
    Substitution,
)
from src.models.models import (
    DIFFICULTY_RANK,
    Ingredient,
    MealSlot,
    Recipe,
    UserContext,
    ingredient_covers,
    ingredient_matches,
    normalize_name,
)
from src.utils.config import config
from src.utils.logger import logger


PLANNABLE_MEAL_TYPES = ("breakfast", "lunch", "dinner", "snack")
DEFAULT_MEAL_TYPES = ["dinner"]

# Per-meal targets; a day of three meals lands near common daily guidance
MEAL_TARGETS = {"calories": 650.0, "protein": 25.0, "carbs": 80.0, "fat": 24.0}

REPEAT_PENALTY = 5.0

INGREDIENT_CATEGORIES: List[Tuple[str, List[str]]] = [
    ("meat & seafood", ["chicken", "beef", "pork", "lamb", "turkey", "bacon", "sausage", "salmon", "shrimp", "fish", "tuna"]),
    ("dairy & eggs", ["milk", "cheese", "butter", "cream", "yogurt", "egg", "parmesan", "mozzarella"]),
    ("produce", [
        "tomato", "onion", "garlic", "spinach", "pepper", "carrot", "potato", "lettuce", "lemon", "lime",
        "mushroom", "zucchini", "broccoli", "apple", "avocado", "cucumber", "basil", "cilantro", "ginger",
    ]),
    ("bakery", ["bread", "tortilla", "bun", "pita"]),
    ("pantry", ["rice", "pasta", "spaghetti", "flour", "sugar", "oil", "beans", "soy sauce", "noodle", "stock", "broth"]),
]

CATEGORY_SECTIONS = {
    "meat & seafood": "Butcher counter",
    "dairy & eggs": "Dairy aisle",
    "produce": "Produce section",
    "bakery": "Bakery",
    "pantry": "Dry goods aisle",
    "other": "Other aisles",
}

PRIORITY_RANK = {"high": 0, "medium": 1, "low": 2}
PERISHABLE_CATEGORIES = ("meat & seafood", "dairy & eggs", "produce")

# name -> [(substitute, ratio, impact, notes)]
SUBSTITUTES: Dict[str, List[Tuple[str, str, str, str]]] = {
    "butter": [
        ("olive oil", "3/4 cup per 1 cup", "minimal", "Best for sauteing; not for recipes that cream butter"),
        ("coconut oil", "1:1", "minimal", "Slight coconut flavor"),
        ("applesauce", "1/2 cup per 1 cup", "moderate", "Baking only; lowers fat"),
    ],
    "egg": [
        ("flax egg", "1 tbsp ground flax + 3 tbsp water per egg", "moderate", "Works for binding in baking"),
        ("applesauce", "1/4 cup per egg", "moderate", "Adds moisture and sweetness"),
        ("banana", "1/2 mashed banana per egg", "significant", "Adds banana flavor"),
    ],
    "milk": [
        ("oat milk", "1:1", "minimal", ""),
        ("soy milk", "1:1", "minimal", ""),
        ("water and butter", "1 cup water + 1 tbsp butter", "moderate", "Less rich"),
    ],
    "buttermilk": [("milk and lemon juice", "1 cup milk + 1 tbsp lemon juice", "minimal", "Let stand 5 minutes")],
    "sour cream": [("greek yogurt", "1:1", "minimal", "Tangier and lighter")],
    "heavy cream": [("milk and butter", "3/4 cup milk + 1/4 cup melted butter", "moderate", "Will not whip")],
    "flour": [
        ("whole wheat flour", "1:1", "moderate", "Denser result"),
        ("almond flour", "1:1", "significant", "Gluten-free; needs extra binding"),
    ],
    "sugar": [
        ("honey", "3/4 cup per 1 cup", "moderate", "Reduce other liquids by 1/4 cup"),
        ("maple syrup", "3/4 cup per 1 cup", "moderate", "Reduce other liquids slightly"),
    ],
    "lemon juice": [
        ("lime juice", "1:1", "minimal", ""),
        ("white vinegar", "1/2 the amount", "moderate", "Sharper; no citrus aroma"),
    ],
    "chicken": [
        ("turkey", "1:1", "minimal", ""),
        ("tofu", "1:1 by weight", "significant", "Press well before cooking; vegetarian"),
    ],
    "beef": [
        ("turkey", "1:1", "moderate", "Leaner; add a little oil"),
        ("mushrooms", "1:1 by volume", "significant", "Vegetarian; adds umami"),
    ],
    "rice": [
        ("quinoa", "1:1", "moderate", "More protein"),
        ("couscous", "1:1", "moderate", "Cooks in 5 minutes"),
    ],
    "pasta": [("zucchini noodles", "1:1 by volume", "significant", "Low-carb; cook briefly")],
    "soy sauce": [
        ("tamari", "1:1", "minimal", "Gluten-free"),
        ("coconut aminos", "1:1", "minimal", "Lower sodium, slightly sweet"),
    ],
    "garlic": [("garlic powder", "1/8 tsp per clove", "minimal", "")],
    "onion": [
        ("shallot", "1:1", "minimal", "Milder"),
        ("onion powder", "1 tbsp per medium onion", "moderate", "No texture"),
    ],
}

COOKING_TIPS: List[CookingTip] = [
    CookingTip(title="Read the recipe first", description="Read the whole recipe before you start and lay out every ingredient (mise en place).", difficulty="easy", tags=["basic_techniques", "timing"]),
    CookingTip(title="Season as you go", description="Taste and season in small amounts at each stage instead of all at the end.", difficulty="easy", tags=["seasoning"]),
    CookingTip(title="Keep your knife sharp", description="A sharp knife is safer and faster; curl your fingertips on the guiding hand.", difficulty="easy", tags=["knifework", "chop", "dice"]),
    CookingTip(title="Preheat the pan", description="Let the pan heat before adding oil so food sears instead of sticking.", difficulty="easy", tags=["heat_control", "fry", "saute"]),
    CookingTip(title="Don't crowd the pan", description="Cook in batches so food browns rather than steams.", difficulty="easy", tags=["heat_control", "saute", "fry", "roast"]),
    CookingTip(title="Salt pasta water generously", description="Pasta water should taste like mild seawater; it is the only chance to season the pasta itself.", difficulty="easy", tags=["boil", "pasta", "seasoning"]),
    CookingTip(title="Rest meat after cooking", description="Rest steaks and roasts 5 to 10 minutes so juices redistribute.", difficulty="medium", tags=["roast", "grill", "timing", "beef", "chicken"]),
    CookingTip(title="Roast at high heat", description="Roast vegetables at 220C / 425F in a single layer for caramelized edges.", difficulty="easy", tags=["roast", "bake"]),
    CookingTip(title="Weigh baking ingredients", description="Measure flour and sugar by weight for consistent baking results.", difficulty="medium", tags=["baking", "bake"]),
    CookingTip(title="Build a pan sauce", description="Deglaze the fond with wine or stock, reduce, then finish with cold butter.", difficulty="medium", tags=["heat_control", "seasoning", "saute"]),
    CookingTip(title="Use a thermometer", description="Cook chicken to 74C / 165F; an instant-read thermometer removes the guesswork.", difficulty="easy", tags=["chicken", "timing", "roast", "grill"]),
    CookingTip(title="Braise low and slow", description="Keep a braise at a bare simmer; a hard boil toughens meat.", difficulty="medium", tags=["braise", "stew", "simmer", "heat_control"]),
    CookingTip(title="Temper emulsions", description="Add fat slowly while whisking so sauces like hollandaise do not break.", difficulty="hard", tags=["heat_control", "plating"]),
    CookingTip(title="Plate with intention", description="Use odd numbers, height and a contrasting garnish for restaurant-style plates.", difficulty="hard", tags=["plating"]),
    CookingTip(title="Improvise with a formula", description="Learn base ratios (3:1 vinaigrette, 1:2 rice to water) so you can cook without a recipe.", difficulty="medium", tags=["improvisation"]),
]


def ingredient_category(name: str) -> str:
    for category, keywords in INGREDIENT_CATEGORIES:
        if any(ingredient_matches(keyword, name) for keyword in keywords):
            return category
    return "other"


def summarize_nutrition(recipe: Recipe) -> NutritionSummary:
    facts = estimate_nutrition(recipe)
    return NutritionSummary(
        recipe_id=recipe.id,
        title=recipe.title,
        calories=facts.calories,
        protein=facts.protein,
        carbs=facts.carbs,
        fat=facts.fat,
        balanced=is_balanced(facts),
        estimated=recipe.nutrition is None,
    )


def _nutrient_score(target: float, actual: float) -> float:
    if target <= 0:
        return 100.0
    return round(max(0.0, 100.0 - abs(actual - target) / target * 100.0), 1)


def _in_kitchen(name: str, available: Sequence[Ingredient]) -> bool:
    return any(ingredient_covers(ingredient.key, name) for ingredient in available)


class MealPlanner:
    """Meal plans, shopping lists, substitutions and cooking tips."""

    def __init__(self, default_days: Optional[int] = None):
        self.default_days = default_days if default_days is not None else config.MEAL_PLAN_DAYS

    # ------------------------------------------------------------------
    # Meal plans
    # ------------------------------------------------------------------

    def meal_types_for(self, analysis: QueryAnalysis) -> List[str]:
        requested = [m for m in analysis.entities.meal_types if m in PLANNABLE_MEAL_TYPES]
        return requested or list(DEFAULT_MEAL_TYPES)

    def generate_meal_plan(
        self,
        scored: Sequence[ScoredCandidate],
        analysis: QueryAnalysis,
        context: UserContext,
        start: date,
        days: Optional[int] = None,
    ) -> MealPlanRecommendation:
        """Fill days x meal types with the best-ranked suitable candidates.

        `scored` must already be ranked best first.
        """
        days = days or self.default_days
        meal_types = self.meal_types_for(analysis)
        uses: Dict[str, int] = {}
        scores: List[float] = []
        slots: List[MealSlot] = []

        for offset in range(days):
            day = start + timedelta(days=offset)
            for meal_type in meal_types:
                choice = self._pick(scored, meal_type, uses)
                slot = MealSlot(id=f"{day.isoformat()}-{meal_type}", date=day, meal_type=meal_type)
                if choice is not None:
                    repeats = uses.get(choice.recipe.id, 0)
                    uses[choice.recipe.id] = repeats + 1
                    scores.append(max(0.0, choice.final_score - REPEAT_PENALTY * repeats))
                    slot = slot.model_copy(update={
                        "recipe_id": choice.recipe.id,
                        "recipe": choice.recipe,
                        "servings": analysis.entities.servings or choice.recipe.servings,
                    })
                slots.append(slot)

        filled = [slot for slot in slots if slot.recipe is not None]
        plan_score = round(sum(scores) / len(scores), 1) if scores else 0.0
        budget = self._budget_analysis(filled, analysis)
        shopping = self._shopping_summary(filled, context)

        plan = MealPlanRecommendation(
            start_date=start,
            days=days,
            meal_plan=slots,
            plan_score=plan_score,
            nutritional_balance=self._nutritional_balance(filled),
            budget_analysis=budget,
            shopping=shopping,
            explanation=self._plan_explanation(days, filled, shopping, budget),
            alternatives=[
                f"Swap in {candidate.recipe.title}"
                for candidate in scored
                if candidate.recipe.id not in uses
            ][:3],
        )
        logger.debug(f"Meal plan: {len(filled)}/{len(slots)} slots filled, score {plan_score}")
        return plan

    def _pick(
        self,
        scored: Sequence[ScoredCandidate],
        meal_type: str,
        uses: Dict[str, int],
    ) -> Optional[ScoredCandidate]:
        suitable = [c for c in scored if not c.recipe.meal_types or meal_type in c.recipe.meal_types]
        if not suitable:
            return None
        # Fewest uses first; rank order breaks ties
        return min(enumerate(suitable), key=lambda item: (uses.get(item[1].recipe.id, 0), item[0]))[1]

    def _nutritional_balance(self, filled: Sequence[MealSlot]) -> NutritionalBalance:
        totals = {name: 0.0 for name in MEAL_TARGETS}
        for slot in filled:
            facts = estimate_nutrition(slot.recipe)
            totals["calories"] += facts.calories
            totals["protein"] += facts.protein
            totals["carbs"] += facts.carbs
            totals["fat"] += facts.fat

        balance = {}
        for name, per_meal in MEAL_TARGETS.items():
            target = per_meal * len(filled)
            balance[name] = NutrientBalance(
                target=target,
                actual=round(totals[name], 1),
                score=_nutrient_score(target, totals[name]),
            )
        return NutritionalBalance(**balance)

    def _budget_analysis(self, filled: Sequence[MealSlot], analysis: QueryAnalysis) -> BudgetAnalysis:
        if not filled:
            return BudgetAnalysis()
        cost = round(sum(estimate_cost(slot.recipe) for slot in filled), 2)
        per_meal = round(cost / len(filled), 2)
        cap = analysis.entities.budget_constraints.max_cost
        if cap:
            efficiency = 100.0 if per_meal <= cap else max(0.0, 100.0 - (per_meal - cap) / cap * 100.0)
        else:
            efficiency = 100.0 if per_meal <= 10 else max(0.0, 100.0 - (per_meal - 10) * 5)
        return BudgetAnalysis(estimated_cost=cost, budget_efficiency=round(efficiency, 1), cost_per_meal=per_meal)

    def _shopping_summary(self, filled: Sequence[MealSlot], context: UserContext) -> PlanShoppingSummary:
        new_ingredients: List[str] = []
        existing: List[str] = []
        for slot in filled:
            for item in slot.recipe.ingredients:
                if item.optional:
                    continue
                if _in_kitchen(item.key, context.available_ingredients):
                    if item.key not in existing:
                        existing.append(item.key)
                elif item.key not in new_ingredients:
                    new_ingredients.append(item.key)

        kitchen = context.available_ingredients
        used = [i for i in kitchen if any(ingredient_covers(i.key, name) for name in existing)]
        waste = round(100.0 * len(used) / len(kitchen), 1) if kitchen else 0.0
        return PlanShoppingSummary(new_ingredients=new_ingredients, can_use_existing=existing, waste_minimization=waste)

    def _plan_explanation(
        self,
        days: int,
        filled: Sequence[MealSlot],
        shopping: PlanShoppingSummary,
        budget: BudgetAnalysis,
    ) -> str:
        if not filled:
            return "I couldn't find suitable recipes to build a plan yet. Add a few recipes or ingredients and try again."
        distinct = len({slot.recipe_id for slot in filled})
        return (
            f"This {days}-day plan covers {len(filled)} meals with {distinct} different recipes, "
            f"uses {len(shopping.can_use_existing)} ingredients you already have, "
            f"and costs about ${budget.cost_per_meal:.2f} per meal."
        )

    # ------------------------------------------------------------------
    # Shopping list
    # ------------------------------------------------------------------

    def optimize_shopping_list(
        self,
        slots: Sequence[MealSlot],
        context: UserContext,
        analysis: QueryAnalysis,
    ) -> ShoppingOptimization:
        """Aggregate what the planned meals need, minus what is already in the kitchen."""
        needed: "OrderedDict[str, dict]" = OrderedDict()
        for slot in slots:
            if slot.recipe is None:
                continue
            for item in slot.recipe.ingredients:
                if item.optional or _in_kitchen(item.key, context.available_ingredients):
                    continue
                entry = needed.setdefault(item.key, {"amount": 0.0, "unit": "", "recipes": []})
                entry["amount"] += item.amount or 1.0
                entry["unit"] = entry["unit"] or (item.unit or "")
                if slot.recipe.title not in entry["recipes"]:
                    entry["recipes"].append(slot.recipe.title)

        for name in context.current_shopping_list:
            key = normalize_name(name)
            if key and key not in needed:
                needed[key] = {"amount": 1.0, "unit": "", "recipes": []}

        items = []
        for name, entry in needed.items():
            category = ingredient_category(name)
            if len(entry["recipes"]) >= 2:
                priority = "high"
            elif entry["recipes"] and category in PERISHABLE_CATEGORIES:
                priority = "medium"
            else:
                priority = "low"
            items.append(ShoppingItem(
                name=name,
                category=category,
                amount=round(entry["amount"], 2),
                unit=entry["unit"],
                estimated_cost=ingredient_price(name),
                priority=priority,
                recipes=entry["recipes"],
            ))
        items.sort(key=lambda item: (PRIORITY_RANK[item.priority], item.category, item.name))

        total = round(sum(item.estimated_cost for item in items), 2)
        cap = analysis.entities.budget_constraints.max_cost
        optimization = 100.0 if not cap or total <= cap else round(100.0 * cap / total, 1)

        return ShoppingOptimization(
            items=items,
            total_cost=total,
            optimization=optimization,
            budget_tips=self._budget_tips(items, total, analysis),
            store_suggestions=self._store_suggestions(items),
        )

    def _budget_tips(self, items: Sequence[ShoppingItem], total: float, analysis: QueryAnalysis) -> List[str]:
        budget = analysis.entities.budget_constraints
        tips = []
        shared = [item.name for item in items if len(item.recipes) >= 2]
        if shared:
            tips.append(f"Buy {', '.join(shared[:3])} in larger packs; several meals use them")
        if budget.economical or budget.max_cost is not None:
            tips.append("Choose store brands for pantry staples")
            if any(item.category == "meat & seafood" for item in items):
                tips.append("Swap one meat dish for beans or eggs to cut costs")
        if budget.max_cost is not None and total > budget.max_cost and items:
            priciest = max(items, key=lambda item: item.estimated_cost)
            tips.append(
                f"This list is about ${total - budget.max_cost:.2f} over budget; "
                f"consider replacing {priciest.name}"
            )
        return tips

    def _store_suggestions(self, items: Sequence[ShoppingItem]) -> List[str]:
        by_category: "OrderedDict[str, List[str]]" = OrderedDict()
        for item in sorted(items, key=lambda i: i.category):
            by_category.setdefault(item.category, []).append(item.name)
        return [
            f"{CATEGORY_SECTIONS.get(category, 'Other aisles')}: {', '.join(names)}"
            for category, names in by_category.items()
        ]

    # ------------------------------------------------------------------
    # Substitutions and tips
    # ------------------------------------------------------------------

    def find_substitutions(self, missing: Sequence[str], available: Sequence[Ingredient]) -> List[Substitution]:
        """Substitutes for each missing ingredient, ones already in the kitchen first."""
        results = []
        for name in missing:
            key = normalize_name(name)
            options = SUBSTITUTES.get(key)
            if options is None:
                options = next(
                    (subs for known, subs in SUBSTITUTES.items() if ingredient_matches(known, key)),
                    [],
                )
            substitutes = [
                SubstituteOption(
                    ingredient=ingredient,
                    ratio=ratio,
                    impact=impact,
                    notes=notes,
                    available=_in_kitchen(ingredient, available),
                )
                for ingredient, ratio, impact, notes in options
            ]
            if substitutes:
                substitutes.sort(key=lambda option: not option.available)
                results.append(Substitution(original=name, substitutes=substitutes))
        return results

    def cooking_tips(
        self,
        analysis: QueryAnalysis,
        profile: PersonalizationProfile,
        limit: int = 3,
    ) -> List[CookingTip]:
        """Tips at or below the user's level, ranked by overlap with the query and challenge areas."""
        ceiling = DIFFICULTY_RANK[DIFFICULTY_FOR_SKILL[profile.skill_assessment.overall_level]]
        interests = set(analysis.entities.cooking_methods) | set(analysis.entities.ingredients)
        area_keys = {label: key for key, label in SKILL_AREA_NAMES.items()}
        for label in profile.skill_assessment.learning_trajectory.challenge_areas:
            interests.add(area_keys.get(label, label))
        interests |= set(analysis.tokens)

        eligible = [tip for tip in COOKING_TIPS if DIFFICULTY_RANK[tip.difficulty] <= ceiling]
        ranked = sorted(
            enumerate(eligible),
            key=lambda item: (-len(interests & set(item[1].tags)), item[0]),
        )
        return [tip for _, tip in ranked[:limit]]
