"""Sous Chef agent: the orchestrator that composes every engine.

Pipeline for one request:

1. Interpret the query (intent, entities, mood, situation).
2. Build the personalization profile and analyze the environment together.
3. Personalize the analysis and derive soft filters.
4. Gather candidates from the snapshot and the candidate supplier.
5. Score and rank them.
6. Dispatch to the handler for the detected intent.

Profile, context and candidate supply degrade to defaults on failure, so only
a failure in interpretation or in the handler itself reaches the error path.
"""

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

from src.agents.base import (
    BaseAgent,
    PostHook,
    confidence_level,
    follow_up_suggestions,
    response_priority,
)
from src.engines.context_analyzer import ContextAnalyzer
from src.engines.personalization import PersonalizationEngine
from src.engines.planning import MealPlanner, summarize_nutrition
from src.engines.query_interpreter import QueryInterpreter
from src.engines.scorer import CandidateScorer, active_restrictions, expiring_ingredients
from src.models.analysis import (
    Candidate,
    CandidateFilters,
    CandidateSet,
    EnvironmentalContext,
    ExternalSignal,
    PersonalizationProfile,
    PersonalizedFilters,
    QueryAnalysis,
    ScoredCandidate,
)
from src.models.models import QUERY_INTENTS, AgentRequest, MealSlot, RecipeNutrition, normalize_text
from src.models.responses import (
    AgentConfig,
    AgentResponse,
    CookingTipsData,
    DietaryGuidanceData,
    GeneralHelpData,
    IngredientData,
    MealPlanData,
    NutritionData,
    RecipeResultsData,
    ShoppingListData,
    SubstitutionData,
    SuggestedAction,
)
from src.ports.ports import CandidateSupplier, HistoryReader, PreferenceStore
from src.utils.cache import Clock, utc_now
from src.utils.config import config
from src.utils.errors import safe_execute_async
from src.utils.logger import logger

SOUS_CHEF_ID = "sous-chef"

NO_RESULTS_MESSAGE = (
    "I couldn't find any recipes that match your current criteria. "
    "Try adjusting your requirements or adding more ingredients to your inventory."
)

CAPABILITIES = [
    "Recommend recipes based on what's in your kitchen",
    "Search recipes by ingredient, cuisine or time",
    "Plan meals for the week",
    "Track ingredients and flag what's expiring",
    "Build an optimized shopping list",
    "Summarize nutrition for recipes",
    "Share cooking tips matched to your skill level",
    "Suggest ingredient substitutions",
    "Find recipes that fit your dietary needs",
]


def sous_chef_config() -> AgentConfig:
    """Default configuration for the Sous Chef agent."""
    return AgentConfig(
        id=SOUS_CHEF_ID,
        name="Sous Chef Assistant",
        description="Recipe recommendations, meal planning and kitchen management",
        supported_intents=list(QUERY_INTENTS),
        priority=10,
        max_processing_time_ms=config.AGENT_MAX_PROCESSING_TIME_MS,
        settings={"max_recommendations": config.MAX_RECOMMENDATIONS},
    )


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


class SousChefAgent(BaseAgent):
    """Cooking assistant agent handling every query intent."""

    def __init__(
        self,
        history: HistoryReader,
        supplier: Optional[CandidateSupplier] = None,
        preference_store: Optional[PreferenceStore] = None,
        agent_config: Optional[AgentConfig] = None,
        post_hooks: Optional[List[PostHook]] = None,
        clock: Clock = utc_now,
        interpreter: Optional[QueryInterpreter] = None,
        personalization: Optional[PersonalizationEngine] = None,
        context_analyzer: Optional[ContextAnalyzer] = None,
        scorer: Optional[CandidateScorer] = None,
        planner: Optional[MealPlanner] = None,
        signal: Optional[ExternalSignal] = None,
    ):
        super().__init__(agent_config or sous_chef_config(), post_hooks=post_hooks, clock=clock)
        self.supplier = supplier
        self.preference_store = preference_store
        self.signal = signal
        self.interpreter = interpreter or QueryInterpreter()
        self.personalization = personalization or PersonalizationEngine(history, clock=clock)
        self.context_analyzer = context_analyzer or ContextAnalyzer()
        self.scorer = scorer or CandidateScorer(self.context_analyzer)
        self.planner = planner or MealPlanner()
        self.max_recommendations = int(self.config.settings.get("max_recommendations", config.MAX_RECOMMENDATIONS))

        self._handlers: Dict[str, Callable[["PipelineState"], Awaitable[AgentResponse]]] = {
            "recipe-search": self.handle_recipe_results,
            "recipe-recommendation": self.handle_recipe_results,
            "meal-planning": self.handle_meal_planning,
            "ingredient-management": self.handle_ingredient_management,
            "shopping-list": self.handle_shopping_list,
            "nutrition-info": self.handle_nutrition_info,
            "cooking-tips": self.handle_cooking_tips,
            "substitution-help": self.handle_substitution_help,
            "dietary-guidance": self.handle_dietary_guidance,
            "general-help": self.handle_general_help,
        }

    def can_handle(self, request: AgentRequest) -> bool:
        if request.intent is not None:
            return request.intent in self.config.supported_intents
        intent = self.interpreter.detect_intent(normalize_text(request.query), request.context)
        return intent in self.config.supported_intents

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def process_request(self, request: AgentRequest) -> AgentResponse:
        now = request.metadata.timestamp
        context = request.context

        analysis = self.interpreter.analyze(request.query, context, now=now, explicit_intent=request.intent)
        allow_personalization = await self._allow_personalization(request.user_id)

        profile, env = await asyncio.gather(
            self.personalization.build_profile(request.user_id, context, allow_personalization),
            self._analyze_environment(request, analysis),
        )

        analysis = self.personalization.personalize_query(analysis, profile, context)
        filters = self.personalization.personalized_filters(profile, context, now)
        candidates = await self._gather_candidates(request, analysis)
        scored = self.scorer.score_candidates(candidates, analysis, context, profile, env, filters)

        state = PipelineState(request, analysis, profile, env, filters, scored, now)
        logger.debug(f"Dispatching {analysis.intent} with {len(scored)} scored candidates")
        handler = self._handlers.get(analysis.intent, self.handle_general_help)
        return await handler(state)

    async def _allow_personalization(self, user_id: str) -> bool:
        if self.preference_store is None:
            return True
        preferences = await safe_execute_async(
            self.preference_store.get(user_id),
            f"Read preferences for user {user_id}",
        )
        return preferences is None or preferences.privacy.allow_personalization

    async def _analyze_environment(self, request: AgentRequest, analysis: QueryAnalysis) -> EnvironmentalContext:
        try:
            return self.context_analyzer.analyze(request.context, request.metadata.timestamp, self.signal, analysis)
        except Exception as e:
            logger.warning(f"Context analysis failed, using fallback context: {e}")
            return self.context_analyzer.fallback(request.context, request.metadata.timestamp)

    async def _gather_candidates(self, request: AgentRequest, analysis: QueryAnalysis) -> List[Candidate]:
        """Snapshot recipes first, then supplier results, de-duplicated by recipe id."""
        context = request.context
        candidates = [Candidate(recipe=recipe) for recipe in context.available_recipes]
        seen = {candidate.recipe.id for candidate in candidates}

        if self.supplier is not None:
            supplied = await safe_execute_async(
                self.supplier.find_candidates(
                    list(context.available_ingredients),
                    CandidateFilters(cuisines=list(analysis.entities.cuisines)),
                ),
                "Find candidate recipes",
                default_return=CandidateSet(),
            )
            for candidate in supplied.all_candidates():
                if candidate.recipe.id not in seen:
                    seen.add(candidate.recipe.id)
                    candidates.append(candidate)
        return candidates

    # ------------------------------------------------------------------
    # Intent handlers
    # ------------------------------------------------------------------

    async def handle_recipe_results(self, state: "PipelineState") -> AgentResponse:
        top = state.scored[: self.max_recommendations]
        return self.create_response(
            state.request,
            self.recommendation_message(top),
            state.intent,
            confidence=self.results_confidence(top),
            priority=response_priority(state.intent, state.request.context),
            data=RecipeResultsData(
                intent=state.intent,
                candidates=top,
                insights=self.insights(state),
                total_candidates=len(state.scored),
            ),
            actions=self.suggested_actions(top),
        )

    async def handle_meal_planning(self, state: "PipelineState") -> AgentResponse:
        plan = self.planner.generate_meal_plan(
            state.scored, state.analysis, state.request.context, state.env.temporal.reference_time.date()
        )
        message = (
            "I've created a personalized meal plan for you! This plan balances nutrition, "
            "uses your available ingredients efficiently, and fits your cooking schedule."
        )
        if plan.explanation:
            message = f"{message} {plan.explanation}"
        return self.create_response(
            state.request,
            message,
            "meal-planning",
            confidence=confidence_level(plan.plan_score) if plan.plan_score else "low",
            priority=response_priority("meal-planning", state.request.context),
            data=MealPlanData(plan=plan),
            follow_ups=[
                "Would you like me to create a shopping list for this meal plan?",
                "Should I suggest prep-ahead techniques?",
                "Would you like nutritional breakdown for each meal?",
            ],
        )

    async def handle_ingredient_management(self, state: "PipelineState") -> AgentResponse:
        context = state.request.context
        ingredients = list(context.available_ingredients)
        expiring = expiring_ingredients(ingredients, state.now, self.scorer.expiring_within_days)

        message = f"You have {len(ingredients)} ingredients in your inventory. "
        if expiring:
            names = ", ".join(ingredient.name for ingredient in expiring)
            message += f"{len(expiring)} ingredients are expiring soon ({names}). I recommend using them first!"
            follow_ups = [
                f"Would you like recipes that use {expiring[0].name}?",
                "Should I plan meals around your expiring ingredients?",
            ]
        else:
            message += "Everything looks fresh! Let me suggest some recipes that make great use of what you have."
            follow_ups = follow_up_suggestions("ingredient-management")

        suggested = sorted(
            state.scored[:10],
            key=lambda s: (-s.sub_scores.waste_reduction, -s.final_score, s.recipe.id),
        )[:3]
        return self.create_response(
            state.request,
            message,
            "ingredient-management",
            confidence="high",
            priority="high" if expiring else response_priority("ingredient-management", context),
            data=IngredientData(ingredients=ingredients, expiring=expiring, suggested_recipes=suggested),
            follow_ups=follow_ups,
        )

    async def handle_shopping_list(self, state: "PipelineState") -> AgentResponse:
        context = state.request.context
        slots: List[MealSlot] = []
        if context.current_meal_plan is not None:
            slots = [slot for slot in context.current_meal_plan.meals if slot.recipe is not None]
        if not slots:
            plan = self.planner.generate_meal_plan(
                state.scored, state.analysis, context, state.env.temporal.reference_time.date()
            )
            slots = plan.meal_plan

        shopping = self.planner.optimize_shopping_list(slots, context, state.analysis)
        if shopping.items:
            message = (
                f"Your shopping list has {_plural(len(shopping.items), 'item')}, "
                f"estimated at ${shopping.total_cost:.2f}."
            )
        else:
            message = "Your shopping list is empty. Everything your planned meals need is already in your kitchen."
        return self.create_response(
            state.request,
            message,
            "shopping-list",
            confidence="high" if shopping.items else "medium",
            priority=response_priority("shopping-list", context),
            data=ShoppingListData(shopping=shopping),
            follow_ups=["Should I sort the list by store section?", "Would you like cheaper alternatives?"],
        )

    async def handle_nutrition_info(self, state: "PipelineState") -> AgentResponse:
        top = state.scored[:3]
        summaries = [summarize_nutrition(candidate.recipe) for candidate in top]
        average: Optional[RecipeNutrition] = None
        guidance: List[str] = []

        if summaries:
            count = len(summaries)
            average = RecipeNutrition(
                calories=round(sum(s.calories for s in summaries) / count, 1),
                protein=round(sum(s.protein for s in summaries) / count, 1),
                carbs=round(sum(s.carbs for s in summaries) / count, 1),
                fat=round(sum(s.fat for s in summaries) / count, 1),
            )
            for summary in summaries:
                if summary.balanced:
                    guidance.append(f"{summary.title} has a well balanced mix of macronutrients")
                else:
                    guidance.append(f"{summary.title} could be balanced with a side of vegetables or whole grains")
            if any(summary.estimated for summary in summaries):
                guidance.append("Some values are estimates because the recipe has no nutrition facts")
            message = (
                f"Here's the nutrition breakdown for {_plural(count, 'recipe')}. "
                f"They average {average.calories:.0f} calories and {average.protein:.0f}g of protein per serving."
            )
        else:
            message = "I don't have any recipes to analyze yet. Add a few recipes and I'll break down their nutrition."

        return self.create_response(
            state.request,
            message,
            "nutrition-info",
            confidence="medium" if summaries else "low",
            priority=response_priority("nutrition-info", state.request.context),
            data=NutritionData(summaries=summaries, average=average, guidance=guidance),
        )

    async def handle_cooking_tips(self, state: "PipelineState") -> AgentResponse:
        tips = self.planner.cooking_tips(state.analysis, state.profile)
        level = state.profile.skill_assessment.overall_level
        if tips:
            message = (
                f"Here are {_plural(len(tips), 'tip')} matched to your {level} skill level: "
                + "; ".join(t.title for t in tips)
                + "."
            )
        else:
            message = "I don't have a tip for that yet. Try asking about a technique like searing or knife skills."
        return self.create_response(
            state.request,
            message,
            "cooking-tips",
            confidence="medium",
            priority=response_priority("cooking-tips", state.request.context),
            data=CookingTipsData(tips=tips),
        )

    async def handle_substitution_help(self, state: "PipelineState") -> AgentResponse:
        context = state.request.context
        missing = list(state.analysis.entities.ingredients)
        if not missing:
            for candidate in state.scored[:3]:
                for name in candidate.missing_ingredients:
                    if name not in missing:
                        missing.append(name)

        substitutions = self.planner.find_substitutions(missing, context.available_ingredients)
        if substitutions:
            first = substitutions[0]
            message = (
                f"I found substitutes for {_plural(len(substitutions), 'ingredient')}. "
                f"For {first.original}, try {first.substitutes[0].ingredient} ({first.substitutes[0].ratio})."
            )
        else:
            message = "I couldn't find a reliable substitute for that. Tell me which ingredient you're missing."
        return self.create_response(
            state.request,
            message,
            "substitution-help",
            confidence="high" if substitutions else "low",
            priority=response_priority("substitution-help", context),
            data=SubstitutionData(substitutions=substitutions),
        )

    async def handle_dietary_guidance(self, state: "PipelineState") -> AgentResponse:
        context = state.request.context
        restrictions = active_restrictions(state.analysis, context, state.env)
        compliant = [c for c in state.scored if c.sub_scores.dietary_match >= 100][:5]

        guidance: List[str] = []
        for allergen in context.dietary_preferences.allergens:
            guidance.append(f"Always double-check labels for {allergen}")
        if restrictions:
            guidance.append(f"Recipes are filtered for: {', '.join(restrictions)}")

        if restrictions and compliant:
            message = (
                f"I found {_plural(len(compliant), 'recipe')} that fit your {', '.join(restrictions)} needs: "
                + ", ".join(c.recipe.title for c in compliant[:3])
                + "."
            )
        elif restrictions:
            message = f"None of your current recipes fully fit your {', '.join(restrictions)} needs."
        else:
            message = "You haven't told me about any dietary restrictions. Let me know and I'll tailor every suggestion."
        return self.create_response(
            state.request,
            message,
            "dietary-guidance",
            confidence="high" if compliant else "medium",
            priority=response_priority("dietary-guidance", context),
            data=DietaryGuidanceData(restrictions=restrictions, compliant_recipes=compliant, guidance=guidance),
        )

    async def handle_general_help(self, state: "PipelineState") -> AgentResponse:
        message = "I'm your sous chef! I can help you find recipes, plan meals, manage ingredients and more."
        return self.create_response(
            state.request,
            message,
            "general-help",
            confidence="medium",
            priority=response_priority("general-help", state.request.context),
            data=GeneralHelpData(capabilities=list(CAPABILITIES)),
            follow_ups=["What can I make with what I have?", "Plan my meals for this week"],
        )

    # ------------------------------------------------------------------
    # Response helpers
    # ------------------------------------------------------------------

    def recommendation_message(self, top: List[ScoredCandidate]) -> str:
        if not top:
            return NO_RESULTS_MESSAGE
        count = min(len(top), 3)
        message = f"I found {len(top)} great recipe{'s' if len(top) != 1 else ''} for you! "
        message += f"Here are my top {count} recommendation{'s' if count != 1 else ''}: "
        message += ", ".join(candidate.recipe.title for candidate in top[:count]) + ". "
        return (message + top[0].explanation).strip()

    def results_confidence(self, top: List[ScoredCandidate]) -> str:
        """Mean of the top three final scores, bucketed."""
        if not top:
            return "very-low"
        best = top[:3]
        return confidence_level(sum(candidate.final_score for candidate in best) / len(best))

    def suggested_actions(self, top: List[ScoredCandidate]) -> List[SuggestedAction]:
        if not top:
            return []
        recipe = top[0].recipe
        actions = [
            SuggestedAction(label=f"Cook {recipe.title}", action="start_cooking", data={"recipe_id": recipe.id}),
            SuggestedAction(label="Add to meal plan", action="add_to_meal_plan", data={"recipe_id": recipe.id}),
        ]
        if top[0].missing_ingredients:
            actions.append(
                SuggestedAction(
                    label="Add missing ingredients to shopping list",
                    action="add_to_shopping_list",
                    data={"ingredients": list(top[0].missing_ingredients)},
                )
            )
        return actions

    def insights(self, state: "PipelineState") -> List[str]:
        """Environmental, timing and skill notes shown alongside ranked results."""
        env = state.env
        skill = state.profile.skill_assessment
        notes = [f"{env.temporal.time_of_day} cooking session"]
        if env.temporal.is_weekend:
            notes.append("Weekend cooking opportunity")
        if env.location.weather_condition:
            notes.append(f"{env.location.weather_condition} weather considerations")
        notes.append(f"{env.temporal.season} seasonal ingredients available")

        if skill.overall_level == "beginner":
            notes.append("Focus on simple techniques to build confidence")
        elif skill.overall_level == "advanced":
            notes.append("Try challenging techniques to expand your skills")
        top_cuisines = state.profile.flavor_profile.top_cuisines(1)
        if top_cuisines:
            notes.append(f"Your favorite {top_cuisines[0]} cuisine flavors featured")

        notes.append(
            f"Best cooking window: {env.kitchen.time_available} minutes available "
            f"for {env.temporal.time_of_day} cooking"
        )
        notes.append(f"Recipes matched to {skill.overall_level} skill level")
        if skill.learning_trajectory.suggested_next_skills:
            notes.append(f"Opportunity to practice: {skill.learning_trajectory.suggested_next_skills[0]}")
        return notes


class PipelineState:
    """Everything the intent handlers need for one request."""

    def __init__(
        self,
        request: AgentRequest,
        analysis: QueryAnalysis,
        profile: PersonalizationProfile,
        env: EnvironmentalContext,
        filters: PersonalizedFilters,
        scored: List[ScoredCandidate],
        now: datetime,
    ):
        self.request = request
        self.analysis = analysis
        self.profile = profile
        self.env = env
        self.filters = filters
        self.scored = scored
        self.now = now

    @property
    def intent(self) -> str:
        return self.analysis.intent
