"""Unit tests for the Sous Chef agent pipeline and intent handlers."""

from datetime import timedelta

import pytest

from src.adapters.demo_data import demo_recipes
from src.adapters.memory import InMemoryInteractionStore, InMemoryPreferenceStore, InMemoryRecipeCatalog
from src.agents.sous_chef import CAPABILITIES, NO_RESULTS_MESSAGE, SousChefAgent, sous_chef_config
from src.models.models import Ingredient
from src.models.responses import (
    AgentConfig,
    CookingTipsData,
    DietaryGuidanceData,
    GeneralHelpData,
    IngredientData,
    MealPlanData,
    NutritionData,
    RecipeResultsData,
    ShoppingListData,
    SubstitutionData,
)


class CountingHistory:
    def __init__(self):
        self.calls = 0

    async def recent_interactions(self, user_id, limit):
        self.calls += 1
        return []


class BrokenSupplier:
    async def find_candidates(self, ingredients, filters):
        raise ConnectionError("recipe service down")


@pytest.fixture
def preference_store(clock):
    return InMemoryPreferenceStore(clock)


@pytest.fixture
def agent(clock, preference_store):
    return SousChefAgent(
        history=InMemoryInteractionStore(),
        supplier=InMemoryRecipeCatalog(demo_recipes()),
        preference_store=preference_store,
        clock=clock,
    )


@pytest.fixture
def pantry(make_context, now):
    return make_context(
        ingredients=[
            Ingredient(name="chicken", expiration_date=now + timedelta(days=1)),
            "rice",
            "garlic",
            "soy sauce",
            "bell pepper",
        ]
    )


class TestConfiguration:
    def test_default_config_supports_every_intent(self):
        agent_config = sous_chef_config()

        assert agent_config.id == "sous-chef"
        assert len(agent_config.supported_intents) == 10
        assert agent_config.max_processing_time_ms > 0

    def test_can_handle_uses_detected_intent(self, make_request, make_context):
        narrow = SousChefAgent(
            history=InMemoryInteractionStore(),
            agent_config=AgentConfig(
                id="planner", name="Planner", supported_intents=["meal-planning"], max_processing_time_ms=1000
            ),
        )

        assert narrow.can_handle(make_request("Plan my meals for this week")) is True
        assert narrow.can_handle(make_request("hello there")) is False


class TestRecipeResults:
    @pytest.mark.asyncio
    async def test_recommendation(self, agent, make_request, pantry):
        response = await agent.handle(make_request("What can I make with chicken and rice?", context=pantry))

        assert response.intent == "recipe-recommendation"
        assert isinstance(response.data, RecipeResultsData)
        assert response.data.total_candidates == 10
        assert len(response.data.candidates) == 10
        scores = [c.final_score for c in response.data.candidates]
        assert scores == sorted(scores, reverse=True)
        assert "chicken-stir-fry" in [c.recipe.id for c in response.data.candidates[:3]]
        assert response.message.startswith("I found 10 great recipes for you!")
        assert response.suggested_actions[0].action == "start_cooking"
        assert "evening cooking session" in response.data.insights
        assert response.priority == "medium"

    @pytest.mark.asyncio
    async def test_no_candidates(self, make_request, make_context, clock):
        agent = SousChefAgent(history=InMemoryInteractionStore(), clock=clock)

        response = await agent.handle(make_request("find a recipe for lasagna", context=make_context()))

        assert response.intent == "recipe-search"
        assert response.message == NO_RESULTS_MESSAGE
        assert response.confidence == "very-low"
        assert response.data.candidates == []

    @pytest.mark.asyncio
    async def test_snapshot_and_supplier_recipes_are_deduplicated(self, agent, make_request, pantry):
        context = pantry.model_copy(update={"available_recipes": [demo_recipes()[0]]})

        response = await agent.handle(make_request("suggest a recipe", context=context))

        assert response.data.total_candidates == 10

    @pytest.mark.asyncio
    async def test_supplier_failure_keeps_snapshot_recipes(self, make_request, make_context, make_recipe, clock):
        agent = SousChefAgent(history=InMemoryInteractionStore(), supplier=BrokenSupplier(), clock=clock)
        context = make_context(recipes=[make_recipe("house-special")])

        response = await agent.handle(make_request("suggest a recipe", context=context))

        assert response.metadata.error_code is None
        assert [c.recipe.id for c in response.data.candidates] == ["house-special"]

    @pytest.mark.asyncio
    async def test_explicit_intent_wins(self, agent, make_request, pantry):
        response = await agent.handle(make_request("chicken", context=pantry, intent="nutrition-info"))
        assert response.intent == "nutrition-info"


class TestPlanningHandlers:
    @pytest.mark.asyncio
    async def test_meal_planning(self, agent, make_request, pantry):
        response = await agent.handle(make_request("Plan my meals for this week", context=pantry))

        assert response.intent == "meal-planning"
        assert isinstance(response.data, MealPlanData)
        assert len(response.data.plan.meal_plan) == 7
        assert response.data.plan.meal_plan[0].meal_type == "dinner"
        assert response.message.startswith("I've created a personalized meal plan for you!")

    @pytest.mark.asyncio
    async def test_shopping_list(self, agent, make_request, pantry):
        response = await agent.handle(make_request("I need to buy groceries", context=pantry))

        assert response.intent == "shopping-list"
        assert isinstance(response.data, ShoppingListData)
        assert response.data.shopping.items
        assert response.message.startswith("Your shopping list has")
        # Nothing already in the kitchen is on the list
        assert "rice" not in [item.name for item in response.data.shopping.items]


class TestKitchenHandlers:
    @pytest.mark.asyncio
    async def test_expiring_ingredients_are_high_priority(self, agent, make_request, pantry):
        response = await agent.handle(make_request("What's expiring in my inventory?", context=pantry))

        assert response.intent == "ingredient-management"
        assert isinstance(response.data, IngredientData)
        assert response.priority == "high"
        assert response.message == (
            "You have 5 ingredients in your inventory. "
            "1 ingredients are expiring soon (chicken). I recommend using them first!"
        )
        assert [i.name for i in response.data.expiring] == ["chicken"]
        assert len(response.data.suggested_recipes) == 3

    @pytest.mark.asyncio
    async def test_fresh_inventory(self, agent, make_request, make_context):
        context = make_context(ingredients=["rice", "garlic"])

        response = await agent.handle(make_request("What's in my inventory?", context=context))

        assert response.priority == "low"
        assert response.data.expiring == []
        assert "Everything looks fresh!" in response.message

    @pytest.mark.asyncio
    async def test_nutrition_info(self, agent, make_request, pantry):
        response = await agent.handle(make_request("how many calories in this", context=pantry))

        assert isinstance(response.data, NutritionData)
        assert len(response.data.summaries) == 3
        assert response.data.average is not None
        assert response.message.startswith("Here's the nutrition breakdown for 3 recipes.")

    @pytest.mark.asyncio
    async def test_cooking_tips(self, agent, make_request, pantry):
        response = await agent.handle(make_request("roasting", context=pantry, intent="cooking-tips"))

        assert isinstance(response.data, CookingTipsData)
        assert len(response.data.tips) == 3
        assert response.message.startswith("Here are 3 tips matched to your intermediate skill level")

    @pytest.mark.asyncio
    async def test_substitution_help(self, agent, make_request, pantry):
        response = await agent.handle(make_request("Any substitute for butter?", context=pantry))

        assert response.intent == "substitution-help"
        assert isinstance(response.data, SubstitutionData)
        assert response.data.substitutions[0].original == "butter"
        assert response.priority == "high"
        assert response.message.startswith("I found substitutes for 1 ingredient. For butter, try olive oil")

    @pytest.mark.asyncio
    async def test_dietary_guidance(self, agent, make_request, pantry):
        response = await agent.handle(make_request("gluten-free vegan dinner ideas", context=pantry))

        assert response.intent == "dietary-guidance"
        assert isinstance(response.data, DietaryGuidanceData)
        assert response.data.restrictions == ["vegan", "gluten-free"]
        compliant = [c.recipe.id for c in response.data.compliant_recipes]
        assert "greek-salad" in compliant
        assert "chicken-stir-fry" not in compliant
        assert all(c.sub_scores.dietary_match == 100 for c in response.data.compliant_recipes)
        assert response.priority == "high"

    @pytest.mark.asyncio
    async def test_general_help(self, agent, make_request, pantry):
        response = await agent.handle(make_request("hello there", context=pantry))

        assert response.intent == "general-help"
        assert isinstance(response.data, GeneralHelpData)
        assert response.data.capabilities == CAPABILITIES


class TestPrivacy:
    @pytest.mark.asyncio
    async def test_personalization_opt_out_skips_history(self, make_request, pantry, clock):
        history = CountingHistory()
        preferences = InMemoryPreferenceStore(clock)
        await preferences.update("user-1", {"privacy": {"allow_personalization": False}})
        agent = SousChefAgent(history=history, preference_store=preferences, clock=clock)

        response = await agent.handle(make_request("suggest a recipe", context=pantry))

        assert response.metadata.error_code is None
        assert history.calls == 0

    @pytest.mark.asyncio
    async def test_default_preferences_allow_personalization(self, make_request, pantry, clock):
        history = CountingHistory()
        agent = SousChefAgent(history=history, preference_store=InMemoryPreferenceStore(clock), clock=clock)

        await agent.handle(make_request("suggest a recipe", context=pantry))

        assert history.calls == 1
