"""Unit tests for the query interpreter."""

import pytest

from src.engines.query_interpreter import QueryInterpreter, season_for
from src.models.models import Ingredient


@pytest.fixture
def interpreter():
    return QueryInterpreter()


@pytest.fixture
def context(make_context):
    return make_context(ingredients=[Ingredient(name="chicken"), Ingredient(name="rice")])


class TestIntentDetection:
    @pytest.mark.parametrize(
        "query,intent",
        [
            ("What can I make with chicken and rice?", "recipe-recommendation"),
            ("Plan my meals for this week", "meal-planning"),
            ("I need to buy groceries", "shopping-list"),
            ("Any substitute for butter?", "substitution-help"),
            ("gluten-free vegan dinner ideas", "dietary-guidance"),
            ("What's expiring in my inventory?", "ingredient-management"),
            ("how many calories in this", "nutrition-info"),
            ("find a recipe for lasagna", "recipe-search"),
        ],
    )
    def test_detects_intent(self, interpreter, context, now, query, intent):
        assert interpreter.analyze(query, context, now=now).intent == intent

    def test_unmatched_query_is_general_help(self, interpreter, context, now):
        analysis = interpreter.analyze("hello there", context, now=now)

        assert analysis.intent == "general-help"
        assert analysis.confidence == pytest.approx(0.1)

    def test_ties_go_to_the_earlier_intent(self, interpreter, make_context, now):
        # "how.*cook" is both a recipe-search and a cooking-tips pattern
        analysis = interpreter.analyze("how to cook", make_context(), now=now)
        assert analysis.intent == "recipe-search"

    def test_available_ingredients_boost_recommendation(self, interpreter, context, make_context):
        with_food = interpreter.intent_scores("what can i make", context)
        empty = interpreter.intent_scores("what can i make", make_context())

        assert with_food["recipe-recommendation"] == pytest.approx(1.3)
        assert empty["recipe-recommendation"] == pytest.approx(1.0)

    def test_context_does_not_create_intents_without_text_support(self, interpreter, context):
        scores = interpreter.intent_scores("hello there", context)
        assert all(score == 0 for score in scores.values())

    def test_explicit_intent_overrides_detection(self, interpreter, context, now):
        analysis = interpreter.analyze("hello", context, now=now, explicit_intent="cooking-tips")

        assert analysis.intent == "cooking-tips"
        assert analysis.confidence >= 0.8

    @pytest.mark.parametrize("query", ["", "!!!", "   ", "🙂🙂", "x" * 2000])
    def test_never_raises(self, interpreter, context, now, query):
        analysis = interpreter.analyze(query, context, now=now)
        assert 0.0 <= analysis.confidence <= 1.0

    def test_analysis_is_deterministic(self, interpreter, context, now):
        query = "quick vegetarian dinner for 2 people under $15"
        assert interpreter.analyze(query, context, now=now) == interpreter.analyze(query, context, now=now)


class TestEntityExtraction:
    def test_ingredients_from_keywords_and_phrases(self, interpreter, context, now):
        entities = interpreter.analyze("What can I make with chicken and rice?", context, now=now).entities
        assert entities.ingredients == ["chicken", "rice"]

    def test_plural_ingredients_match(self, interpreter, context, now):
        entities = interpreter.analyze("something with tomatoes", context, now=now).entities
        assert "tomato" in entities.ingredients

    def test_with_phrase_adds_unknown_ingredient(self, interpreter, context, now):
        entities = interpreter.analyze("pasta with zucchini", context, now=now).entities
        assert "zucchini" in entities.ingredients

    def test_quick_dinner_caps_total_time_at_15(self, interpreter, context, now):
        entities = interpreter.analyze("quick dinner", context, now=now).entities

        assert entities.time_constraints.max_total_time == 15
        assert entities.meal_types == ["dinner"]

    @pytest.mark.parametrize(
        "query,field,minutes",
        [
            ("ready in 30 minutes", "max_total_time", 30),
            ("prep in 10 minutes", "max_prep_time", 10),
            ("cook for 45 mins", "max_cook_time", 45),
            ("done within 1 hour", "max_total_time", 60),
        ],
    )
    def test_explicit_times(self, interpreter, context, now, query, field, minutes):
        constraints = interpreter.analyze(query, context, now=now).entities.time_constraints
        assert getattr(constraints, field) == minutes

    def test_keyword_and_number_take_the_smaller_total(self, interpreter, context, now):
        constraints = interpreter.analyze("quick meal in 30 minutes", context, now=now).entities.time_constraints
        assert constraints.max_total_time == 15

    def test_budget(self, interpreter, context, now):
        budget = interpreter.analyze("cheap dinner under $20", context, now=now).entities.budget_constraints

        assert budget.economical is True
        assert budget.max_cost == 20.0

    def test_budget_in_words(self, interpreter, context, now):
        budget = interpreter.analyze("dinner under 12 dollars", context, now=now).entities.budget_constraints
        assert budget.max_cost == 12.0

    def test_servings_difficulty_and_cuisine(self, interpreter, context, now):
        entities = interpreter.analyze("easy italian pasta for 4 people", context, now=now).entities

        assert entities.servings == 4
        assert entities.difficulty == "easy"
        assert "Italian" in entities.cuisines

    def test_dietary_restrictions_in_table_order(self, interpreter, context, now):
        entities = interpreter.analyze("gluten-free vegan ideas", context, now=now).entities
        assert entities.dietary_restrictions == ["vegan", "gluten-free"]

    def test_equipment_and_methods(self, interpreter, context, now):
        entities = interpreter.analyze("roast vegetables in the air fryer", context, now=now).entities

        assert "air fryer" in entities.equipment
        assert "roast" in entities.cooking_methods


class TestMoodAndContext:
    def test_later_mood_keyword_overrides_earlier(self, interpreter, context, now):
        tired_first = interpreter.analyze("tired but excited", context, now=now).mood
        excited_first = interpreter.analyze("excited but tired", context, now=now).mood

        assert tired_first.energy == "high"
        assert tired_first.sentiment == "positive"
        assert excited_first.energy == "low"

    def test_speed_words_raise_urgency(self, interpreter, context, now):
        assert interpreter.analyze("quick lunch", context, now=now).mood.urgency == "high"

    def test_time_of_day_shifts_neutral_energy(self, interpreter, make_context, now):
        morning = interpreter.analyze("breakfast", make_context(time_of_day="morning"), now=now).mood
        night = interpreter.analyze("snack", make_context(time_of_day="night"), now=now).mood

        assert morning.energy == "high"
        assert night.energy == "low"

    def test_social_setting_and_occasion(self, interpreter, context, now):
        situation = interpreter.analyze("birthday dinner for my family", context, now=now).context

        assert situation.social == "family"
        assert situation.occasion == "birthday"
        assert situation.season == "fall"
        assert situation.time_of_day == "evening"

    def test_breakdown(self, interpreter, context, now):
        breakdown = interpreter.analyze("how do i make a quick healthy meal", context, now=now).breakdown

        assert breakdown.action == "make"
        assert breakdown.subject == "meal"
        assert breakdown.modifiers == ["quick", "healthy"]
        assert breakdown.questions == ["how"]


@pytest.mark.parametrize("month,season", [(1, "winter"), (4, "spring"), (7, "summer"), (10, "fall"), (12, "winter")])
def test_season_for(now, month, season):
    assert season_for(now.replace(month=month)) == season
