"""Sample kitchen snapshot and recipe catalog used by query.py and the integration tests."""

import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from src.models.models import AgentRequest, Ingredient, Recipe, RequestMetadata, UserContext
from src.utils.cache import utc_now

DEMO_USER_ID = "demo-user"


def demo_recipes() -> List[Recipe]:
    """A small catalog covering several cuisines, meal types and difficulties."""
    return [
        Recipe(
            id="chicken-stir-fry",
            title="Chicken Stir Fry",
            description="Quick weeknight stir fry with crisp vegetables",
            difficulty="easy",
            cuisine="chinese",
            meal_types=["lunch", "dinner"],
            prep_time=10,
            cook_time=10,
            servings=2,
            ingredients=["chicken", "bell pepper", "soy sauce", "garlic", "rice"],
            tags=["quick", "stir fry"],
            equipment=["stovetop"],
            nutrition={"calories": 520, "protein": 38, "carbs": 55, "fat": 14},
        ),
        Recipe(
            id="tomato-basil-pasta",
            title="Tomato Basil Pasta",
            description="Simple pasta with fresh tomatoes and basil",
            difficulty="easy",
            cuisine="italian",
            meal_types=["lunch", "dinner"],
            prep_time=5,
            cook_time=15,
            servings=2,
            ingredients=["pasta", "tomato", "basil", "garlic", "olive oil"],
            tags=["vegetarian", "quick"],
            dietary=["vegetarian"],
            equipment=["stovetop"],
            nutrition={"calories": 480, "protein": 14, "carbs": 78, "fat": 12},
        ),
        Recipe(
            id="veggie-omelette",
            title="Veggie Omelette",
            description="Fluffy eggs folded over spinach and cheese",
            difficulty="easy",
            cuisine="french",
            meal_types=["breakfast"],
            prep_time=5,
            cook_time=5,
            servings=1,
            ingredients=["eggs", "spinach", "cheese", "butter"],
            tags=["vegetarian", "breakfast"],
            dietary=["vegetarian", "gluten-free"],
            equipment=["stovetop"],
            nutrition={"calories": 350, "protein": 22, "carbs": 4, "fat": 27},
        ),
        Recipe(
            id="beef-chili",
            title="Beef Chili",
            description="Hearty slow-simmered chili with beans",
            difficulty="medium",
            cuisine="american",
            meal_types=["dinner"],
            prep_time=15,
            cook_time=60,
            servings=6,
            ingredients=["beef", "onion", "tomato", "beans", "chili powder"],
            tags=["comfort", "stew"],
            dietary=["gluten-free", "dairy-free"],
            equipment=["stovetop"],
            nutrition={"calories": 610, "protein": 42, "carbs": 40, "fat": 28},
        ),
        Recipe(
            id="salmon-teriyaki",
            title="Salmon Teriyaki",
            description="Glazed salmon with steamed rice",
            difficulty="medium",
            cuisine="japanese",
            meal_types=["dinner"],
            prep_time=10,
            cook_time=20,
            servings=2,
            ingredients=["salmon", "soy sauce", "honey", "ginger", "rice"],
            tags=["healthy"],
            dietary=["dairy-free"],
            equipment=["oven"],
            nutrition={"calories": 560, "protein": 36, "carbs": 58, "fat": 18},
        ),
        Recipe(
            id="greek-salad",
            title="Greek Salad",
            description="Fresh cold salad with feta and olives",
            difficulty="easy",
            cuisine="greek",
            meal_types=["lunch"],
            prep_time=10,
            cook_time=0,
            servings=2,
            ingredients=["tomato", "cucumber", "feta", "olives", "olive oil"],
            tags=["salad", "fresh", "vegetarian"],
            dietary=["vegetarian", "gluten-free"],
            nutrition={"calories": 290, "protein": 8, "carbs": 12, "fat": 24},
        ),
        Recipe(
            id="chicken-curry",
            title="Chicken Curry",
            description="Fragrant curry simmered in coconut milk",
            difficulty="medium",
            cuisine="indian",
            meal_types=["dinner"],
            prep_time=15,
            cook_time=35,
            servings=4,
            ingredients=["chicken", "onion", "garlic", "ginger", "coconut milk", "curry powder"],
            tags=["curry", "spicy", "comfort"],
            dietary=["gluten-free", "dairy-free"],
            equipment=["stovetop"],
            nutrition={"calories": 590, "protein": 35, "carbs": 20, "fat": 38},
        ),
        Recipe(
            id="black-bean-tacos",
            title="Black Bean Tacos",
            description="Crunchy tacos with spiced black beans and salsa",
            difficulty="easy",
            cuisine="mexican",
            meal_types=["lunch", "dinner"],
            prep_time=10,
            cook_time=10,
            servings=3,
            ingredients=["beans", "tortillas", "tomato", "onion", "lime"],
            tags=["vegan", "quick", "cheap"],
            dietary=["vegetarian", "vegan", "dairy-free"],
            equipment=["stovetop"],
            estimated_cost=6.5,
            nutrition={"calories": 430, "protein": 16, "carbs": 68, "fat": 10},
        ),
        Recipe(
            id="beef-wellington",
            title="Beef Wellington",
            description="Elegant beef tenderloin wrapped in puff pastry",
            difficulty="hard",
            cuisine="british",
            meal_types=["dinner"],
            prep_time=45,
            cook_time=45,
            servings=6,
            ingredients=["beef", "puff pastry", "mushrooms", "butter", "eggs"],
            tags=["elegant", "impressive"],
            equipment=["oven"],
            nutrition={"calories": 780, "protein": 45, "carbs": 35, "fat": 50},
        ),
        Recipe(
            id="banana-oatmeal",
            title="Banana Oatmeal",
            description="Warm oats topped with banana and honey",
            difficulty="easy",
            cuisine="american",
            meal_types=["breakfast"],
            prep_time=2,
            cook_time=8,
            servings=1,
            ingredients=["oats", "milk", "banana", "honey"],
            tags=["breakfast", "healthy"],
            dietary=["vegetarian"],
            equipment=["stovetop"],
            nutrition={"calories": 380, "protein": 12, "carbs": 66, "fat": 7},
        ),
    ]


def demo_ingredients(now: Optional[datetime] = None) -> List[Ingredient]:
    """Kitchen inventory; spinach and chicken expire within the next two days."""
    now = now or utc_now()
    return [
        Ingredient(name="chicken", quantity=2, unit="lb", category="meat", location="fridge",
                   expiration_date=now + timedelta(days=2)),
        Ingredient(name="rice", quantity=5, unit="cup", category="grain"),
        Ingredient(name="garlic", quantity=6, unit="clove", category="produce"),
        Ingredient(name="soy sauce", quantity=1, unit="bottle", category="condiment"),
        Ingredient(name="bell pepper", quantity=2, category="produce", location="fridge",
                   expiration_date=now + timedelta(days=6)),
        Ingredient(name="eggs", quantity=12, category="dairy", location="fridge",
                   expiration_date=now + timedelta(days=14)),
        Ingredient(name="spinach", quantity=1, unit="bag", category="produce", location="fridge",
                   expiration_date=now + timedelta(days=1)),
        Ingredient(name="tomato", quantity=4, category="produce"),
        Ingredient(name="pasta", quantity=1, unit="lb", category="grain"),
        Ingredient(name="olive oil", quantity=1, unit="bottle", category="condiment"),
        Ingredient(name="onion", quantity=3, category="produce"),
    ]


def demo_context(
    user_id: str = DEMO_USER_ID,
    time_of_day: str = "evening",
    now: Optional[datetime] = None,
    include_recipes: bool = False,
) -> UserContext:
    """Kitchen snapshot for the demo user.

    Recipes are normally supplied by the catalog; pass include_recipes=True to
    put them in the snapshot instead.
    """
    return UserContext(
        user_id=user_id,
        available_ingredients=demo_ingredients(now),
        available_recipes=demo_recipes() if include_recipes else [],
        current_shopping_list=["milk"],
        dietary_preferences={"preferred_cuisines": ["italian", "chinese"]},
        cooking_skill_level="intermediate",
        session_context={"time_of_day": time_of_day, "timezone": "UTC"},
    )


def demo_request(
    query: str,
    context: Optional[UserContext] = None,
    intent: Optional[str] = None,
    now: Optional[datetime] = None,
    session_id: str = "demo-session",
) -> AgentRequest:
    now = now or utc_now()
    return AgentRequest(
        id=f"req-{uuid.uuid4().hex[:12]}",
        query=query,
        intent=intent,
        context=context or demo_context(now=now),
        metadata=RequestMetadata(timestamp=now, source="api", session_id=session_id),
    )
