"""Query interpreter: intent classification and constraint extraction.

Deterministic pattern matching over normalized query text. The same query,
snapshot and reference time always produce the same QueryAnalysis, and no
input makes analysis raise: anything that does not match leaves the
corresponding field at its default.
"""

import re
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from src.models.analysis import (
    BudgetConstraints,
    QueryAnalysis,
    QueryBreakdown,
    QueryEntities,
    QueryMood,
    SituationalContext,
    TimeConstraints,
)
from src.models.models import QUERY_INTENTS, QueryIntent, UserContext, normalize_text
from src.utils.cache import utc_now
from src.utils.logger import logger


INTENT_PATTERNS: Dict[str, List[str]] = {
    "recipe-search": [r"find.*recipe", r"search.*recipe", r"recipe.*for", r"how.*make", r"how.*cook"],
    "recipe-recommendation": [
        r"suggest.*recipe",
        r"recommend.*recipe",
        r"what.*cook",
        r"what.*make",
        r"ideas.*for",
        r"recipe.*recommendation",
    ],
    "meal-planning": [r"meal.*plan", r"plan.*meal", r"this.*week", r"next.*week", r"weekly.*plan", r"menu.*planning"],
    "ingredient-management": [r"ingredient", r"what.*have", r"inventory", r"expire", r"expiring", r"use.*up"],
    "shopping-list": [r"shopping.*list", r"grocery.*list", r"need.*buy", r"what.*buy", r"add.*list"],
    "nutrition-info": [r"nutrition", r"calories", r"healthy", r"diet", r"protein", r"vitamins"],
    "cooking-tips": [r"tip", r"how.*cook", r"technique", r"method", r"advice"],
    "substitution-help": [r"substitute", r"replace", r"instead.*of", r"alternative", r"dont.*have"],
    "dietary-guidance": [r"vegetarian", r"vegan", r"gluten.*free", r"keto", r"paleo", r"allerg"],
}

INGREDIENT_KEYWORDS = [
    "chicken", "beef", "pork", "fish", "salmon", "tuna", "shrimp",
    "eggs", "milk", "cheese", "butter", "yogurt",
    "tomato", "onion", "garlic", "carrot", "potato", "bell pepper", "mushroom",
    "lettuce", "spinach", "broccoli", "cucumber", "avocado",
    "apple", "banana", "orange", "lemon", "lime", "strawberry",
    "rice", "pasta", "bread", "flour", "sugar", "salt", "pepper",
    "olive oil", "vegetable oil", "vinegar", "soy sauce", "tofu", "beans",
]

CUISINE_KEYWORDS: Dict[str, List[str]] = {
    "Italian": ["italian", "pasta", "pizza", "mediterranean"],
    "Mexican": ["mexican", "tacos", "burrito", "salsa", "latino"],
    "Asian": ["asian", "chinese", "japanese", "thai", "korean", "vietnamese"],
    "Indian": ["indian", "curry", "spicy", "tandoori"],
    "American": ["american", "bbq", "burger", "southern"],
    "French": ["french", "classic", "elegant"],
    "Greek": ["greek", "mediterranean", "feta"],
    "Middle Eastern": ["middle eastern", "mediterranean", "hummus"],
}

MEAL_TYPE_KEYWORDS: Dict[str, List[str]] = {
    "breakfast": ["breakfast", "morning", "brunch"],
    "lunch": ["lunch", "midday", "afternoon"],
    "dinner": ["dinner", "evening", "supper", "tonight"],
    "snack": ["snack", "appetizer", "bite"],
    "dessert": ["dessert", "sweet", "cake", "cookie"],
}

DIETARY_KEYWORDS: Dict[str, List[str]] = {
    "vegetarian": ["vegetarian", "veggie"],
    "vegan": ["vegan", "plant-based"],
    "gluten-free": ["gluten-free", "celiac"],
    "keto": ["keto", "ketogenic", "low-carb"],
    "paleo": ["paleo", "paleolithic"],
    "dairy-free": ["dairy-free", "lactose-free", "no dairy"],
    "nut-free": ["nut-free", "no nuts", "peanut-free"],
}

# Named speed buckets, in minutes
TIME_KEYWORDS: Dict[str, int] = {"quick": 15, "fast": 20, "instant": 5, "slow": 120, "overnight": 480}

# Applied in order of appearance; later keywords overwrite earlier ones per axis
MOOD_KEYWORDS: Dict[str, Dict[str, object]] = {
    "excited": {"sentiment": "positive", "energy": "high"},
    "tired": {"sentiment": "neutral", "energy": "low"},
    "hungry": {"urgency": "high"},
    "adventurous": {"adventurous": True},
    "comfort": {"sentiment": "neutral", "energy": "low"},
    "celebration": {"sentiment": "positive", "energy": "high"},
    "stressed": {"sentiment": "negative", "urgency": "high"},
    "relaxed": {"sentiment": "positive", "energy": "low"},
}

SPEED_KEYWORDS = ["quick", "fast", "urgent", "asap", "hurry"]
ECONOMY_KEYWORDS = ["cheap", "budget", "affordable", "inexpensive"]

EQUIPMENT_KEYWORDS = [
    "oven", "stovetop", "microwave", "grill", "slow cooker", "instant pot",
    "air fryer", "blender", "food processor", "mixer", "skillet", "pan",
]
COOKING_METHOD_KEYWORDS = [
    "bake", "fry", "grill", "roast", "steam", "boil", "saute",
    "braise", "stew", "poach", "broil", "simmer",
]

DIFFICULTY_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("easy", ["easy", "simple", "basic", "beginner"]),
    ("hard", ["hard", "difficult", "complex", "advanced", "challenging"]),
    ("medium", ["medium", "intermediate", "moderate"]),
]

SOCIAL_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("family", ["family", "kids", "children"]),
    ("couple", ["date", "romantic", "couple"]),
    ("party", ["party", "guests", "friends"]),
]
OCCASION_KEYWORDS = ["birthday", "anniversary", "holiday", "celebration", "dinner party"]

ACTION_WORDS = ["make", "cook", "prepare", "find", "suggest", "recommend", "plan", "create"]
SUBJECT_WORDS = ["recipe", "meal", "dish", "food", "dinner", "lunch", "breakfast"]
MODIFIER_WORDS = ["quick", "easy", "healthy", "delicious", "simple", "vegetarian", "spicy"]
QUESTION_WORDS = ["what", "how", "when", "where", "why", "which"]

# Words that follow "with"/"using" without naming an ingredient
PHRASE_STOPWORDS = {"a", "an", "the", "my", "some", "any", "what", "me", "it", "this", "that", "only"}

TIME_PATTERN = re.compile(r"(\d+)\s*(minutes?|mins?|hours?|hrs?)\b")
SERVINGS_PATTERN = re.compile(r"(\d+)\s*(servings?|persons?|people)\b")
DOLLAR_PATTERN = re.compile(r"\$\s*(\d+(?:\.\d+)?)")
PHRASE_PATTERN = re.compile(r"\b(?:with|using)\s+([a-z]+)")


def season_for(moment: datetime) -> str:
    month = moment.month
    if 3 <= month <= 5:
        return "spring"
    if 6 <= month <= 8:
        return "summer"
    if 9 <= month <= 11:
        return "fall"
    return "winter"


class QueryInterpreter:
    """Turns a raw query plus the kitchen snapshot into a QueryAnalysis."""

    def __init__(self):
        self.intent_patterns = {
            intent: [re.compile(pattern) for pattern in patterns]
            for intent, patterns in INTENT_PATTERNS.items()
        }
        # Keyword tables are normalized the same way as queries so that
        # "gluten-free" matches "gluten free" and "Gluten-Free"
        self.ingredient_keywords = [normalize_text(k) for k in INGREDIENT_KEYWORDS]
        self.cuisine_keywords = {c: [normalize_text(k) for k in kws] for c, kws in CUISINE_KEYWORDS.items()}
        self.meal_type_keywords = {m: [normalize_text(k) for k in kws] for m, kws in MEAL_TYPE_KEYWORDS.items()}
        self.dietary_keywords = {d: [normalize_text(k) for k in kws] for d, kws in DIETARY_KEYWORDS.items()}
        self.equipment_keywords = [normalize_text(k) for k in EQUIPMENT_KEYWORDS]
        self.cooking_method_keywords = [normalize_text(k) for k in COOKING_METHOD_KEYWORDS]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def analyze(
        self,
        query: str,
        context: UserContext,
        now: Optional[datetime] = None,
        explicit_intent: Optional[QueryIntent] = None,
    ) -> QueryAnalysis:
        """Analyze a query against a snapshot.

        Args:
            query: Raw user text.
            context: Kitchen snapshot (read only).
            now: Reference time used for the season; defaults to the current time.
            explicit_intent: Caller-supplied intent that replaces the detected one.

        Returns:
            QueryAnalysis with an intent always assigned.
        """
        now = now or utc_now()
        normalized = normalize_text(query)
        tokens = [token for token in normalized.split(" ") if len(token) > 1]

        intent = self.detect_intent(normalized, context)
        confidence = self.intent_confidence(intent, normalized, context)
        if explicit_intent is not None:
            intent = explicit_intent
            confidence = max(confidence, 0.8)

        analysis = QueryAnalysis(
            intent=intent,
            confidence=confidence,
            entities=self.extract_entities(normalized, query),
            mood=self.analyze_mood(normalized, context),
            context=self.analyze_context(normalized, context, now),
            breakdown=self.breakdown(normalized),
            normalized_query=normalized,
            tokens=tokens,
        )
        logger.debug(f"Interpreted query as {analysis.intent} (confidence={analysis.confidence:.2f})")
        return analysis

    def intent_scores(self, normalized: str, context: UserContext) -> Dict[str, float]:
        """Adjusted pattern score for every intent that has patterns."""
        scores = {}
        for intent, patterns in self.intent_patterns.items():
            score = float(sum(1 for pattern in patterns if pattern.search(normalized)))
            scores[intent] = self._adjust_intent_score(score, intent, normalized, context)
        return scores

    def detect_intent(self, normalized: str, context: UserContext) -> QueryIntent:
        """Highest adjusted score wins; earlier intents win ties; all zero means general-help."""
        scores = self.intent_scores(normalized, context)
        best: QueryIntent = "general-help"
        highest = 0.0
        for intent in QUERY_INTENTS:
            score = scores.get(intent, 0.0)
            if score > highest:
                highest = score
                best = intent  # type: ignore[assignment]
        return best

    def intent_confidence(self, intent: str, normalized: str, context: UserContext) -> float:
        patterns = self.intent_patterns.get(intent, [])
        matched = sum(1 for pattern in patterns if pattern.search(normalized))
        confidence = min(matched / len(patterns), 1.0) if patterns else 0.0

        if intent == "ingredient-management" and len(context.available_ingredients) > 5:
            confidence += 0.1
        if intent == "meal-planning" and context.current_meal_plan is not None:
            confidence += 0.1

        return max(min(confidence, 1.0), 0.1)

    # ------------------------------------------------------------------
    # Entities
    # ------------------------------------------------------------------

    def extract_entities(self, normalized: str, raw_query: str = "") -> QueryEntities:
        return QueryEntities(
            ingredients=self.extract_ingredients(normalized),
            cuisines=self._categories(normalized, self.cuisine_keywords),
            meal_types=self._categories(normalized, self.meal_type_keywords),
            dietary_restrictions=self._categories(normalized, self.dietary_keywords),
            time_constraints=self.extract_time_constraints(normalized),
            budget_constraints=self.extract_budget(normalized, raw_query),
            servings=self.extract_servings(normalized),
            difficulty=self.extract_difficulty(normalized),
            equipment=[k for k in self.equipment_keywords if _contains(normalized, k)],
            cooking_methods=[k for k in self.cooking_method_keywords if _contains(normalized, k)],
        )

    def extract_ingredients(self, normalized: str) -> List[str]:
        found = [
            keyword
            for keyword in self.ingredient_keywords
            if any(_contains(normalized, keyword + suffix) for suffix in ("", "s", "es"))
        ]
        for match in PHRASE_PATTERN.finditer(normalized):
            word = match.group(1)
            if word not in PHRASE_STOPWORDS and len(word) > 1 and word not in found:
                found.append(word)
        return found

    def extract_time_constraints(self, normalized: str) -> TimeConstraints:
        constraints: Dict[str, int] = {}
        words = normalized.split(" ")

        for match in TIME_PATTERN.finditer(normalized):
            value = int(match.group(1))
            minutes = value * 60 if match.group(2).startswith("h") else value
            # Bucket by keywords within three words of the number
            start = len(normalized[: match.start()].split())
            window = words[max(start - 3, 0): start + 5]
            if any(word.startswith("prep") for word in window):
                constraints["max_prep_time"] = minutes
            elif any(word.startswith("cook") for word in window):
                constraints["max_cook_time"] = minutes
            else:
                constraints["max_total_time"] = minutes

        for keyword, minutes in TIME_KEYWORDS.items():
            if _contains(normalized, keyword):
                current = constraints.get("max_total_time")
                constraints["max_total_time"] = minutes if current is None else min(current, minutes)

        return TimeConstraints(**constraints)

    def extract_budget(self, normalized: str, raw_query: str = "") -> BudgetConstraints:
        economical = any(_contains(normalized, keyword) for keyword in ECONOMY_KEYWORDS)
        max_cost = None
        # "$" is stripped by normalization, so look at the raw text
        match = DOLLAR_PATTERN.search(raw_query)
        if match:
            max_cost = float(match.group(1))
        else:
            dollars = re.search(r"(?:under|below|less than)\s+(\d+)\s+(?:dollars|bucks)", normalized)
            if dollars:
                max_cost = float(dollars.group(1))
        return BudgetConstraints(max_cost=max_cost, economical=economical)

    def extract_servings(self, normalized: str) -> Optional[int]:
        match = SERVINGS_PATTERN.search(normalized)
        if match:
            servings = int(match.group(1))
            return servings if servings > 0 else None
        return None

    def extract_difficulty(self, normalized: str) -> Optional[str]:
        for difficulty, keywords in DIFFICULTY_KEYWORDS:
            if any(_contains(normalized, keyword) for keyword in keywords):
                return difficulty
        return None

    # ------------------------------------------------------------------
    # Mood, situation, breakdown
    # ------------------------------------------------------------------

    def analyze_mood(self, normalized: str, context: UserContext) -> QueryMood:
        mood = {"sentiment": "neutral", "energy": "medium", "urgency": "low", "adventurous": False}

        hits = []
        for keyword, effect in MOOD_KEYWORDS.items():
            match = re.search(rf"\b{re.escape(keyword)}", normalized)
            if match:
                hits.append((match.start(), keyword, effect))
        for _, _, effect in sorted(hits, key=lambda hit: hit[0]):
            mood.update(effect)

        time_of_day = context.session_context.time_of_day
        if time_of_day == "morning" and mood["energy"] == "medium":
            mood["energy"] = "high"
        elif time_of_day == "night" and mood["energy"] == "medium":
            mood["energy"] = "low"

        if any(_contains(normalized, keyword) for keyword in SPEED_KEYWORDS):
            mood["urgency"] = "high"

        return QueryMood(**mood)

    def analyze_context(self, normalized: str, context: UserContext, now: datetime) -> SituationalContext:
        social = "solo"
        for setting, keywords in SOCIAL_KEYWORDS:
            if any(_contains(normalized, keyword) for keyword in keywords):
                social = setting
                break

        occasion = next((o for o in OCCASION_KEYWORDS if _contains(normalized, o)), None)

        return SituationalContext(
            time_of_day=context.session_context.time_of_day,
            season=season_for(now),
            social=social,
            occasion=occasion,
        )

    def breakdown(self, normalized: str) -> QueryBreakdown:
        tokens = normalized.split(" ")
        return QueryBreakdown(
            action=next((t for t in tokens if t in ACTION_WORDS), "find"),
            subject=next((t for t in tokens if t in SUBJECT_WORDS), "recipe"),
            modifiers=[t for t in tokens if t in MODIFIER_WORDS],
            questions=[t for t in tokens if t in QUESTION_WORDS],
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _adjust_intent_score(self, score: float, intent: str, normalized: str, context: UserContext) -> float:
        # Context only reorders intents the text already supports
        if score == 0:
            return score
        time_of_day = context.session_context.time_of_day
        if intent == "meal-planning" and time_of_day in ("morning", "evening"):
            score += 0.5
        if intent == "recipe-recommendation" and context.available_ingredients:
            score += 0.3
        if intent == "shopping-list" and (_contains(normalized, "buy") or _contains(normalized, "need")):
            score += 0.4
        return score

    def _categories(self, normalized: str, table: Dict[str, List[str]]) -> List[str]:
        return [
            category
            for category, keywords in table.items()
            if any(_contains(normalized, keyword) for keyword in keywords)
        ]


def _contains(normalized: str, phrase: str) -> bool:
    """Whole-word (or whole-phrase) containment."""
    return bool(phrase) and f" {phrase} " in f" {normalized} "
