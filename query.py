#!/usr/bin/env python3
"""Ad hoc query runner for the Sous Chef agent.

Run one query against the demo kitchen without wiring up any storage.

Usage:
    python query.py "What can I make with chicken and rice?"
    python query.py --debug "Your query"  # Show full JSON response
    python query.py --time-of-day morning "Something quick for breakfast"
    python query.py --intent meal-planning "Plan my week"

Features:
- Demo kitchen snapshot and recipe catalog
- Markdown rendering of the response (OUTPUT_FORMAT=markdown) or JSON (OUTPUT_FORMAT=json)
- Debug mode to display the full JSON response with all fields
- Clean exit after completion (learning worker drained)
"""

import asyncio
import sys
from typing import List, Optional

from rich.console import Console
from rich.markdown import Markdown

from src.adapters.demo_data import demo_context, demo_recipes, demo_request
from src.agents.agent import initialize_sous_chef
from src.models.models import QUERY_INTENTS
from src.models.responses import (
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
)
from src.utils.config import config
from src.utils.logger import logger

console = Console()

TIMES_OF_DAY = ("morning", "afternoon", "evening", "night")
USAGE = 'Usage: python query.py [--debug] [--time-of-day TIME] [--intent INTENT] "<your query>"'


def render_markdown(response: AgentResponse) -> str:
    """Render an AgentResponse as markdown text for the terminal."""
    lines = [response.message, ""]
    data = response.data

    if isinstance(data, RecipeResultsData):
        for rank, candidate in enumerate(data.candidates[:5], start=1):
            lines.append(
                f"{rank}. **{candidate.recipe.title}** ({candidate.final_score:.0f}/100, "
                f"{candidate.recipe.minutes} min)"
            )
            if candidate.missing_ingredients:
                lines.append(f"   - Missing: {', '.join(candidate.missing_ingredients)}")
        if data.insights:
            lines += ["", "**Insights**"] + [f"- {insight}" for insight in data.insights]
    elif isinstance(data, MealPlanData):
        for slot in data.plan.meal_plan:
            title = slot.recipe.title if slot.recipe else "_open_"
            lines.append(f"- {slot.date.strftime('%a %d %b')} {slot.meal_type}: {title}")
    elif isinstance(data, IngredientData):
        if data.expiring:
            lines += ["**Expiring soon**"] + [f"- {ingredient.name}" for ingredient in data.expiring]
    elif isinstance(data, ShoppingListData):
        for item in data.shopping.items:
            lines.append(f"- [{item.category}] {item.name} ({item.priority}, ${item.estimated_cost:.2f})")
        if data.shopping.budget_tips:
            lines += ["", "**Tips**"] + [f"- {tip}" for tip in data.shopping.budget_tips]
    elif isinstance(data, NutritionData):
        for summary in data.summaries:
            lines.append(
                f"- **{summary.title}**: {summary.calories:.0f} kcal, {summary.protein:.0f}g protein, "
                f"{summary.carbs:.0f}g carbs, {summary.fat:.0f}g fat"
            )
    elif isinstance(data, CookingTipsData):
        for tip in data.tips:
            lines.append(f"- **{tip.title}** ({tip.difficulty}): {tip.description}")
    elif isinstance(data, SubstitutionData):
        for substitution in data.substitutions:
            options = ", ".join(f"{option.ingredient} ({option.ratio})" for option in substitution.substitutes)
            lines.append(f"- **{substitution.original}**: {options}")
    elif isinstance(data, DietaryGuidanceData):
        lines += [f"- {note}" for note in data.guidance]
    elif isinstance(data, GeneralHelpData):
        lines += [f"- {capability}" for capability in data.capabilities]

    if response.follow_up_suggestions:
        lines += ["", "_" + " · ".join(response.follow_up_suggestions) + "_"]
    return "\n".join(lines).strip()


async def _run(query: str, time_of_day: str, intent: Optional[str]) -> AgentResponse:
    runtime = await initialize_sous_chef(recipes=demo_recipes())
    try:
        request = demo_request(query, context=demo_context(time_of_day=time_of_day), intent=intent)
        return await runtime.handle(request)
    finally:
        await runtime.dispose()


def run_query(query: str, debug: bool = False, time_of_day: str = "evening", intent: Optional[str] = None) -> None:
    """Execute a single ad hoc query and print the response.

    Args:
        query: The user query to send to the agent.
        debug: If True, display full JSON response with all fields.
        time_of_day: Session time of day for the demo kitchen.
        intent: Optional explicit intent that overrides detection.
    """
    try:
        logger.info(f"Running query: {query}")
        logger.info("---")
        response = asyncio.run(_run(query, time_of_day, intent))
        logger.info("---")
        console.print()

        if debug or config.OUTPUT_FORMAT == "json":
            if debug:
                console.print("[bold cyan]Debug Mode: Full Response[/bold cyan]")
                console.print("[dim]" + "=" * 60 + "[/dim]")
            console.print_json(response.model_dump_json())
            if debug:
                console.print("[dim]" + "=" * 60 + "[/dim]")
                console.print()
                console.print(Markdown(render_markdown(response)))
        else:
            console.print(Markdown(render_markdown(response)))

    except KeyboardInterrupt:
        logger.info("\nQuery interrupted by user.")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Query execution failed: {e}", exc_info=True)
        sys.exit(1)


def parse_args(argv: List[str]):
    """Parse flags and query text.

    Returns:
        Tuple of (query, debug, time_of_day, intent).

    Raises:
        ValueError: On an unknown flag, a missing flag value or an empty query.
    """
    debug = False
    time_of_day = "evening"
    intent = None
    index = 0

    while index < len(argv) and argv[index].startswith("--"):
        flag = argv[index]
        if flag == "--debug":
            debug = True
            index += 1
        elif flag in ("--time-of-day", "--intent"):
            if index + 1 >= len(argv):
                raise ValueError(f"{flag} flag requires a value")
            value = argv[index + 1]
            if flag == "--time-of-day":
                if value not in TIMES_OF_DAY:
                    raise ValueError(f"--time-of-day must be one of {', '.join(TIMES_OF_DAY)}, got: {value}")
                time_of_day = value
            else:
                if value not in QUERY_INTENTS:
                    raise ValueError(f"--intent must be one of {', '.join(QUERY_INTENTS)}, got: {value}")
                intent = value
            index += 2
        else:
            raise ValueError(f"Unknown flag: {flag}")

    query = " ".join(argv[index:]).strip()
    if not query:
        raise ValueError("No query provided")
    return query, debug, time_of_day, intent


def main() -> None:
    if len(sys.argv) < 2:
        print(USAGE)
        print("")
        print("Examples:")
        print('  python query.py "What can I make with chicken and rice?"')
        print('  python query.py --debug "Something quick for dinner"')
        print('  python query.py --intent meal-planning "Plan my dinners this week"')
        sys.exit(1)

    try:
        query, debug, time_of_day, intent = parse_args(sys.argv[1:])
    except ValueError as e:
        print(f"Error: {e}")
        print(USAGE)
        sys.exit(1)

    run_query(query, debug=debug, time_of_day=time_of_day, intent=intent)


if __name__ == "__main__":
    main()
