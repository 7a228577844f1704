"""Composition root for the Sous Chef agent core.

Factory function that wires the ports, learning worker, post-hooks, agent and
registry together. Everything is constructed explicitly here; there are no
module-level singletons besides config and logger.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from src.adapters.memory import InMemoryInteractionStore, InMemoryPreferenceStore, InMemoryRecipeCatalog
from src.agents.base import AgentRegistry
from src.agents.sous_chef import SousChefAgent
from src.hooks.hooks import get_post_hooks
from src.hooks.learning import LearningQueue, LearningWorker
from src.models.analysis import ExternalSignal
from src.models.models import AgentRequest, Recipe
from src.models.responses import AgentResponse, UserInteraction
from src.ports.ports import CandidateSupplier, HistoryReader, InteractionSink, PreferenceStore
from src.utils.cache import Clock, utc_now
from src.utils.config import config
from src.utils.errors import safe_execute_async
from src.utils.logger import logger


@dataclass
class AssistantRuntime:
    """Everything initialize_sous_chef() built, with a single dispose()."""

    registry: AgentRegistry
    agent: SousChefAgent
    queue: LearningQueue
    worker: LearningWorker
    supplier: Optional[CandidateSupplier]
    history: HistoryReader
    sink: InteractionSink
    preference_store: PreferenceStore

    async def handle(self, request: AgentRequest) -> AgentResponse:
        """Route a request through the registry. Never raises.

        An unreadable preference store is treated as no stored preferences.
        """
        preferences = await safe_execute_async(
            self.preference_store.get(request.user_id),
            f"Load agent preferences for {request.user_id}",
        )
        return await self.registry.handle(request, preferences)

    async def dispose(self) -> None:
        """Drain pending learning events, stop the worker and dispose every agent."""
        await self.worker.stop(drain=True)
        await self.registry.dispose()


def _configure_stores(
    recipes: Optional[Iterable[Recipe]],
    interactions: Optional[Iterable[UserInteraction]],
    clock: Clock,
):
    """Configure the in-memory adapters for every external port.

    Returns:
        Tuple of (catalog, interaction_store, preference_store).
    """
    logger.info("Step 1/5: Configuring stores...")
    catalog = InMemoryRecipeCatalog(recipes)
    interaction_store = InMemoryInteractionStore(interactions)
    preference_store = InMemoryPreferenceStore(clock=clock)
    logger.info(f"✓ Stores configured ({len(catalog)} catalog recipes)")
    return catalog, interaction_store, preference_store


def _initialize_learning(sink: InteractionSink, preference_store: PreferenceStore):
    """Create the learning queue and its worker (not started yet).

    Returns:
        Tuple of (queue, worker).
    """
    logger.info("Step 2/5: Initializing learning queue...")
    queue = LearningQueue(config.LEARNING_QUEUE_SIZE)
    worker = LearningWorker(
        queue,
        sink,
        preference_store,
        max_retries=config.MAX_RETRIES,
        retry_delays=config.retry_delays,
    )
    logger.info(f"✓ Learning queue initialized (size={queue.maxsize}, enabled={config.ENABLE_LEARNING})")
    return queue, worker


def _register_hooks(queue: LearningQueue, clock: Clock) -> List:
    logger.info("Step 3/5: Registering post-hooks...")
    post_hooks = get_post_hooks(queue, clock)
    logger.info(
        f"✓ {len(post_hooks)} post-hooks registered: {[getattr(h, '__name__', str(h)) for h in post_hooks]}"
    )
    return post_hooks


def _create_agent(
    history: HistoryReader,
    supplier: Optional[CandidateSupplier],
    preference_store: PreferenceStore,
    post_hooks: List,
    clock: Clock,
    signal: Optional[ExternalSignal],
) -> SousChefAgent:
    logger.info("Step 4/5: Configuring Sous Chef agent...")
    agent = SousChefAgent(
        history,
        supplier=supplier,
        preference_store=preference_store,
        post_hooks=post_hooks,
        clock=clock,
        signal=signal,
    )
    logger.info(
        f"✓ Agent configured: {agent.name} ({len(agent.config.supported_intents)} intents, "
        f"{agent.config.max_processing_time_ms}ms budget)"
    )
    return agent


def _create_registry(agent: SousChefAgent, clock: Clock) -> AgentRegistry:
    logger.info("Step 5/5: Creating agent registry...")
    registry = AgentRegistry.create([agent], clock=clock)
    logger.info(f"✓ Registry created with {len(registry)} agent(s)")
    return registry


async def initialize_sous_chef(
    recipes: Optional[Iterable[Recipe]] = None,
    interactions: Optional[Iterable[UserInteraction]] = None,
    signal: Optional[ExternalSignal] = None,
    clock: Clock = utc_now,
    start_worker: bool = True,
) -> AssistantRuntime:
    """Factory function to initialize the Sous Chef agent core (async).

    Orchestrates initialization of all components in sequence:
    1. In-memory stores (recipe catalog, interaction history, preferences)
    2. Learning queue and worker
    3. Post-hooks (learning event emission)
    4. Sous Chef agent with its engines
    5. Agent registry

    Args:
        recipes: Catalog recipes offered by the candidate supplier.
        interactions: Pre-existing interaction history.
        signal: Optional weather/region signal for context analysis.
        clock: Time source shared by caches, stores and responses.
        start_worker: Start the learning worker task (requires a running loop).

    Returns:
        AssistantRuntime holding the registry, agent and learning worker.
    """
    logger.info("=== Initializing Sous Chef Agent ===")

    catalog, interaction_store, preference_store = _configure_stores(recipes, interactions, clock)
    queue, worker = _initialize_learning(interaction_store, preference_store)
    post_hooks = _register_hooks(queue, clock)
    agent = _create_agent(interaction_store, catalog, preference_store, post_hooks, clock, signal)
    registry = _create_registry(agent, clock)

    if start_worker and config.ENABLE_LEARNING:
        worker.start()

    logger.info("=== Agent initialization complete ===")
    return AssistantRuntime(
        registry=registry,
        agent=agent,
        queue=queue,
        worker=worker,
        supplier=catalog,
        history=interaction_store,
        sink=interaction_store,
        preference_store=preference_store,
    )
