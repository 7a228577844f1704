"""Post-hooks for the Sous Chef agent.

Post-hooks run after a response has been validated and stamped, and before it
is returned. They must not block: anything slow is handed to a worker.

Post-hook Pipeline:
1. learning_event_post_hook - Emits a LearningEvent onto the learning queue (ENABLE_LEARNING)
2. log_response_post_hook - Logs intent, confidence and candidate count at debug level
"""

import uuid
from typing import Callable, List, Optional

from src.hooks.learning import LearningQueue
from src.models.models import AgentRequest
from src.models.responses import AgentResponse, LearningEvent, RecipeResultsData
from src.utils.cache import Clock, utc_now
from src.utils.config import config
from src.utils.logger import logger


def learning_event_post_hook(queue: LearningQueue, clock: Clock = utc_now) -> Callable[[AgentRequest, AgentResponse], None]:
    """Build a post-hook that emits one LearningEvent per successful response."""

    def emit_learning_event(request: AgentRequest, response: AgentResponse) -> None:
        event = LearningEvent(
            id=f"learn-{uuid.uuid4().hex[:12]}",
            created_at=clock(),
            request=request,
            response=response,
        )
        if queue.emit(event):
            logger.debug(f"Post-hook: Emitted learning event {event.id} for request {request.id}")

    return emit_learning_event


def log_response_post_hook(request: AgentRequest, response: AgentResponse) -> None:
    """Post-hook: debug summary of the response."""
    candidates = len(response.data.candidates) if isinstance(response.data, RecipeResultsData) else 0
    logger.debug(
        f"Post-hook: {request.id} -> {response.intent} "
        f"(confidence={response.confidence}, priority={response.priority}, candidates={candidates})"
    )


def get_post_hooks(queue: Optional[LearningQueue] = None, clock: Clock = utc_now) -> List:
    """Get list of post-hooks to run after each successful response.

    Args:
        queue: Learning queue; learning events are only emitted when a queue is
            given and ENABLE_LEARNING is true.
        clock: Time source for event timestamps.

    Returns:
        List of post-hooks in execution order.
    """
    hooks: List = []

    if config.ENABLE_LEARNING and queue is not None:
        hooks.append(learning_event_post_hook(queue, clock))
        logger.info("Registered learning event post-hook")
    else:
        logger.info("Skipping learning event post-hook (learning disabled)")

    hooks.append(log_response_post_hook)
    logger.info("Registered response logging post-hook")

    return hooks
