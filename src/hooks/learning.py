"""Learning events: a bounded queue and the worker task that consumes it.

Agents never await learning. The post-hook emits a LearningEvent with
put_nowait; the worker records it through the interaction sink in its own
task, retrying transient failures with exponential backoff. A full queue
drops the event, and a failure after the last retry is logged and dropped.
"""

import asyncio
import contextlib
from typing import List, Optional

from src.models.responses import LearningEvent, UserInteraction
from src.ports.ports import InteractionSink, PreferenceStore
from src.utils.config import config
from src.utils.logger import logger


class LearningQueue:
    """Bounded, non-blocking queue of learning events."""

    def __init__(self, maxsize: Optional[int] = None):
        self.maxsize = maxsize if maxsize is not None else config.LEARNING_QUEUE_SIZE
        self._queue: "asyncio.Queue[LearningEvent]" = asyncio.Queue(maxsize=self.maxsize)
        self.dropped = 0

    def emit(self, event: LearningEvent) -> bool:
        """Enqueue without waiting. Returns False when the event was dropped."""
        try:
            self._queue.put_nowait(event)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Learning queue full ({self.maxsize}); dropped event {event.id}")
            return False

    async def get(self) -> LearningEvent:
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    def __len__(self) -> int:
        return self._queue.qsize()


class LearningWorker:
    """Consumes learning events and records them as user interactions."""

    def __init__(
        self,
        queue: LearningQueue,
        sink: InteractionSink,
        preference_store: Optional[PreferenceStore] = None,
        max_retries: Optional[int] = None,
        retry_delays: Optional[List[float]] = None,
    ):
        """Initialize the worker.

        Args:
            queue: Queue the post-hook emits onto.
            sink: Destination for recorded interactions.
            preference_store: Consulted for the allow_data_collection privacy flag.
            max_retries: Attempts per event (default: config.MAX_RETRIES).
            retry_delays: Delay in seconds before each retry (default: config.retry_delays).
        """
        self.queue = queue
        self.sink = sink
        self.preference_store = preference_store
        self.max_retries = max_retries if max_retries is not None else config.MAX_RETRIES
        self.retry_delays = retry_delays if retry_delays is not None else config.retry_delays
        self.recorded = 0
        self.skipped = 0
        self.failed = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="learning-worker")
        logger.info("✓ Learning worker started")

    async def drain(self) -> None:
        """Wait until every queued event has been processed."""
        await self.queue.join()

    async def stop(self, drain: bool = True) -> None:
        if self._task is None:
            return
        if drain and self.running:
            await self.drain()
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info(f"✓ Learning worker stopped (recorded={self.recorded}, skipped={self.skipped}, failed={self.failed})")

    async def _run(self) -> None:
        while True:
            event = await self.queue.get()
            try:
                await self.process(event)
            except Exception as e:
                self.failed += 1
                logger.error(f"Learning event {event.id} failed: {e}")
            finally:
                self.queue.task_done()

    async def process(self, event: LearningEvent) -> bool:
        """Record one event. Returns True when the interaction was stored."""
        user_id = event.request.user_id
        if not await self._collection_allowed(user_id):
            self.skipped += 1
            logger.debug(f"Data collection disabled for user {user_id}; skipping learning event")
            return False

        interaction = UserInteraction(
            id=event.id,
            user_id=user_id,
            session_id=event.request.metadata.session_id,
            created_at=event.created_at,
            request=event.request,
            response=event.response,
        )
        return await self._record_with_retry(interaction)

    async def _collection_allowed(self, user_id: str) -> bool:
        if self.preference_store is None:
            return True
        try:
            preferences = await self.preference_store.get(user_id)
        except Exception as e:
            logger.warning(f"Could not read privacy settings for user {user_id}, skipping event: {e}")
            return False
        return preferences is None or preferences.privacy.allow_data_collection

    async def _record_with_retry(self, interaction: UserInteraction) -> bool:
        for attempt in range(self.max_retries):
            try:
                logger.debug(f"Recording interaction {interaction.id} (attempt {attempt + 1}/{self.max_retries})")
                await self.sink.record(interaction)
                self.recorded += 1
                return True
            except Exception as e:
                logger.debug(f"Record attempt {attempt + 1} failed: {e}")
                if attempt < self.max_retries - 1:
                    delay = self.retry_delays[attempt] if attempt < len(self.retry_delays) else 4
                    logger.warning(
                        f"Interaction sink failed, retrying in {delay}s... (attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(delay)

        self.failed += 1
        logger.error(f"Dropped interaction {interaction.id} after {self.max_retries} attempts")
        return False
