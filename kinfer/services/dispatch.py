"""Hands committed edges to the inference workers.

Relationship writes finish and return before any inference runs; the queue
is the only coupling between the two. ``notify_relationship_established`` is
the one call both the direct-creation and connection-acceptance paths make.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from kinfer.background import running, spawn
from kinfer.services.orchestrator import InferenceOrchestrator
from kinfer.services.rules import InferenceTrigger, TRIGGER_TYPES, normalize_edge_type
from kinfer.settings.config import settings

logger = logging.getLogger(__name__)


class InferenceQueue:
    def __init__(self, orchestrator: InferenceOrchestrator, *, workers: int = 1, maxsize: int = 1000, name: str = "inference"):
        self.orchestrator = orchestrator
        self.name = name
        self.workers = max(1, int(workers))
        self._queue: asyncio.Queue[InferenceTrigger] = asyncio.Queue(maxsize=max(0, int(maxsize)))
        self._tasks: List[asyncio.Task] = []
        self.processed = 0
        self.dropped = 0

    def start(self) -> None:
        if self._tasks:
            return
        for i in range(self.workers):
            self._tasks.append(spawn(self._worker(i), name=f"{self.name}-worker-{i}"))
        logger.info("Inference queue started with %s worker(s)", self.workers)

    def submit(self, trigger: InferenceTrigger) -> bool:
        """Enqueue without waiting. Returns False when the trigger was dropped."""
        try:
            self._queue.put_nowait(trigger)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "Inference queue full; dropped edge=%s a=%s b=%s",
                trigger.edge_type, trigger.person_a, trigger.person_b,
            )
            return False
        return True

    def pending(self) -> int:
        return self._queue.qsize()

    def workers_alive(self) -> int:
        return len(running(f"{self.name}-worker-"))

    async def join(self) -> None:
        await self._queue.join()

    async def stop(self) -> None:
        for t in self._tasks:
            t.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Inference queue stopped (processed=%s dropped=%s)", self.processed, self.dropped)

    async def _worker(self, idx: int) -> None:
        while True:
            trigger = await self._queue.get()
            try:
                await self.orchestrator.run(trigger)
                self.processed += 1
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "inference worker %s failed on edge=%s a=%s b=%s",
                    idx, trigger.edge_type, trigger.person_a, trigger.person_b,
                )
            finally:
                self._queue.task_done()


def notify_relationship_established(
    queue: InferenceQueue,
    edge_type,
    person_a: int,
    person_b: int,
    owner_id: int,
    relationship_id: Optional[int] = None,
) -> bool:
    """Queue an inference pass for a committed edge. Never raises for the caller."""
    kind = normalize_edge_type(edge_type)
    if kind not in TRIGGER_TYPES:
        logger.debug("edge type %r does not trigger inference", kind)
        return False
    return queue.submit(
        InferenceTrigger(
            edge_type=kind,
            person_a=int(person_a),
            person_b=int(person_b),
            owner_id=int(owner_id),
            relationship_id=relationship_id,
        )
    )


_queue: Optional[InferenceQueue] = None


def get_inference_queue() -> InferenceQueue:
    """FastAPI dependency; builds the process-wide queue on first use."""
    global _queue
    if _queue is None:
        from kinfer.database import async_session_maker

        _queue = InferenceQueue(
            InferenceOrchestrator(async_session_maker),
            workers=settings.INFERENCE_WORKERS,
            maxsize=settings.INFERENCE_QUEUE_SIZE,
        )
    return _queue
