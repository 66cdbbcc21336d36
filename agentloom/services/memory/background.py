"""
Background task queue.

A bounded asyncio.Queue drained by a fixed pool of workers. Each task is
retried with exponential backoff; final failures are logged and counted,
never raised to whoever submitted the task.
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import structlog
from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_exponential

from agentloom.core.config import settings

logger = structlog.get_logger(__name__)

TaskFactory = Callable[[], Awaitable[Any]]


class BackgroundTaskQueue:
    """Supervised fire-and-forget work (summarize-and-archive jobs)."""

    def __init__(
        self,
        workers: int = settings.SUMMARY_WORKERS,
        maxsize: int = settings.SUMMARY_QUEUE_SIZE,
        max_attempts: int = settings.SUMMARY_MAX_ATTEMPTS,
        min_wait: float = 1,
        max_wait: float = 10,
        name: str = "summary",
    ):
        self.workers = workers
        self.maxsize = maxsize
        self.max_attempts = max_attempts
        self.min_wait = min_wait
        self.max_wait = max_wait
        self.name = name
        self._queue: Optional["asyncio.Queue[Tuple[str, TaskFactory]]"] = None
        self._tasks: List[asyncio.Task] = []
        self._stats: Dict[str, int] = {
            "submitted": 0,
            "succeeded": 0,
            "failed": 0,
            "retried": 0,
            "dropped": 0,
        }

    @property
    def running(self) -> bool:
        return bool(self._tasks) and not all(t.done() for t in self._tasks)

    @property
    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def start(self) -> None:
        """Spawn workers on the running loop. No-op if already running."""
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self.maxsize)
        self._tasks = [
            asyncio.create_task(self._worker(i), name=f"{self.name}-worker-{i}")
            for i in range(self.workers)
        ]
        logger.info("background_queue_started", queue=self.name, workers=self.workers)

    def submit(self, task_name: str, factory: TaskFactory) -> bool:
        """
        Enqueue without waiting. Returns False (and logs) when the queue is full.

        ``factory`` is called once per attempt, so it must build a fresh
        awaitable each time.
        """
        if not self.running:
            self.start()
        try:
            self._queue.put_nowait((task_name, factory))
        except asyncio.QueueFull:
            self._stats["dropped"] += 1
            logger.warning("background_task_dropped", queue=self.name, task=task_name, maxsize=self.maxsize)
            return False
        self._stats["submitted"] += 1
        return True

    async def join(self) -> None:
        """Wait until every submitted task finished (success or final failure)."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("background_queue_stopped", queue=self.name, **self._stats)

    async def _worker(self, index: int) -> None:
        while True:
            task_name, factory = await self._queue.get()
            try:
                await self._run(task_name, factory)
            finally:
                self._queue.task_done()

    def _before_sleep(self, task_name: str) -> Callable[[RetryCallState], None]:
        def log_retry(retry_state: RetryCallState) -> None:
            self._stats["retried"] += 1
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "background_task_retry",
                queue=self.name,
                task=task_name,
                attempt=retry_state.attempt_number,
                error=str(error),
            )
        return log_retry

    async def _run(self, task_name: str, factory: TaskFactory) -> None:
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=1, min=self.min_wait, max=self.max_wait),
                before_sleep=self._before_sleep(task_name),
                reraise=True,
            ):
                with attempt:
                    await factory()
        except Exception as e:
            # Final failure: observable through logs and stats only
            self._stats["failed"] += 1
            logger.error(
                "background_task_failed",
                queue=self.name,
                task=task_name,
                attempts=self.max_attempts,
                error=str(e),
            )
            return

        self._stats["succeeded"] += 1
        logger.info("background_task_succeeded", queue=self.name, task=task_name)
