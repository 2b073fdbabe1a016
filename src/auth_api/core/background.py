"""Background task runner for fire-and-forget work such as outgoing mail.

Tasks run in the API process on the running event loop. The request that
submits a task never waits for it; shutdown drains whatever is still pending.
"""

import asyncio
import uuid
from collections.abc import Coroutine
from typing import Any

from loguru import logger


class InProcessTaskRunner:
    """In-process background task runner using asyncio.

    With ``eager=True`` a task starts executing synchronously inside
    ``submit_task`` and only returns control at its first suspension point.
    """

    def __init__(self, *, eager: bool = False) -> None:
        self._eager = eager
        self._tasks: dict[str, asyncio.Task[Any]] = {}

    @property
    def pending(self) -> int:
        """Number of submitted tasks that have not finished yet."""
        return sum(1 for task in self._tasks.values() if not task.done())

    def submit_task(self, coro: Coroutine[Any, Any, Any], description: str = "background task") -> str:
        """Submit an async task for background execution.

        A failure is logged and never propagates to the submitter.

        Args:
            coro: The coroutine to execute.
            description: Label used in log lines.

        Returns:
            A job ID string for tracking.
        """
        job_id = str(uuid.uuid4())

        async def _run() -> None:
            try:
                await coro
            except Exception as e:
                logger.error(f"{description} {job_id} failed: {e}")

        loop = asyncio.get_running_loop()
        if self._eager:
            task = asyncio.eager_task_factory(loop, _run(), name=job_id)
        else:
            task = loop.create_task(_run(), name=job_id)
        self._tasks[job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job_id, None))
        return job_id

    async def drain(self) -> None:
        """Wait for every task submitted so far to finish."""
        pending = [task for task in self._tasks.values() if not task.done()]
        if pending:
            logger.debug(f"Waiting for {len(pending)} background task(s)")
            await asyncio.gather(*pending, return_exceptions=True)


# Singleton instance for the application
task_runner = InProcessTaskRunner()
