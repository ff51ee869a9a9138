"""
Event trigger dispatcher.

Fire-and-forget chaining between pipeline stages. A fired stage runs as a
detached asyncio task: the caller gets control back immediately, and any
terminal error is logged here because no caller will ever see it.

Dependencies: asyncio, kb_pipeline.boundary.providers.stage_invoker
System role: Detached-task capability shared by every stage
"""

import asyncio
import logging
from typing import Any, Awaitable

from kb_pipeline.boundary.providers.stage_invoker import StageInvoker

logger = logging.getLogger(__name__)


class EventTriggerDispatcher:
    """
    Spawn detached work with an error-logging wrapper.

    Strong references to running tasks are kept until they finish, so the
    event loop cannot garbage-collect a task mid-flight.
    """

    def __init__(self, invoker: StageInvoker) -> None:
        self._invoker = invoker
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def fire(self, stage: Any, payload: dict[str, Any]) -> asyncio.Task:
        """
        Invoke a downstream stage without waiting for it.

        Args:
            stage: Stage name (or Stage enum)
            payload: JSON-like request for the stage

        Returns:
            asyncio.Task: The detached task (callers normally ignore it)
        """
        name = getattr(stage, "value", stage)
        logger.info(f"{__name__}:fire - Triggering '{name}'", extra={"payload": payload})
        return self.spawn(self._invoker.send(name, payload), label=f"stage:{name}")

    def spawn(self, coro: Awaitable[Any], label: str) -> asyncio.Task:
        """
        Run arbitrary work detached from the caller.

        Args:
            coro: Awaitable to run
            label: Name used in log lines

        Returns:
            asyncio.Task: The detached task
        """
        task = asyncio.get_running_loop().create_task(self._guard(coro, label), name=label)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """
        Wait for every detached task, including ones spawned while waiting.

        Worker processes call this before their event loop shuts down.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _guard(self, coro: Awaitable[Any], label: str) -> Any:
        try:
            return await coro
        except asyncio.CancelledError:
            logger.warning(f"{__name__}:detached - '{label}' cancelled")
            raise
        except Exception as e:
            logger.error(
                f"{__name__}:detached - '{label}' failed: {type(e).__name__}: {e}",
                exc_info=True,
            )
            return None
