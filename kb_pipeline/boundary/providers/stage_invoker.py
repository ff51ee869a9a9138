"""
Downstream stage invocation.

"Invoke stage X with payload Y" behind one protocol with two
implementations: an in-process registry of async handlers, and Celery
``send_task`` for stages that run in worker processes or other services.

``send`` hands a stage off without waiting for its summary (event chaining);
``invoke`` waits for the summary (job queue dispatch and re-split).

Dependencies: celery, asyncio
System role: Boundary used by the event dispatcher and the job queue worker
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol

from celery import Celery

from kb_pipeline.core.exceptions import StageInvocationError

logger = logging.getLogger(__name__)

StageHandler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


class StageInvoker(Protocol):
    """Runs a named stage."""

    async def invoke(self, stage: str, payload: dict[str, Any]) -> dict[str, Any]:
        ...

    async def send(self, stage: str, payload: dict[str, Any]) -> None:
        ...


def _stage_name(stage: Any) -> str:
    return getattr(stage, "value", stage)


class LocalStageInvoker:
    """In-process stage registry."""

    def __init__(self) -> None:
        self._handlers: dict[str, StageHandler] = {}

    def register(self, stage: Any, handler: StageHandler) -> None:
        self._handlers[_stage_name(stage)] = handler

    def is_registered(self, stage: Any) -> bool:
        return _stage_name(stage) in self._handlers

    async def invoke(self, stage: Any, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Run a registered handler.

        Raises:
            StageInvocationError: Unknown stage, handler error, or a summary
                reporting ``success: false``
        """
        name = _stage_name(stage)
        handler = self._handlers.get(name)
        if handler is None:
            raise StageInvocationError(f"No handler registered for stage '{name}'", stage=name)

        try:
            result = await handler(payload)
        except StageInvocationError:
            raise
        except Exception as e:
            raise StageInvocationError(
                f"Stage '{name}' raised {type(e).__name__}: {e}", stage=name
            ) from e

        if isinstance(result, dict) and result.get("success") is False:
            raise StageInvocationError(
                f"Stage '{name}' failed: {result.get('error') or result.get('message')}",
                stage=name,
            )
        return result or {}

    async def send(self, stage: Any, payload: dict[str, Any]) -> None:
        """Run the handler in place; callers already detach it from their own flow."""
        await self.invoke(stage, payload)


class CeleryStageInvoker:
    """Send stages to Celery workers by task name."""

    def __init__(self, app: Celery, timeout_seconds: float = 900.0) -> None:
        """
        Args:
            app: Celery application used for send_task
            timeout_seconds: How long invoke() waits for the task result
        """
        self._app = app
        self._timeout = timeout_seconds

    async def invoke(self, stage: Any, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Send the task and wait for its result in a worker thread.

        Raises:
            StageInvocationError: When sending fails, the task fails, or the
                result reports ``success: false``
        """
        name = _stage_name(stage)
        try:
            async_result = self._app.send_task(name, kwargs={"payload": payload})
            result = await asyncio.to_thread(
                async_result.get, timeout=self._timeout, disable_sync_subtasks=False
            )
        except Exception as e:
            raise StageInvocationError(
                f"Stage '{name}' invocation failed: {type(e).__name__}: {e}", stage=name
            ) from e

        if isinstance(result, dict) and result.get("success") is False:
            raise StageInvocationError(
                f"Stage '{name}' failed: {result.get('error') or result.get('message')}",
                stage=name,
            )
        return result or {}

    async def send(self, stage: Any, payload: dict[str, Any]) -> None:
        """
        Publish the task and return without waiting for a worker.

        Raises:
            StageInvocationError: When the broker rejects the message
        """
        name = _stage_name(stage)
        try:
            async_result = self._app.send_task(name, kwargs={"payload": payload})
        except Exception as e:
            raise StageInvocationError(
                f"Stage '{name}' could not be queued: {type(e).__name__}: {e}", stage=name
            ) from e
        logger.info(
            f"{__name__}:send - Queued '{name}'",
            extra={"task_id": async_result.id, "payload": payload},
        )
