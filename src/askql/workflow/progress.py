"""
Progress sinks and the fire-and-forget notifier.

Sinks receive ProgressEvents for a session. The ProgressNotifier schedules
each delivery as a background task and never lets a sink failure reach
the workflow: errors raised while scheduling or inside the task are
logged and dropped.
"""

import asyncio
import functools
from typing import Dict, Iterable, List, Optional, Protocol, Set

from ..domain.events import ProgressEvent
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id

logger = get_module_logger()


class ProgressSink(Protocol):
    """Observer of stage transitions for one session."""

    async def notify(self, session_id: str, event: ProgressEvent) -> None: ...


class LoggingProgressSink:
    """Writes every progress event to the structured log."""

    async def notify(self, session_id: str, event: ProgressEvent) -> None:
        logger.info(
            event.message,
            session_id=session_id,
            stage=event.stage,
            phase=event.phase.value,
            metadata=event.metadata,
        )


class CompositeProgressSink:
    """
    Fans an event out to several sinks.

    Sinks are called in order; one failing sink does not stop the others.
    """

    def __init__(self, sinks: Iterable[ProgressSink]):
        self.sinks: List[ProgressSink] = list(sinks)

    async def notify(self, session_id: str, event: ProgressEvent) -> None:
        for sink in self.sinks:
            try:
                await sink.notify(session_id, event)
            except Exception as e:
                logger.warning(
                    "Progress sink failed",
                    sink=sink.__class__.__name__,
                    stage=event.stage,
                    error=str(e),
                    trace_id=current_trace_id(),
                )


class ProgressNotifier:
    """
    Schedules sink notifications without waiting for them.

    Events for a run are scheduled in order on the running loop and tracked
    per session, so drain(session_id) waits only for that session's
    deliveries. drain() without a session waits for everything scheduled
    so far, e.g. before shutdown or in tests.
    """

    def __init__(self, sink: Optional[ProgressSink] = None):
        self.sink = sink
        self._pending: Dict[str, Set[asyncio.Task]] = {}

    @property
    def pending(self) -> int:
        return sum(len(tasks) for tasks in self._pending.values())

    def pending_for(self, session_id: str) -> int:
        return len(self._pending.get(session_id, ()))

    def notify(self, session_id: Optional[str], event: ProgressEvent) -> None:
        """Schedule delivery of one event; a no-op without a session or sink."""
        if not session_id or self.sink is None:
            return

        try:
            task = asyncio.get_running_loop().create_task(self.sink.notify(session_id, event))
        except Exception as e:
            logger.warning(
                "Could not schedule progress notification",
                stage=event.stage,
                error=str(e),
                trace_id=current_trace_id(),
            )
            return

        self._pending.setdefault(session_id, set()).add(task)
        task.add_done_callback(functools.partial(self._on_done, session_id))

    async def drain(self, session_id: Optional[str] = None, timeout: Optional[float] = None) -> None:
        """
        Wait for notifications scheduled before the call.

        Args:
            session_id: Only wait for this session's deliveries; all sessions when None
            timeout: Give up after this many seconds; deliveries still running are left alone
        """
        if session_id is None:
            tasks = set().union(*self._pending.values())
        else:
            tasks = set(self._pending.get(session_id, ()))
        if not tasks:
            return

        _, still_pending = await asyncio.wait(tasks, timeout=timeout)
        if still_pending:
            logger.warning(
                "Progress notifications still pending after drain timeout",
                session_id=session_id,
                pending=len(still_pending),
                trace_id=current_trace_id(),
            )

    def _on_done(self, session_id: str, task: asyncio.Task) -> None:
        tasks = self._pending.get(session_id)
        if tasks is not None:
            tasks.discard(task)
            if not tasks:
                del self._pending[session_id]
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Progress notification failed", session_id=session_id, error=str(error))
