"""Background run registry for the HTTP API.

Holds the sessions started through the API so callers can poll or cancel
them.  Only one run may be active at a time because the evaluation store
assumes a single writer.
"""

from __future__ import annotations

import asyncio
import logging

from services.evaluation_service import EvaluationSession

logger = logging.getLogger(__name__)

MAX_FINISHED_RUNS = 50


class RunAlreadyActiveError(RuntimeError):
    """Raised when a run is started while another one is still going."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"Run {run_id} is still in progress")


class RunManager:
    """Starts sessions as asyncio tasks and keeps recent ones for polling."""

    def __init__(self) -> None:
        self._sessions: dict[str, EvaluationSession] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def active(self) -> EvaluationSession | None:
        for run_id, task in self._tasks.items():
            if not task.done():
                return self._sessions.get(run_id)
        return None

    def is_running(self, run_id: str) -> bool:
        task = self._tasks.get(run_id)
        return task is not None and not task.done()

    def start(self, session: EvaluationSession) -> asyncio.Task:
        current = self.active()
        if current is not None:
            raise RunAlreadyActiveError(current.run_id)

        self._sessions[session.run_id] = session
        task = asyncio.create_task(session.run(), name=session.run_id)
        task.add_done_callback(self._on_done)
        self._tasks[session.run_id] = task
        self._evict()
        logger.info("Started %s with %d rubric(s)", session.run_id, len(session.rubrics))
        return task

    def get(self, run_id: str) -> EvaluationSession | None:
        return self._sessions.get(run_id)

    def cancel(self, run_id: str) -> bool:
        session = self._sessions.get(run_id)
        if session is None:
            return False
        session.cancel()
        return True

    async def shutdown(self) -> None:
        """Cancel running sessions and wait for their current rubric to finish."""
        for run_id in list(self._tasks):
            self._sessions[run_id].cancel()
        pending = [t for t in self._tasks.values() if not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _on_done(self, task: asyncio.Task) -> None:
        run_id = task.get_name()
        self._tasks.pop(run_id, None)
        if task.cancelled():
            logger.warning("%s task was cancelled", run_id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error("%s crashed", run_id, exc_info=exc)

    def _evict(self) -> None:
        finished = [rid for rid in self._sessions if not self.is_running(rid)]
        while len(finished) > MAX_FINISHED_RUNS:
            self._sessions.pop(finished.pop(0), None)


_manager: RunManager | None = None


def get_run_manager() -> RunManager:
    global _manager
    if _manager is None:
        _manager = RunManager()
    return _manager
