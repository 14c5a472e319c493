"""Job queue runtime - bounded-concurrency scheduling of conversion jobs."""

import asyncio
from collections import deque
from collections.abc import Callable, Iterable
from typing import Generic

from loguru import logger

from .common.cancellation import CancellationToken
from .common.errors import OperationCanceled
from .common.schema_event import (
    JobCanceled,
    JobCompleted,
    JobFailed,
    JobProgress,
    JobQueued,
    JobStarted,
    QueueEvent,
    QueueIdle,
)
from .common.schema_job import JobPhase, P, QueueItem, QueueWorker, QueueWorkerContext, R
from .utils.events import ListenerRegistry


class JobQueue(Generic[P, R]):
    """Runs queued jobs through one worker coroutine with bounded concurrency.

    Responsibilities:
    - Keeps pending jobs in FIFO order and admits at most ``concurrency`` at once
    - Gives every running job its own cancellation token
    - Turns every worker settlement into exactly one terminal event
    - Emits ``idle`` whenever nothing is pending or running

    Example:
        queue = JobQueue(PixelateTask().execute, concurrency=2)
        unsubscribe = queue.on_event(print)
        queue.enqueue([QueueItem(id="hero", payload=params)])
        await queue.wait_until_idle()
    """

    def __init__(
        self,
        worker: QueueWorker[P, R],
        concurrency: int = 1,
        token: CancellationToken | None = None,
    ):
        """Initialize queue.

        Args:
            worker: Coroutine function invoked once per admitted job
            concurrency: Initial limit on simultaneously running jobs (clamped to >= 1)
            token: Optional parent token. Canceling it cancels every running job.
        """
        self._worker: QueueWorker[P, R] = worker
        self._concurrency: int = max(1, int(concurrency))
        self._token: CancellationToken = token if token is not None else CancellationToken()

        self._pending: deque[QueueItem[P]] = deque()
        self._running: dict[str, CancellationToken] = {}
        self._canceled: set[str] = set()
        self._tasks: set[asyncio.Task[None]] = set()
        self._listeners: ListenerRegistry[QueueEvent] = ListenerRegistry()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def running_count(self) -> int:
        return len(self._running)

    @property
    def is_idle(self) -> bool:
        return not self._pending and not self._running

    def phase(self, job_id: str) -> JobPhase | None:
        """Phase of a live job, or None once it is terminal or unknown."""
        if job_id in self._running:
            return JobPhase.running
        if any(item.id == job_id for item in self._pending):
            return JobPhase.queued
        return None

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def on_event(self, listener: Callable[[QueueEvent], None]) -> Callable[[], None]:
        """Register an observer. Returns a callable that deregisters it."""
        subscription_id = self._listeners.subscribe(listener)

        def unsubscribe() -> None:
            _ = self._listeners.unsubscribe(subscription_id)

        return unsubscribe

    async def wait_until_idle(self) -> None:
        """Suspend until nothing is pending or running."""
        if self.is_idle:
            return

        drained: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def on_idle(event: QueueEvent) -> None:
            if isinstance(event, QueueIdle) and not drained.done():
                drained.set_result(None)

        unsubscribe = self.on_event(on_idle)
        try:
            await drained
        finally:
            unsubscribe()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def enqueue(self, items: Iterable[QueueItem[P]]) -> None:
        """Append items in order, emit ``queued`` for each, then admit work.

        Must be called from inside a running event loop.
        """
        for item in items:
            self._pending.append(item)
            self._emit(JobQueued(job_id=item.id))
        self._drain()

    def set_concurrency(self, concurrency: int) -> int:
        """Change the admission limit. Running jobs are never preempted."""
        self._concurrency = max(1, int(concurrency))
        logger.debug(f"Queue concurrency set to {self._concurrency}")
        self._drain()
        return self._concurrency

    def cancel(self, job_id: str) -> None:
        for item in self._pending:
            if item.id == job_id:
                self._pending.remove(item)
                logger.debug(f"Canceled pending job {job_id}")
                self._emit(JobCanceled(job_id=job_id))
                self._emit_idle_if_needed()
                return

        token = self._running.get(job_id)
        if token is not None:
            logger.debug(f"Canceling running job {job_id}")
            self._canceled.add(job_id)
            token.cancel()

    def cancel_all(self) -> None:
        pending, self._pending = list(self._pending), deque()
        for item in pending:
            self._emit(JobCanceled(job_id=item.id))

        for job_id, token in list(self._running.items()):
            self._canceled.add(job_id)
            token.cancel()

        logger.debug(
            f"Canceled {len(pending)} pending job(s), signaled {len(self._running)} running"
        )
        self._emit_idle_if_needed()

    # ------------------------------------------------------------------
    # Admission and settlement
    # ------------------------------------------------------------------

    def _drain(self) -> None:
        while len(self._running) < self._concurrency and self._pending:
            self._start(self._pending.popleft())
        self._emit_idle_if_needed()

    def _start(self, item: QueueItem[P]) -> None:
        token = self._token.child()
        self._running[item.id] = token
        self._emit(JobStarted(job_id=item.id))

        task = asyncio.get_running_loop().create_task(
            self._run(item, token), name=f"job:{item.id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, item: QueueItem[P], token: CancellationToken) -> None:
        def report_progress(progress: float) -> None:
            if self._running.get(item.id) is not token:
                return
            self._emit(JobProgress(job_id=item.id, progress=min(1.0, max(0.0, progress))))

        context = QueueWorkerContext(
            id=item.id,
            payload=item.payload,
            token=token,
            report_progress=report_progress,
        )

        try:
            result = await self._worker(context)
        except OperationCanceled:
            self._settle(item.id, token, JobCanceled(job_id=item.id))
        except asyncio.CancelledError:
            self._settle(item.id, token, JobCanceled(job_id=item.id))
            raise
        except Exception as exc:
            if item.id in self._canceled:
                event: QueueEvent = JobCanceled(job_id=item.id)
            else:
                logger.warning(f"Job {item.id} failed: {exc}")
                event = JobFailed(job_id=item.id, message=str(exc) or type(exc).__name__)
            self._settle(item.id, token, event)
        else:
            if item.id in self._canceled:
                self._settle(item.id, token, JobCanceled(job_id=item.id))
            else:
                self._settle(item.id, token, JobCompleted(job_id=item.id, result=result))

    def _settle(self, job_id: str, token: CancellationToken, event: QueueEvent) -> None:
        logger.debug(f"Job {job_id} settled: {event.type}")
        if self._running.get(job_id) is token:
            del self._running[job_id]
        self._canceled.discard(job_id)
        token.release()
        self._emit(event)
        self._drain()

    def _emit_idle_if_needed(self) -> None:
        if self.is_idle:
            self._emit(QueueIdle())

    def _emit(self, event: QueueEvent) -> None:
        self._listeners.publish(event)
