"""
Job Queue

In-process asynchronous dispatcher: one handler per job name, fire-and-forget
enqueue, and a status record per job.

    WAITING -> ACTIVE -> COMPLETED | FAILED

Each enqueue is a single attempt (no retries, no dead-letter queue). Jobs
run as independent asyncio tasks on the running event loop, so jobs of
the same name may interleave and no ordering is guaranteed between them.
"""
import asyncio
import enum
import uuid
from collections import OrderedDict
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from pulse.config import get_settings
from pulse.utils.helpers import utcnow
from pulse.utils.logger import log

JobHandler = Callable[[Any], Awaitable[None]]


class JobName:
    INGEST_USER = "ingest:user"
    GENERATE_REPORT = "report:generate"
    SEND_REPORT = "report:send-email"
    GENERATE_DIGEST = "digest:generate"


class JobStatus(str, enum.Enum):
    WAITING = "WAITING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass(frozen=True)
class QueueJobRecord:
    id: str
    name: str
    status: JobStatus
    created_at: datetime
    updated_at: datetime
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'status': self.status.value,
            'error_message': self.error_message,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }


class JobStore:
    """Where job records live; swap in a durable store for restart safety"""

    def get(self, job_id: str) -> Optional[QueueJobRecord]:
        raise NotImplementedError

    def put(self, record: QueueJobRecord) -> None:
        raise NotImplementedError

    def __len__(self) -> int:
        raise NotImplementedError


class InMemoryJobStore(JobStore):
    """
    Process-local store with bounded retention

    Once more than max_records are held, the oldest terminal records are
    dropped. WAITING/ACTIVE records are never evicted.
    """

    def __init__(self, max_records: int = 10000):
        self._records: "OrderedDict[str, QueueJobRecord]" = OrderedDict()
        self._max_records = max_records

    def get(self, job_id: str) -> Optional[QueueJobRecord]:
        return self._records.get(job_id)

    def put(self, record: QueueJobRecord) -> None:
        self._records[record.id] = record
        self._evict()

    def _evict(self) -> None:
        overflow = len(self._records) - self._max_records
        if overflow <= 0:
            return
        evictable = [
            job_id for job_id, record in self._records.items()
            if record.status in TERMINAL_STATUSES
        ][:overflow]
        for job_id in evictable:
            del self._records[job_id]

    def __len__(self) -> int:
        return len(self._records)


class QueueService:
    """Named-handler job dispatcher on the running event loop"""

    def __init__(self, store: Optional[JobStore] = None, job_timeout_seconds: Optional[float] = None):
        self.store = store if store is not None else InMemoryJobStore()
        self.job_timeout_seconds = job_timeout_seconds
        self._handlers: Dict[str, JobHandler] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    def register(self, job_name: str, handler: JobHandler) -> None:
        """Associate a handler with a job name; a later registration replaces it"""
        if job_name in self._handlers:
            log.debug(f"Replacing queue handler for '{job_name}'")
        self._handlers[job_name] = handler

    def enqueue(self, job_name: str, payload: Any) -> Dict[str, str]:
        """
        Record a WAITING job and schedule it; returns immediately

        Must be called with an event loop running. The handler starts on a
        later loop iteration, never inside this call.
        """
        job_id = str(uuid.uuid4())
        now = utcnow()
        self.store.put(QueueJobRecord(
            id=job_id, name=job_name, status=JobStatus.WAITING,
            created_at=now, updated_at=now,
        ))

        loop = asyncio.get_running_loop()
        task = loop.create_task(self._process(job_id, job_name, payload), name=f"{job_name}:{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job_id, None))

        log.debug(f"Enqueued job '{job_name}' ({job_id})")
        return {'job_id': job_id}

    def get_status(self, job_id: str) -> Optional[QueueJobRecord]:
        return self.store.get(job_id)

    def cancel(self, job_id: str) -> bool:
        """Cancel an in-flight job; it is recorded FAILED. False if not in flight."""
        task = self._tasks.get(job_id)
        if task is None or task.done():
            return False
        cancelled = task.cancel()
        record = self.store.get(job_id)
        # A task cancelled before its first step never enters _process
        if cancelled and record is not None and record.status == JobStatus.WAITING:
            self._update_status(job_id, JobStatus.FAILED, "Job cancelled.")
        return cancelled

    @property
    def in_flight(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def drain(self) -> None:
        """Wait until no job is in flight, including jobs enqueued by jobs"""
        while True:
            pending = [task for task in self._tasks.values() if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel every in-flight job and wait for them to settle"""
        pending = [task for task in self._tasks.values() if not task.done()]
        for job_id in list(self._tasks):
            self.cancel(job_id)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            log.info(f"Queue shutdown cancelled {len(pending)} job(s)")

    async def _process(self, job_id: str, job_name: str, payload: Any) -> None:
        handler = self._handlers.get(job_name)
        if handler is None:
            self._update_status(job_id, JobStatus.FAILED, f"No handler registered for job '{job_name}'.")
            log.error(f"Queue handler missing for job '{job_name}'")
            return

        self._update_status(job_id, JobStatus.ACTIVE)
        try:
            if self.job_timeout_seconds:
                await asyncio.wait_for(handler(payload), timeout=self.job_timeout_seconds)
            else:
                await handler(payload)
            self._update_status(job_id, JobStatus.COMPLETED)
        except asyncio.CancelledError:
            self._update_status(job_id, JobStatus.FAILED, "Job cancelled.")
            log.warning(f"Queue job '{job_name}' ({job_id}) cancelled")
            raise
        except asyncio.TimeoutError as e:
            if self.job_timeout_seconds:
                message = f"Job timed out after {self.job_timeout_seconds}s."
            else:
                message = str(e) or "Unknown queue error"
            self._update_status(job_id, JobStatus.FAILED, message)
            log.error(f"Queue job '{job_name}' failed: {message}")
        except Exception as e:
            message = str(e) or "Unknown queue error"
            self._update_status(job_id, JobStatus.FAILED, message)
            log.error(f"Queue job '{job_name}' failed: {message}")

    def _update_status(self, job_id: str, status: JobStatus, error_message: Optional[str] = None) -> None:
        existing = self.store.get(job_id)
        if existing is None:
            return
        self.store.put(replace(existing, status=status, error_message=error_message, updated_at=utcnow()))


_settings = get_settings()

queue = QueueService(
    store=InMemoryJobStore(max_records=_settings.queue_max_records),
    job_timeout_seconds=_settings.queue_job_timeout_seconds,
)
