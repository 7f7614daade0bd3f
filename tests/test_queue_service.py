"""
Tests for the in-process job queue.

  - enqueue returns before the handler runs
  - WAITING -> ACTIVE -> COMPLETED / FAILED transitions
  - unknown handler, last registration wins
  - cancel, timeout, drain, shutdown
  - bounded record retention
"""
import asyncio
from datetime import datetime

from pulse.services.queue_service import (
    InMemoryJobStore,
    JobStatus,
    QueueJobRecord,
    QueueService,
)


def _run(coro):
    """Run an async coroutine in a sync test."""
    return asyncio.run(coro)


class TestEnqueue:

    def test_returns_before_handler_runs(self):
        async def scenario():
            queue = QueueService()
            calls = []

            async def handler(payload):
                calls.append(payload)

            queue.register("demo", handler)
            job = queue.enqueue("demo", {'n': 1})
            assert calls == []
            assert queue.get_status(job['job_id']).status == JobStatus.WAITING
            await queue.drain()
            return queue, job, calls

        queue, job, calls = _run(scenario())
        assert calls == [{'n': 1}]
        record = queue.get_status(job['job_id'])
        assert record.status == JobStatus.COMPLETED
        assert record.error_message is None
        assert record.name == "demo"

    def test_active_while_running(self):
        async def scenario():
            queue = QueueService()
            job_ids = []
            seen = []

            async def handler(payload):
                seen.append(queue.get_status(job_ids[0]).status)

            queue.register("demo", handler)
            job_ids.append(queue.enqueue("demo", {})['job_id'])
            await queue.drain()
            return seen

        assert _run(scenario()) == [JobStatus.ACTIVE]

    def test_handler_exception_marks_failed(self):
        async def scenario():
            queue = QueueService()

            async def handler(payload):
                raise ValueError("bad payload")

            queue.register("demo", handler)
            job = queue.enqueue("demo", {})
            await queue.drain()
            return queue.get_status(job['job_id'])

        record = _run(scenario())
        assert record.status == JobStatus.FAILED
        assert record.error_message == "bad payload"

    def test_exception_without_message(self):
        async def scenario():
            queue = QueueService()

            async def handler(payload):
                raise RuntimeError()

            queue.register("demo", handler)
            job = queue.enqueue("demo", {})
            await queue.drain()
            return queue.get_status(job['job_id'])

        assert _run(scenario()).error_message == "Unknown queue error"

    def test_unknown_handler(self):
        async def scenario():
            queue = QueueService()
            job = queue.enqueue("report:nowhere", {})
            await queue.drain()
            return queue.get_status(job['job_id'])

        record = _run(scenario())
        assert record.status == JobStatus.FAILED
        assert "report:nowhere" in record.error_message
        assert "No handler registered" in record.error_message

    def test_last_registration_wins(self):
        async def scenario():
            queue = QueueService()
            calls = []

            async def first(payload):
                calls.append("first")

            async def second(payload):
                calls.append("second")

            queue.register("demo", first)
            queue.register("demo", second)
            queue.enqueue("demo", {})
            await queue.drain()
            return calls

        assert _run(scenario()) == ["second"]

    def test_unknown_job_id(self):
        assert QueueService().get_status("missing") is None

    def test_jobs_interleave(self):
        async def scenario():
            queue = QueueService()
            events = []
            release = asyncio.Event()

            async def slow(payload):
                events.append("slow:start")
                await release.wait()
                events.append("slow:end")

            async def fast(payload):
                events.append("fast")
                release.set()

            queue.register("slow", slow)
            queue.register("fast", fast)
            queue.enqueue("slow", {})
            queue.enqueue("fast", {})
            await queue.drain()
            return events

        assert _run(scenario()) == ["slow:start", "fast", "slow:end"]

    def test_drain_waits_for_chained_jobs(self):
        async def scenario():
            queue = QueueService()
            calls = []

            async def first(payload):
                calls.append("first")
                queue.enqueue("second", {})

            async def second(payload):
                calls.append("second")

            queue.register("first", first)
            queue.register("second", second)
            queue.enqueue("first", {})
            await queue.drain()
            return calls, queue.in_flight

        calls, in_flight = _run(scenario())
        assert calls == ["first", "second"]
        assert in_flight == 0


class TestCancellation:

    def test_cancel_running_job(self):
        async def scenario():
            queue = QueueService()

            async def handler(payload):
                await asyncio.sleep(60)

            queue.register("demo", handler)
            job = queue.enqueue("demo", {})
            await asyncio.sleep(0.01)
            assert queue.cancel(job['job_id']) is True
            await queue.drain()
            return queue.get_status(job['job_id'])

        record = _run(scenario())
        assert record.status == JobStatus.FAILED
        assert record.error_message == "Job cancelled."

    def test_cancel_before_start(self):
        async def scenario():
            queue = QueueService()

            async def handler(payload):
                pass

            queue.register("demo", handler)
            job = queue.enqueue("demo", {})
            queue.cancel(job['job_id'])
            await queue.drain()
            return queue.get_status(job['job_id'])

        record = _run(scenario())
        assert record.status == JobStatus.FAILED
        assert record.error_message == "Job cancelled."

    def test_cancel_finished_job(self):
        async def scenario():
            queue = QueueService()

            async def handler(payload):
                pass

            queue.register("demo", handler)
            job = queue.enqueue("demo", {})
            await queue.drain()
            return queue.cancel(job['job_id'])

        assert _run(scenario()) is False

    def test_timeout(self):
        async def scenario():
            queue = QueueService(job_timeout_seconds=0.05)

            async def handler(payload):
                await asyncio.sleep(5)

            queue.register("demo", handler)
            job = queue.enqueue("demo", {})
            await queue.drain()
            return queue.get_status(job['job_id'])

        record = _run(scenario())
        assert record.status == JobStatus.FAILED
        assert record.error_message == "Job timed out after 0.05s."

    def test_shutdown_cancels_everything(self):
        async def scenario():
            queue = QueueService()

            async def handler(payload):
                await asyncio.sleep(60)

            queue.register("demo", handler)
            jobs = [queue.enqueue("demo", {}) for _ in range(3)]
            await asyncio.sleep(0.01)
            await queue.shutdown()
            return queue, jobs

        queue, jobs = _run(scenario())
        assert queue.in_flight == 0
        assert all(queue.get_status(j['job_id']).status == JobStatus.FAILED for j in jobs)


class TestInMemoryJobStore:

    @staticmethod
    def _record(job_id, status):
        now = datetime(2026, 3, 2)
        return QueueJobRecord(id=job_id, name="demo", status=status, created_at=now, updated_at=now)

    def test_evicts_oldest_terminal_records(self):
        store = InMemoryJobStore(max_records=2)
        store.put(self._record("a", JobStatus.COMPLETED))
        store.put(self._record("b", JobStatus.FAILED))
        store.put(self._record("c", JobStatus.COMPLETED))
        assert len(store) == 2
        assert store.get("a") is None
        assert store.get("c") is not None

    def test_never_evicts_live_records(self):
        store = InMemoryJobStore(max_records=1)
        store.put(self._record("a", JobStatus.WAITING))
        store.put(self._record("b", JobStatus.ACTIVE))
        assert store.get("a") is not None
        assert store.get("b") is not None

    def test_to_dict(self):
        data = self._record("a", JobStatus.WAITING).to_dict()
        assert data['status'] == "WAITING"
        assert data['created_at'] == "2026-03-02T00:00:00"
