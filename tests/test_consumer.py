import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_handlers
from nexus_queue.consumer import WorkResult, process_one, recover_stale_jobs
from nexus_queue.jobs import Job
from nexus_queue.models import JobStatus
from nexus_queue.orchestrator import submit_job

REPORT = ("generateStrategicReport", {"region": "Mindanao"})

class Killed(BaseException):
    """Stands in for the platform killing the invocation."""

def test_empty_queue_is_a_noop(store, queue, handlers):
    outcome = process_one(queue, store, handlers)
    assert outcome == WorkResult()
    assert not outcome.processed

def test_job_completes(store, queue, handlers):
    job = submit_job(*REPORT, store, queue)
    outcome = process_one(queue, store, handlers)

    assert outcome.job_id == job.id
    assert outcome.status == JobStatus.complete
    stored = store.get(job.id)
    assert stored.status == JobStatus.complete
    assert stored.result == "OK"
    assert stored.error is None
    assert stored.completed_at is not None
    assert queue.size() == 0

def test_marked_processing_before_handler_runs(store, queue):
    seen = []

    def handler(payload):
        seen.extend(j.id for j in store.iter_by_status(JobStatus.processing))
        return "done"

    job = submit_job(*REPORT, store, queue)
    process_one(queue, store, make_handlers(generateStrategicReport=handler))
    assert seen == [job.id]

def test_fifo_order(store, queue, handlers):
    a = submit_job(*REPORT, store, queue)
    b = submit_job(*REPORT, store, queue)

    first = process_one(queue, store, handlers)
    assert first.job_id == a.id
    assert store.get(b.id).status == JobStatus.pending

    second = process_one(queue, store, handlers)
    assert second.job_id == b.id

def test_handler_failure_is_recorded_and_isolated(store, queue):
    def boom(payload):
        raise RuntimeError("rate limited")

    registry = make_handlers(generateStrategicReport=boom)
    bad = submit_job(*REPORT, store, queue)
    good = submit_job("reverseNexusSearch", {"industry": "solar"}, store, queue)

    assert process_one(queue, store, registry).status == JobStatus.failed
    failed = store.get(bad.id)
    assert failed.status == JobStatus.failed
    assert failed.error == "rate limited"
    assert failed.result is None

    assert process_one(queue, store, registry).status == JobStatus.complete
    assert store.get(good.id).result == "OK"

def test_empty_error_message_uses_exception_name(store, queue):
    def boom(payload):
        raise TimeoutError()

    job = submit_job(*REPORT, store, queue)
    process_one(queue, store, make_handlers(generateStrategicReport=boom))
    assert store.get(job.id).error == "TimeoutError"

def test_unknown_task_in_queue_is_failed(store, queue, handlers):
    job = Job(id="legacy-1", task="fetchSymbiosisResponse", created_at=datetime.now(timezone.utc))
    store.save(job)
    queue.push(job)

    outcome = process_one(queue, store, handlers)
    assert outcome.status == JobStatus.failed
    assert store.get("legacy-1").error == "Unknown task: fetchSymbiosisResponse"

def test_non_string_result_is_failed(store, queue):
    job = submit_job(*REPORT, store, queue)
    process_one(queue, store, make_handlers(generateStrategicReport=lambda p: {"text": "x"}))
    stored = store.get(job.id)
    assert stored.status == JobStatus.failed
    assert "expected str" in stored.error

def test_coroutine_handler(store, queue):
    async def generate(payload):
        await asyncio.sleep(0)
        return f"report for {payload['region']}"

    job = submit_job(*REPORT, store, queue)
    process_one(queue, store, make_handlers(generateStrategicReport=generate))
    assert store.get(job.id).result == "report for Mindanao"

def test_handler_gets_payload(store, queue):
    received = []
    job = submit_job(*REPORT, store, queue)
    process_one(queue, store, make_handlers(generateStrategicReport=lambda p: received.append(p) or "x"))
    assert received == [{"region": "Mindanao"}]
    assert store.get(job.id).status == JobStatus.complete

def test_already_finished_job_is_skipped(store, queue, handlers):
    calls = []
    job = submit_job(*REPORT, store, queue)
    done = store.get(job.id)
    done.mark_processing()
    done.mark_complete("first")
    store.save(done)

    outcome = process_one(queue, store, make_handlers(generateStrategicReport=lambda p: calls.append(p) or "second"))
    assert outcome.status == JobStatus.complete
    assert calls == []
    assert store.get(job.id).result == "first"

def test_store_is_the_record_after_processing(store, queue, handlers):
    job = submit_job(*REPORT, store, queue)
    process_one(queue, store, handlers)
    assert queue.size() == 0
    assert store.get(job.id) is not None

def _killed(payload):
    raise Killed()

def test_killed_invocation_leaves_orphan(store, queue):
    job = submit_job(*REPORT, store, queue)
    with pytest.raises(Killed):
        process_one(queue, store, make_handlers(generateStrategicReport=_killed))

    orphan = store.get(job.id)
    assert orphan.status == JobStatus.processing
    assert queue.size() == 0

def test_stale_sweep_fails_orphans(store, queue):
    job = submit_job(*REPORT, store, queue)
    with pytest.raises(Killed):
        process_one(queue, store, make_handlers(generateStrategicReport=_killed))
    started = store.get(job.id).started_at

    assert recover_stale_jobs(store, 300, now=started + timedelta(seconds=299)) == []
    assert store.get(job.id).status == JobStatus.processing

    recovered = recover_stale_jobs(store, 300, now=started + timedelta(seconds=301))
    assert recovered == [job.id]
    swept = store.get(job.id)
    assert swept.status == JobStatus.failed
    assert swept.error == "abandoned: processing exceeded 300s"

def test_stale_sweep_ignores_pending_and_finished(store, queue, handlers):
    done = submit_job(*REPORT, store, queue)
    process_one(queue, store, handlers)
    waiting = submit_job(*REPORT, store, queue)

    later = datetime.now(timezone.utc) + timedelta(days=1)
    assert recover_stale_jobs(store, 300, now=later) == []
    assert store.get(done.id).status == JobStatus.complete
    assert store.get(waiting.id).status == JobStatus.pending

def test_sweep_outcome_wins_over_late_handler(store, queue):
    def slow(payload):
        recover_stale_jobs(store, 300, now=datetime.now(timezone.utc) + timedelta(hours=1))
        return "late result"

    job = submit_job(*REPORT, store, queue)
    outcome = process_one(queue, store, make_handlers(generateStrategicReport=slow))

    assert outcome.status == JobStatus.failed
    stored = store.get(job.id)
    assert stored.status == JobStatus.failed
    assert stored.result is None

def test_terminal_jobs_have_exactly_one_outcome(store, queue):
    def flaky(payload):
        if payload["n"] % 3 == 0:
            raise ValueError(f"bad {payload['n']}")
        return f"ok {payload['n']}"

    registry = make_handlers(reverseNexusSearch=flaky)
    ids = [submit_job("reverseNexusSearch", {"n": n}, store, queue).id for n in range(12)]
    while process_one(queue, store, registry).processed:
        pass

    for job_id in ids:
        job = store.get(job_id)
        assert job.is_terminal
        assert (job.result is None) != (job.error is None)
