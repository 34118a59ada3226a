"""Worker side of the queue: one job per invocation.

Processing is at-most-once. The pop is destructive and a failed handler is
never re-driven. If the invocation dies between marking a job ``processing``
and finalizing it, the job is orphaned; ``recover_stale_jobs`` is the sweep
that fails such jobs once they exceed the allowed processing time.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from .handlers import HandlerRegistry
from .job_queue import JobQueue
from .jobs import utcnow
from .models import JobStatus
from .store import JobStore

log = logging.getLogger("worker")

@dataclass(frozen=True)
class WorkResult:
    job_id: str | None = None
    status: JobStatus | None = None

    @property
    def processed(self) -> bool:
        return self.job_id is not None

def _error_message(e: Exception) -> str:
    return str(e) or e.__class__.__name__

def process_one(
    queue: JobQueue,
    store: JobStore,
    handlers: HandlerRegistry,
    now: Callable[[], datetime] = utcnow,
) -> WorkResult:
    job = queue.pop()
    if job is None:
        log.debug("queue empty", extra={"event": "queue_empty"})
        return WorkResult()

    stored = store.get(job.id)
    if stored is not None and stored.is_terminal:
        log.info("job already finished, skip", extra={"job_id": job.id, "event": "job_already_done"})
        return WorkResult(job_id=job.id, status=stored.status)

    job.mark_processing(now())
    store.save(job)
    log.info("job started", extra={"job_id": job.id, "task": job.task, "event": "job_started"})

    try:
        result = handlers.run(job.task, job.payload)
    except Exception as e:
        job.mark_failed(_error_message(e), now())
        log.error(
            "job failed",
            extra={"job_id": job.id, "task": job.task, "event": "job_failed"},
            exc_info=True,
        )
    else:
        job.mark_complete(result, now())
        log.info("job succeeded", extra={"job_id": job.id, "task": job.task, "event": "job_succeeded"})

    # the stale sweep may have failed this job while the handler ran
    current = store.get(job.id)
    if current is not None and current.is_terminal:
        log.warning(
            "job finalized elsewhere, keeping stored outcome",
            extra={"job_id": job.id, "status": current.status.value, "event": "job_finalized_elsewhere"},
        )
        return WorkResult(job_id=job.id, status=current.status)

    store.save(job)
    return WorkResult(job_id=job.id, status=job.status)

def recover_stale_jobs(store: JobStore, max_processing_seconds: int, now: datetime | None = None) -> list[str]:
    """Fail every ``processing`` job started more than ``max_processing_seconds`` ago."""
    now = now or utcnow()
    cutoff = now - timedelta(seconds=max_processing_seconds)
    recovered = []

    for job in list(store.iter_by_status(JobStatus.processing)):
        started = job.started_at or job.created_at
        if started > cutoff:
            continue
        job.mark_failed(f"abandoned: processing exceeded {max_processing_seconds}s", now)
        store.save(job)
        recovered.append(job.id)
        log.warning("stale job marked failed", extra={"job_id": job.id, "event": "job_abandoned"})

    return recovered
