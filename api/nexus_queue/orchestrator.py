import logging
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from .errors import SubmissionError
from .job_queue import JobQueue
from .jobs import Job, new_job_id, utcnow
from .models import TaskName
from .schemas import PAYLOAD_MODELS
from .store import JobStore

log = logging.getLogger("nexus_queue.orchestrator")

def _summarize(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"] if p != "root") or "payload"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)

def validate_submission(task: str, payload: Any) -> TaskName:
    try:
        name = TaskName(task)
    except ValueError:
        raise SubmissionError(f"Invalid task: {task}") from None

    if not isinstance(payload, dict):
        raise SubmissionError("payload must be an object")
    try:
        PAYLOAD_MODELS[name].model_validate(payload)
    except ValidationError as e:
        raise SubmissionError(f"Invalid payload for {name.value}: {_summarize(e)}") from None
    return name

def submit_job(task: str, payload: Any, store: JobStore, queue: JobQueue, now: datetime | None = None) -> Job:
    """Create a pending job, persist it and enqueue it. Never runs the task.

    StoreError from either write propagates and no id is handed out. If the
    push fails after the save, the stored record stays ``pending`` with an id
    nobody holds.
    """
    name = validate_submission(task, payload)
    job = Job(id=new_job_id(name), task=name.value, payload=payload, created_at=now or utcnow())

    store.save(job)
    queue.push(job)

    log.info("job queued", extra={"job_id": job.id, "task": job.task, "event": "job_queued"})
    return job
