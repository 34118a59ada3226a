"""Job record and its lifecycle.

A job moves ``pending -> processing -> complete | failed`` and never back.
Once terminal, exactly one of ``result`` / ``error`` is set.
"""
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from .errors import InvalidTransition
from .models import ALLOWED_TRANSITIONS, JOB_ID_PREFIXES, TERMINAL_STATUSES, JobStatus, TaskName

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def new_job_id(task: TaskName) -> str:
    return f"{JOB_ID_PREFIXES[task]}-{uuid.uuid4()}"

class Job(BaseModel):
    id: str
    status: JobStatus = JobStatus.pending
    # plain str so a record naming a task we no longer know still loads and can be failed
    task: str
    payload: dict[str, Any] = Field(default_factory=dict)
    result: str | None = None
    error: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def _move(self, target: JobStatus) -> None:
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(self.id, self.status.value, target.value)
        self.status = target

    def mark_processing(self, now: datetime | None = None) -> None:
        self._move(JobStatus.processing)
        self.started_at = now or utcnow()

    def mark_complete(self, result: str, now: datetime | None = None) -> None:
        self._move(JobStatus.complete)
        self.result = result
        self.error = None
        self.completed_at = now or utcnow()

    def mark_failed(self, error: str, now: datetime | None = None) -> None:
        self._move(JobStatus.failed)
        self.error = error
        self.result = None
        self.completed_at = now or utcnow()
