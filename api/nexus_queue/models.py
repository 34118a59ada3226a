import enum
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base

class JobStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    complete = "complete"
    failed = "failed"

TERMINAL_STATUSES = frozenset({JobStatus.complete, JobStatus.failed})

# forward-only lifecycle
ALLOWED_TRANSITIONS = {
    JobStatus.pending: frozenset({JobStatus.processing}),
    JobStatus.processing: frozenset({JobStatus.complete, JobStatus.failed}),
    JobStatus.complete: frozenset(),
    JobStatus.failed: frozenset(),
}

class TaskName(str, enum.Enum):
    generate_strategic_report = "generateStrategicReport"
    generate_outreach_letter = "generateOutreachLetter"
    reverse_nexus_search = "reverseNexusSearch"

JOB_ID_PREFIXES = {
    TaskName.generate_strategic_report: "report",
    TaskName.generate_outreach_letter: "letter",
    TaskName.reverse_nexus_search: "reverse",
}

class JobRow(Base):
    __tablename__ = "nexus_jobs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    status: Mapped[JobStatus] = mapped_column(Enum(JobStatus), default=JobStatus.pending, nullable=False, index=True)
    task: Mapped[str] = mapped_column(String(64), nullable=False)

    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    result: Mapped[str | None] = mapped_column(Text, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
