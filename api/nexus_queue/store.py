"""Job Store: durable map from job id to the current job record.

The store is the source of truth for status queries. Records are never
deleted here; retention belongs to the backing service.
"""
import abc
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

import redis
from pydantic import ValidationError
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .db import Base, make_engine
from .errors import StoreError
from .jobs import Job
from .models import JobRow, JobStatus
from .redis_client import get_redis
from .settings import Settings

log = logging.getLogger("nexus_queue.store")

@contextmanager
def translate_errors(exc_types, what: str):
    try:
        yield
    except exc_types as e:
        raise StoreError(f"{what} failed: {e}") from e

class JobStore(abc.ABC):
    @abc.abstractmethod
    def get(self, job_id: str) -> Job | None:
        ...

    @abc.abstractmethod
    def save(self, job: Job) -> None:
        """Insert or overwrite the record stored under ``job.id``."""

    @abc.abstractmethod
    def iter_by_status(self, status: JobStatus) -> Iterator[Job]:
        ...

    def ping(self) -> bool:
        return True

class MemoryJobStore(JobStore):
    """Process-local store for tests and single-process development.

    Records are kept serialized so a caller mutating a Job it got back
    cannot change what the store holds.
    """

    def __init__(self):
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, job_id: str) -> Job | None:
        with self._lock:
            raw = self._data.get(job_id)
        return Job.model_validate_json(raw) if raw is not None else None

    def save(self, job: Job) -> None:
        raw = job.model_dump_json()
        with self._lock:
            self._data[job.id] = raw

    def iter_by_status(self, status: JobStatus) -> Iterator[Job]:
        with self._lock:
            raws = list(self._data.values())
        for raw in raws:
            job = Job.model_validate_json(raw)
            if job.status == status:
                yield job

    def __len__(self) -> int:
        return len(self._data)

def _aware(dt: datetime | None) -> datetime | None:
    # sqlite drops tzinfo on the way back
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt

class SqlJobStore(JobStore):
    def __init__(self, engine):
        self.engine = engine
        self.Session = sessionmaker(bind=engine, expire_on_commit=False)
        with translate_errors(SQLAlchemyError, "job table setup"):
            Base.metadata.create_all(bind=engine, tables=[JobRow.__table__])

    @staticmethod
    def _to_job(row: JobRow) -> Job:
        return Job(
            id=row.id,
            status=row.status,
            task=row.task,
            payload=row.payload or {},
            result=row.result,
            error=row.error,
            created_at=_aware(row.created_at),
            started_at=_aware(row.started_at),
            completed_at=_aware(row.completed_at),
        )

    def get(self, job_id: str) -> Job | None:
        with translate_errors(SQLAlchemyError, "job read"), self.Session() as db:
            row = db.get(JobRow, job_id)
            return self._to_job(row) if row else None

    def save(self, job: Job) -> None:
        with translate_errors(SQLAlchemyError, "job write"), self.Session() as db:
            db.merge(JobRow(**job.model_dump()))
            db.commit()

    def iter_by_status(self, status: JobStatus) -> Iterator[Job]:
        with translate_errors(SQLAlchemyError, "job scan"), self.Session() as db:
            rows = db.scalars(select(JobRow).where(JobRow.status == status)).all()
        for row in rows:
            yield self._to_job(row)

    def ping(self) -> bool:
        with translate_errors(SQLAlchemyError, "database ping"), self.Session() as db:
            db.execute(text("SELECT 1"))
        return True

class RedisJobStore(JobStore):
    """One string key per job holding its JSON record.

    A set per status (``<prefix>index:<status>``) lists the ids in that
    status, so the stale sweep reads only in-flight jobs instead of scanning
    every record ever written.
    """

    def __init__(self, client: redis.Redis, prefix: str = "nexus_job:"):
        self.r = client
        self.prefix = prefix

    def _key(self, job_id: str) -> str:
        return f"{self.prefix}{job_id}"

    def _index(self, status: JobStatus) -> str:
        return f"{self.prefix}index:{status.value}"

    def _decode(self, job_id: str, raw: str) -> Job | None:
        try:
            return Job.model_validate_json(raw)
        except ValidationError:
            log.error("undecodable job record", extra={"job_id": job_id, "event": "job_record_malformed"}, exc_info=True)
            return None

    def get(self, job_id: str) -> Job | None:
        with translate_errors(redis.RedisError, "job read"):
            raw = self.r.get(self._key(job_id))
        if raw is None:
            return None
        job = self._decode(job_id, raw)
        if job is None:
            raise StoreError(f"job read failed: record {job_id} is not a valid job")
        return job

    def save(self, job: Job) -> None:
        with translate_errors(redis.RedisError, "job write"):
            pipe = self.r.pipeline()
            pipe.set(self._key(job.id), job.model_dump_json())
            for status in JobStatus:
                if status != job.status:
                    pipe.srem(self._index(status), job.id)
            pipe.sadd(self._index(job.status), job.id)
            pipe.execute()

    def iter_by_status(self, status: JobStatus) -> Iterator[Job]:
        with translate_errors(redis.RedisError, "job scan"):
            ids = sorted(self.r.smembers(self._index(status)))
            raws = self.r.mget([self._key(i) for i in ids]) if ids else []
        for job_id, raw in zip(ids, raws):
            if raw is None:
                continue
            job = self._decode(job_id, raw)
            if job is not None and job.status == status:
                yield job

    def ping(self) -> bool:
        with translate_errors(redis.RedisError, "redis ping"):
            return bool(self.r.ping())

def store_from_settings(cfg: Settings) -> JobStore:
    if cfg.job_store_backend == "memory":
        log.warning("using in-memory job store; jobs will not survive a restart", extra={"event": "store_memory"})
        return MemoryJobStore()
    if cfg.job_store_backend == "redis":
        return RedisJobStore(get_redis(cfg.redis_url), prefix=cfg.job_key_prefix)
    return SqlJobStore(make_engine(cfg.database_url))
