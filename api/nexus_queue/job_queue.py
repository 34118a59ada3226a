"""Job Queue: durable FIFO of job records.

Producers push on the left, workers pop from the right. Pop is destructive
and atomic, so one entry is handed to at most one worker.
"""
import abc
import logging
import threading
from collections import deque

import redis
from pydantic import ValidationError

from .jobs import Job
from .redis_client import get_redis
from .settings import Settings
from .store import translate_errors

log = logging.getLogger("nexus_queue.queue")

class JobQueue(abc.ABC):
    @abc.abstractmethod
    def push(self, job: Job) -> None:
        ...

    @abc.abstractmethod
    def _pop_raw(self) -> str | None:
        ...

    @abc.abstractmethod
    def size(self) -> int:
        ...

    def ping(self) -> bool:
        return True

    def pop(self) -> Job | None:
        raw = self._pop_raw()
        if raw is None:
            return None
        try:
            return Job.model_validate_json(raw)
        except ValidationError:
            # already removed from the queue; nothing to hand back
            log.error("dropping malformed queue entry", extra={"event": "queue_entry_malformed"}, exc_info=True)
            return None

class MemoryJobQueue(JobQueue):
    def __init__(self):
        self._items: deque[str] = deque()
        self._lock = threading.Lock()

    def push(self, job: Job) -> None:
        raw = job.model_dump_json()
        with self._lock:
            self._items.appendleft(raw)

    def _pop_raw(self) -> str | None:
        with self._lock:
            return self._items.pop() if self._items else None

    def size(self) -> int:
        return len(self._items)

class RedisJobQueue(JobQueue):
    def __init__(self, client: redis.Redis, name: str = "nexus_job_queue"):
        self.r = client
        self.name = name

    def push(self, job: Job) -> None:
        with translate_errors(redis.RedisError, "queue push"):
            self.r.lpush(self.name, job.model_dump_json())

    def _pop_raw(self) -> str | None:
        with translate_errors(redis.RedisError, "queue pop"):
            return self.r.rpop(self.name)

    def size(self) -> int:
        with translate_errors(redis.RedisError, "queue length"):
            return int(self.r.llen(self.name))

    def ping(self) -> bool:
        with translate_errors(redis.RedisError, "redis ping"):
            return bool(self.r.ping())

def queue_from_settings(cfg: Settings) -> JobQueue:
    if cfg.job_queue_backend == "memory":
        log.warning("using in-memory job queue; separate worker processes will not see it", extra={"event": "queue_memory"})
        return MemoryJobQueue()
    return RedisJobQueue(get_redis(cfg.redis_url), name=cfg.job_queue)
