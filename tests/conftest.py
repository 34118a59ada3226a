import os
import sys
from pathlib import Path

import pytest

os.environ.setdefault("JOB_STORE_BACKEND", "memory")
os.environ.setdefault("JOB_QUEUE_BACKEND", "memory")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

ROOT = Path(__file__).resolve().parents[1]
for sub in ("api", "worker"):
    if str(ROOT / sub) not in sys.path:
        sys.path.append(str(ROOT / sub))

from fastapi.testclient import TestClient  # noqa: E402

from nexus_queue.handlers import HandlerRegistry  # noqa: E402
from nexus_queue.job_queue import MemoryJobQueue  # noqa: E402
from nexus_queue.main import create_app  # noqa: E402
from nexus_queue.models import TaskName  # noqa: E402
from nexus_queue.settings import Settings  # noqa: E402
from nexus_queue.store import MemoryJobStore  # noqa: E402

def make_handlers(**overrides):
    handlers = {t.value: (lambda payload: "OK") for t in TaskName}
    handlers.update(overrides)
    return HandlerRegistry(handlers)

def make_settings(**kw):
    kw.setdefault("job_store_backend", "memory")
    kw.setdefault("job_queue_backend", "memory")
    return Settings(**kw)

@pytest.fixture
def store():
    return MemoryJobStore()

@pytest.fixture
def queue():
    return MemoryJobQueue()

@pytest.fixture
def handlers():
    return make_handlers()

@pytest.fixture
def client(store, queue, handlers):
    app = create_app(store=store, queue=queue, handlers=handlers, cfg=make_settings())
    return TestClient(app)

class FakeRedis:
    """Dict-backed double for the redis commands the job store issues."""

    def __init__(self):
        self.values = {}
        self.sets = {}
        self.reads = []

    def get(self, key):
        self.reads.append(key)
        return self.values.get(key)

    def mget(self, keys):
        self.reads.extend(keys)
        return [self.values.get(k) for k in keys]

    def set(self, key, value):
        self.values[key] = value

    def sadd(self, key, member):
        self.sets.setdefault(key, set()).add(member)

    def srem(self, key, member):
        self.sets.get(key, set()).discard(member)

    def smembers(self, key):
        return set(self.sets.get(key, set()))

    def ping(self):
        return True

    def pipeline(self):
        return FakePipeline(self)

class FakePipeline:
    def __init__(self, r):
        self.r = r
        self.calls = []

    def __getattr__(self, name):
        return lambda *args: self.calls.append((name, args))

    def execute(self):
        return [getattr(self.r, name)(*args) for name, args in self.calls]
