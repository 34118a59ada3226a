from typing import Literal

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    database_url: str = "sqlite+pysqlite:///./nexus_jobs.db"
    redis_url: str = "redis://localhost:6379/0"

    job_store_backend: Literal["sql", "redis", "memory"] = "sql"
    job_queue_backend: Literal["redis", "memory"] = "redis"

    job_queue: str = "nexus_job_queue"
    job_key_prefix: str = "nexus_job:"

    handlers_module: str = "nexus_queue.echo_handlers"

    worker_poll_seconds: float = 2.0
    max_processing_seconds: int = 300
    recover_stale_jobs: bool = True

    log_level: str = "INFO"

settings = Settings()
