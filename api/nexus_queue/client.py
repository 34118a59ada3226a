"""Polling client for the job API.

Mirrors how the report UI drives the queue: submit, then re-poll the status
endpoint every couple of seconds until the job is terminal.
"""
import logging
import time
from typing import Any, Callable

import httpx

log = logging.getLogger("nexus_queue.client")

DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_WAIT_TIMEOUT_SECONDS = 120.0

TERMINAL = ("complete", "failed")

class JobNotFound(Exception):
    pass

class JobTimeout(Exception):
    def __init__(self, job_id: str, last_status: str | None):
        super().__init__(f"job {job_id} still {last_status or 'unknown'} after timeout")
        self.job_id = job_id
        self.last_status = last_status

class JobClient:
    def __init__(
        self,
        http: httpx.Client,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.http = http
        self._sleep = sleep
        self._clock = clock

    def submit(self, task: str, payload: dict[str, Any]) -> str:
        resp = self.http.post("/api/nexus-orchestrator", json={"task": task, "payload": payload})
        resp.raise_for_status()
        return resp.json()["jobId"]

    def status(self, job_id: str) -> dict[str, Any]:
        resp = self.http.get("/api/job-status", params={"id": job_id})
        if resp.status_code == 404:
            raise JobNotFound(job_id)
        resp.raise_for_status()
        return resp.json()

    def wait(
        self,
        job_id: str,
        *,
        interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        timeout: float = DEFAULT_WAIT_TIMEOUT_SECONDS,
    ) -> dict[str, Any]:
        """Poll until the job is complete or failed and return its last status body.

        Raises JobTimeout once ``timeout`` seconds pass without a terminal status.
        Transport errors are logged and polled through.
        """
        deadline = self._clock() + timeout
        last_status = None
        while True:
            try:
                body = self.status(job_id)
            except httpx.TransportError:
                log.warning("status poll failed, retrying", extra={"job_id": job_id, "event": "poll_error"}, exc_info=True)
            else:
                last_status = body.get("status")
                if last_status in TERMINAL:
                    return body

            if self._clock() >= deadline:
                raise JobTimeout(job_id, last_status)
            self._sleep(interval)

    def run(self, task: str, payload: dict[str, Any], **wait_kwargs) -> dict[str, Any]:
        return self.wait(self.submit(task, payload), **wait_kwargs)
