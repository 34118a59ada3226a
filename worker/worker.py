import argparse
import logging
import time

from nexus_queue.consumer import process_one, recover_stale_jobs
from nexus_queue.handlers import load_handlers
from nexus_queue.job_queue import queue_from_settings
from nexus_queue.logging_utils import setup_logging
from nexus_queue.settings import settings
from nexus_queue.store import store_from_settings

log = logging.getLogger("worker")

def run_once(store, queue, handlers):
    """One trigger: sweep orphans, then process at most one job."""
    if settings.recover_stale_jobs:
        recovered = recover_stale_jobs(store, settings.max_processing_seconds)
        if recovered:
            log.warning(f"failed {len(recovered)} stale jobs", extra={"event": "stale_recovered"})
    return process_one(queue, store, handlers)

def main(argv=None):
    parser = argparse.ArgumentParser(description="Process queued Nexus jobs.")
    parser.add_argument("--once", action="store_true", help="process at most one job and exit")
    args = parser.parse_args(argv)

    setup_logging(settings.log_level)
    store = store_from_settings(settings)
    queue = queue_from_settings(settings)
    handlers = load_handlers(settings.handlers_module)

    if args.once:
        outcome = run_once(store, queue, handlers)
        log.info("worker run finished", extra={"job_id": outcome.job_id, "event": "worker_once"})
        return 0

    log.info("worker started", extra={"event": "worker_start"})
    while True:
        try:
            outcome = run_once(store, queue, handlers)
            if not outcome.processed:
                time.sleep(settings.worker_poll_seconds)
        except Exception:
            log.error("worker loop error", extra={"event": "worker_loop_error"}, exc_info=True)
            time.sleep(2)

if __name__ == "__main__":
    raise SystemExit(main())
