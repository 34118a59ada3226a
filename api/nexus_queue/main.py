import logging
import uuid

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .consumer import process_one, recover_stale_jobs
from .errors import StoreError, SubmissionError
from .handlers import HandlerRegistry, load_handlers
from .job_queue import JobQueue, queue_from_settings
from .logging_utils import setup_logging
from .orchestrator import submit_job
from .schemas import JobAccepted, JobStatusOut, JobSubmit, WorkerRunOut
from .settings import Settings, settings
from .store import JobStore, store_from_settings

setup_logging(settings.log_level)
log = logging.getLogger("api")

router = APIRouter()

def get_store(request: Request) -> JobStore:
    return request.app.state.store

def get_queue(request: Request) -> JobQueue:
    return request.app.state.queue

def get_handlers(request: Request) -> HandlerRegistry:
    return request.app.state.handlers

def _unavailable(request: Request, event: str, job_id: str | None = None) -> HTTPException:
    log.error(
        "job backend unavailable",
        extra={"request_id": request.state.request_id, "job_id": job_id, "event": event},
        exc_info=True,
    )
    return HTTPException(status_code=503, detail="job store unavailable")

@router.get("/healthz")
def healthz(request: Request):
    log.info("health ok", extra={"request_id": request.state.request_id, "event": "healthz"})
    return {"ok": True}

@router.get("/readyz")
def readyz(request: Request, store: JobStore = Depends(get_store), queue: JobQueue = Depends(get_queue)):
    try:
        store.ping()
        queue.ping()
    except StoreError:
        raise _unavailable(request, "readyz_failed")
    log.info("ready ok", extra={"request_id": request.state.request_id, "event": "readyz"})
    return {"ready": True}

@router.post("/api/nexus-orchestrator", response_model=JobAccepted, status_code=202)
def submit(
    req: JobSubmit,
    request: Request,
    store: JobStore = Depends(get_store),
    queue: JobQueue = Depends(get_queue),
):
    try:
        job = submit_job(req.task, req.payload, store, queue)
    except SubmissionError as e:
        log.info(
            "submission rejected",
            extra={"request_id": request.state.request_id, "task": req.task, "event": "job_rejected"},
        )
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError:
        raise _unavailable(request, "job_submit_failed")

    log.info(
        "job accepted",
        extra={"request_id": request.state.request_id, "job_id": job.id, "event": "job_accepted"},
    )
    return JobAccepted(job_id=job.id)

@router.get("/api/job-status", response_model=JobStatusOut, response_model_exclude_none=True)
def job_status(
    request: Request,
    job_id: str | None = Query(default=None, alias="id"),
    store: JobStore = Depends(get_store),
):
    if not job_id or not job_id.strip():
        raise HTTPException(status_code=400, detail="Job ID required")

    try:
        job = store.get(job_id)
    except StoreError:
        raise _unavailable(request, "job_get_failed", job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")

    log.info(
        "job fetched",
        extra={"request_id": request.state.request_id, "job_id": job_id, "event": "job_get"},
    )
    return JobStatusOut(status=job.status.value, result=job.result, error=job.error)

@router.api_route(
    "/api/nexus-worker",
    methods=["GET", "POST"],
    response_model=WorkerRunOut,
    response_model_exclude_none=True,
)
def run_worker(
    request: Request,
    store: JobStore = Depends(get_store),
    queue: JobQueue = Depends(get_queue),
    handlers: HandlerRegistry = Depends(get_handlers),
):
    cfg: Settings = request.app.state.settings
    recovered: list[str] = []
    try:
        if cfg.recover_stale_jobs:
            recovered = recover_stale_jobs(store, cfg.max_processing_seconds)
        outcome = process_one(queue, store, handlers)
    except StoreError:
        raise _unavailable(request, "worker_run_failed")

    return WorkerRunOut(
        processed=outcome.processed,
        job_id=outcome.job_id,
        status=outcome.status.value if outcome.status else None,
        recovered=recovered,
    )

def create_app(
    store: JobStore | None = None,
    queue: JobQueue | None = None,
    handlers: HandlerRegistry | None = None,
    cfg: Settings = settings,
) -> FastAPI:
    app = FastAPI(title="Nexus Queue API", version="0.1.0")
    app.state.settings = cfg
    app.state.store = store if store is not None else store_from_settings(cfg)
    app.state.queue = queue if queue is not None else queue_from_settings(cfg)
    app.state.handlers = handlers if handlers is not None else load_handlers(cfg.handlers_module)

    @app.middleware("http")
    async def request_id_mw(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(RequestValidationError)
    async def bad_request(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    app.include_router(router)
    return app

app = create_app()
