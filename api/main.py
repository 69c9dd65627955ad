"""
Meet Attendant API - FastAPI Backend
Accepts meeting jobs, reports queue/job status and forwards per-job
actions (stop recording, leave) to the running workers.
"""

from datetime import datetime
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, validator

from api.config import AppConfig, config as default_config
from api.logging_config import logger, log_job_event, log_request, setup_package_logging
from api.services import ServiceContainer, build_services
from core import ErrorCategory, JobNotFoundError, MeetingBotError, MeetingJob
from core.models import parse_scheduled_time

API_VERSION = "1.0.0"

ERROR_STATUS_CODES = {
    ErrorCategory.CONFIGURATION: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCategory.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


# === Pydantic Models with Validation ===

class JoinMeetingRequest(BaseModel):
    meeting_url: str = Field(..., min_length=1, max_length=2000)
    start_recording: bool = True
    # ISO-8601; validated by the queue so a bad value is a 400
    scheduled_time: Optional[str] = Field(default=None, max_length=64)
    # None keeps the current browser mode
    headless: Optional[bool] = None

    @validator('meeting_url')
    def validate_url(cls, v):
        v = v.strip()
        if not v.startswith(('http://', 'https://')):
            raise ValueError('Invalid URL format')
        return v


class ModeRequest(BaseModel):
    headless: bool


# === Dependencies ===

def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def _job_payload(services: ServiceContainer, job: MeetingJob) -> dict:
    payload = job.to_dict()
    payload["recording"] = services.driver.is_recording(job.id)
    return payload


def _get_job_or_404(services: ServiceContainer, job_id: str) -> MeetingJob:
    job = services.queue.status(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


# === API Endpoints ===

router = APIRouter()


@router.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": f"Meet Attendant API v{API_VERSION}"}


@router.get("/health")
async def health(services: ServiceContainer = Depends(get_services)):
    """Detailed health check."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "browser_ready": services.pool.is_ready,
        "version": API_VERSION,
    }


@router.get("/api/status")
async def get_status(services: ServiceContainer = Depends(get_services)):
    """Queue, capacity and browser mode."""
    return {
        "status": "running",
        "queue": services.queue.snapshot().to_dict(),
        "capacity": services.pool.capacity().to_dict(),
        "headless": services.pool.headless,
        "logged_in": services.session_store.has_valid_session(),
    }


@router.get("/api/capacity")
async def get_capacity(services: ServiceContainer = Depends(get_services)):
    return services.pool.capacity().to_dict()


@router.post("/api/join-meeting", status_code=status.HTTP_201_CREATED)
async def join_meeting(request: JoinMeetingRequest, services: ServiceContainer = Depends(get_services)):
    """Queue a meeting job (immediately or at scheduled_time)."""
    cfg = services.config

    if not cfg.is_allowed_meeting_url(request.meeting_url):
        raise HTTPException(status_code=400, detail="Meeting URL host is not allowed")

    if cfg.REQUIRE_SESSION and not services.session_store.has_valid_session():
        raise HTTPException(
            status_code=401,
            detail='Not logged in. Run "python main.py login" first to authenticate.',
        )

    # Reject a bad start time before the destructive mode switch below
    scheduled_time = parse_scheduled_time(request.scheduled_time)

    if request.headless is not None and request.headless != services.pool.headless:
        logger.info(f"Switching browser mode (headless={request.headless})...")
        failed = await services.queue.switch_mode(request.headless)
        for job in failed:
            log_job_event(job.id, "failed", job.error)

    job = services.queue.submit(
        request.meeting_url,
        wants_recording=request.start_recording,
        scheduled_time=scheduled_time,
    )
    log_job_event(job.id, job.status.value)

    return {
        "job_id": job.id,
        "status": job.status.value,
        "message": (
            f"Meeting scheduled for {job.scheduled_time.isoformat()}"
            if job.scheduled_time
            else "Meeting queued for joining"
        ),
    }


@router.get("/api/job/{job_id}")
async def get_job(job_id: str, services: ServiceContainer = Depends(get_services)):
    job = _get_job_or_404(services, job_id)
    return _job_payload(services, job)


@router.get("/api/jobs")
async def list_jobs(services: ServiceContainer = Depends(get_services)):
    return [_job_payload(services, job) for job in services.queue.all_jobs()]


@router.post("/api/job/{job_id}/stop-recording")
async def stop_recording(job_id: str, services: ServiceContainer = Depends(get_services)):
    _get_job_or_404(services, job_id)
    stopped = await services.driver.stop_recording(job_id)
    return {
        "success": stopped,
        "message": "Recording stopped" if stopped else "Could not stop recording",
    }


@router.post("/api/job/{job_id}/leave")
async def leave_meeting(job_id: str, services: ServiceContainer = Depends(get_services)):
    job = _get_job_or_404(services, job_id)
    if job.is_terminal:
        raise HTTPException(status_code=409, detail=f"Job already {job.status.value}")

    if services.pool.get_worker(job_id) is None:
        # Not running yet: cancel it instead
        job = await services.queue.complete(job_id)
        return {"success": True, "message": "Job cancelled", "job": _job_payload(services, job)}

    left = await services.driver.leave(job_id)
    log_job_event(job_id, "left" if left else "left (unclean)")
    return {
        "success": left,
        "message": "Left meeting" if left else "Could not leave meeting cleanly; worker closed",
        "job": _job_payload(services, services.queue.status(job_id)),
    }


@router.post("/api/mode")
async def switch_mode(request: ModeRequest, services: ServiceContainer = Depends(get_services)):
    """Restart the shared browser headless or headed. Running jobs fail."""
    failed = await services.queue.switch_mode(request.headless)
    return {
        "headless": services.pool.headless,
        "failed_jobs": [job.id for job in failed],
    }


# === App Factory ===

def create_app(services: Optional[ServiceContainer] = None, cfg: Optional[AppConfig] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        services: Pre-built services (tests); built from `cfg` on startup if None
        cfg: Configuration used when services are built here
    """
    cfg = cfg or (services.config if services else default_config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan management."""
        # Startup
        logger.info("Starting Meet Attendant API...")
        setup_package_logging()
        svc = services or build_services(cfg)
        app.state.services = svc

        if not svc.pool.is_ready:
            await svc.pool.initialize(svc.config.HEADLESS)
        if not svc.session_store.has_valid_session():
            logger.warning('Not logged in! Run "python main.py login" first to authenticate.')
        if svc.liveness is not None:
            svc.liveness.start()

        yield
        # Shutdown: timers before workers, so nothing fires after teardown
        logger.info("Shutting down Meet Attendant API...")
        if svc.liveness is not None:
            await svc.liveness.stop()
        await svc.queue.shutdown()
        await svc.pool.close()
        logger.info("Browser workers closed")

    app = FastAPI(
        title="Meet Attendant API",
        description="Schedules browser workers that join, record and leave meetings",
        version=API_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if cfg.DEBUG else None,
        redoc_url="/redoc" if cfg.DEBUG else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if cfg.DEBUG else [],
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all HTTP requests."""
        start_time = datetime.now()
        response = await call_next(request)
        duration = (datetime.now() - start_time).total_seconds() * 1000
        log_request(request.method, request.url.path, response.status_code, duration)
        return response

    @app.exception_handler(MeetingBotError)
    async def meeting_bot_error_handler(request: Request, exc: MeetingBotError):
        status_code = ERROR_STATUS_CODES.get(exc.category, status.HTTP_500_INTERNAL_SERVER_ERROR)
        if isinstance(exc, JobNotFoundError):
            status_code = status.HTTP_404_NOT_FOUND
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "category": exc.category.value},
        )

    app.include_router(router)
    return app


app = create_app()
