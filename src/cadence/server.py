import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from cadence.consts import VERSION
from cadence.domain.errors import (
    CadenceError,
    ConfigurationError,
    ContentError,
    InvalidTransition,
    NotFound,
    VersionConflict,
)
from cadence.domain.models import DifficultyLevel, Outcome

logger = logging.getLogger("cadence.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Cadence Server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("Cadence Server shutting down...")


app = FastAPI(
    title="Cadence Server",
    description="Spaced-repetition scheduling API.",
    version=VERSION,
    lifespan=lifespan,
)


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


start_time = time.time()


@app.exception_handler(ContentError)
async def content_error_handler(request: Request, exc: ContentError):
    logger.error(f"Unreadable data while serving {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": f"Unreadable data: {exc}"})


@lru_cache(maxsize=1)
def _build_service():
    # One service per process so its repository locks are shared across requests
    from cadence.application.config import resolve_config
    from cadence.application.factory import get_study_service

    return get_study_service(resolve_config())


def get_service():
    """The process-wide study service built from the resolved configuration."""
    try:
        return _build_service()
    except CadenceError as e:
        logger.error(f"Cannot build study service: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e


def _now() -> datetime:
    return datetime.now(timezone.utc)


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


class ProgressResponse(BaseModel):
    card_id: str
    status: str
    ease_factor: float
    interval_days: int
    last_reviewed: str | None
    next_review_date: str | None
    correct_count: int
    incorrect_count: int
    version: int


class OverviewResponse(BaseModel):
    total: int
    new: int
    learning: int
    review: int
    mastered: int
    due: int
    overdue: int


class ReviewRequest(BaseModel):
    card_id: str
    outcome: Outcome
    # If set, the review is rejected when the stored record has moved on.
    expected_version: int | None = None


@app.get("/users/{user_id}/due", response_model=list[ProgressResponse])
async def list_due(user_id: str, limit: int | None = None, service=Depends(get_service)):
    """Due cards for a user, most urgent first."""
    try:
        records = await service.due(user_id, _now(), limit=limit)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return [ProgressResponse(**r.to_dict()) for r in records]


@app.get("/users/{user_id}/overview", response_model=OverviewResponse)
async def overview(user_id: str, service=Depends(get_service)):
    try:
        summary = await service.overview(user_id, _now())
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return OverviewResponse(**summary.__dict__)


@app.get("/users/{user_id}/recommendation")
async def recommendation(user_id: str, service=Depends(get_service)):
    try:
        tier: DifficultyLevel = await service.recommend(user_id)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {"difficulty": tier.value}


@app.post("/users/{user_id}/reviews", response_model=ProgressResponse)
async def submit_review(user_id: str, req: ReviewRequest, service=Depends(get_service)):
    """
    Grade one card and persist the new progress record.
    """
    logger.info(f"Review for {user_id}/{req.card_id}: {req.outcome.value}")
    try:
        record = await service.record_review(
            user_id, req.card_id, req.outcome, _now(), expected_version=req.expected_version
        )
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except VersionConflict as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except (ValueError, InvalidTransition) as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return ProgressResponse(**record.to_dict())
