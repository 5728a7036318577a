import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response, Request, Depends, status
from sqlalchemy.orm import Session

from app import message_service
from app.config import settings
from app.cors import CORSHeadersMiddleware
from app.errors import (
    ConfigurationError,
    InvalidJSONError,
    MessageValidationError,
    RateLimitedError,
    StorageError,
    setup_exception_handlers,
)
from app.logging_utils import setup_logging, RequestLoggingMiddleware, log_submission_data
from app.metrics import record_submission_outcome, get_metrics, get_metrics_content_type
from app.rate_limiter import check_and_record
from app.schemas import (
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    MessagesListResponse,
    OkResponse,
    RateLimitedResponse,
)
from app.storage import init_db, check_db_health, get_db
from app.utils import current_time_ms, get_client_identifier, hash_client_key


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: Check the rate limit salt, initialize database and create tables
    """
    if settings.salt_is_placeholder:
        if settings.RATE_LIMIT_SALT_REQUIRED:
            raise RuntimeError("RATE_LIMIT_SALT is required but not configured")
        logger.warning(
            "RATE_LIMIT_SALT is not configured; client keys use a well-known placeholder salt"
        )
    init_db()
    yield


app = FastAPI(
    title="Messages API",
    description="Anonymous short messages with per-client write throttling",
    version="1.0.0",
    lifespan=lifespan,
)

setup_exception_handlers(app)
app.add_middleware(CORSHeadersMiddleware, allowed_origins=settings.cors_origins)
app.add_middleware(RequestLoggingMiddleware)


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """Liveness probe - always returns 200 once the app is running."""
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(response: Response) -> HealthResponse:
    """
    Readiness probe - returns 200 only if:
    1. RATE_LIMIT_SALT is set to a real secret
    2. DB is reachable and schema is applied

    Otherwise returns 503 (Service Unavailable).
    """
    if settings.salt_is_placeholder:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not_ready", reason="RATE_LIMIT_SALT not configured")

    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )

    return HealthResponse(status="ready")


# =============================================================================
# Messages Routes
# =============================================================================

@app.options("/api/messages")
async def messages_preflight() -> Response:
    """CORS preflight - empty body, headers added by CORSHeadersMiddleware."""
    return Response(status_code=status.HTTP_200_OK)


@app.get(
    "/api/messages",
    response_model=MessagesListResponse,
    responses={500: {"model": ErrorResponse, "description": "Storage failure"}},
)
async def list_messages(db: Session = Depends(get_db)) -> MessagesListResponse:
    """Return the most recent messages, newest first."""
    messages = message_service.list_recent(db, limit=settings.MESSAGES_LIST_LIMIT)
    return MessagesListResponse(
        data=[MessageResponse.model_validate(msg) for msg in messages]
    )


@app.post(
    "/api/messages",
    response_model=OkResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid JSON or text"},
        429: {"model": RateLimitedResponse, "description": "Too many requests"},
        500: {"model": ErrorResponse, "description": "Storage failure"},
    },
)
async def create_message(request: Request, db: Session = Depends(get_db)) -> OkResponse:
    """
    Store one message.

    Body: {"text": "<1-50 chars after whitespace normalization>"}

    One accepted write per client per RATE_LIMIT_WINDOW_MS. Invalid input is
    rejected before the rate limit is consulted.
    """
    raw_body = await request.body()

    try:
        body = json.loads(raw_body)
    except ValueError as e:
        logger.info(f"Invalid JSON body: {e}")
        record_submission_outcome("invalid_json")
        log_submission_data(request, result="invalid_json")
        raise InvalidJSONError()

    text = message_service.normalize(body.get("text") if isinstance(body, dict) else None)
    try:
        message_service.validate(text)
    except MessageValidationError:
        record_submission_outcome("validation_error")
        log_submission_data(request, result="validation_error")
        raise

    client_key = hash_client_key(get_client_identifier(request), settings.rate_limit_salt)
    now = current_time_ms()

    try:
        decision = check_and_record(db, client_key, now, settings.RATE_LIMIT_WINDOW_MS)
        if not decision.allowed:
            record_submission_outcome("rate_limited")
            log_submission_data(
                request,
                result="rate_limited",
                client_key=client_key,
                retry_after_ms=decision.retry_after_ms,
            )
            raise RateLimitedError(retry_after_ms=decision.retry_after_ms)

        message_service.create(db, text, now)
    except (StorageError, ConfigurationError):
        record_submission_outcome("error")
        log_submission_data(request, result="error", client_key=client_key)
        raise

    record_submission_outcome("created")
    log_submission_data(request, result="created", client_key=client_key)
    return OkResponse()


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus-style metrics."""
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
