# backend/barbershop/main.py

import asyncio
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as SA_TimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models  # noqa: F401  registers tables on Base.metadata
from .api import api_barber, api_booking, api_ops, api_report, api_review, api_service
from .core.config import settings
from .core.observability import setup_logging
from .database import Base, engine
from .services.ops_scheduler import run_maintenance
from .utils.errors import BookingEngineError
from .utils.redis_cache import close_redis_client
from .utils.status_logger import register_status_listeners

setup_logging()
logger = logging.getLogger(__name__)

# Always use ORJSONResponse for JSON payloads
app = FastAPI(title="Barbershop Booking API", default_response_class=ORJSONResponse)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials="*" not in settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def catch_exceptions(request: Request, call_next):
    """Return JSON responses for HTTP errors and log them."""
    try:
        response = await call_next(request)
    except StarletteHTTPException as exc:  # return the original status and detail
        logger.error(
            "HTTP error %s at %s: %s", exc.status_code, request.url.path, exc.detail
        )
        response = ORJSONResponse(
            status_code=exc.status_code, content={"detail": exc.detail}
        )
    except SA_TimeoutError as exc:  # DB pool timeout -> 503 to reduce retry storms
        logger.error("DB timeout at %s: %s", request.url.path, str(exc))
        response = ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Database busy, please retry"},
        )
    except Exception as exc:  # pragma: no cover - generic handler
        logger.exception("Unhandled error: %s", exc)
        response = ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error"},
        )
    return response


@app.exception_handler(BookingEngineError)
async def booking_engine_error_handler(request: Request, exc: BookingEngineError):
    """Render domain errors with their machine-readable code."""
    logger.warning(
        "Domain error %s at %s: %s", exc.code, request.url.path, exc.message
    )
    return ORJSONResponse(
        status_code=exc.http_status,
        content={
            "detail": {
                "message": exc.message,
                "code": exc.code,
                "field_errors": exc.field_errors,
            }
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return validation errors with details and log them for debugging."""
    errors = exc.errors()
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    field_errors = {
        ".".join(str(part) for part in err.get("loc", ())[1:]) or "body": err.get("msg", "invalid")
        for err in errors
    }
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": {
                "message": "Validation error",
                "code": "validation_error",
                "field_errors": field_errors,
            }
        },
    )


api_prefix = settings.API_V1_STR

# ─── BARBER ROUTES (under /api/v1/barbers) ──────────────────────────────────────────
app.include_router(api_barber.router, prefix=f"{api_prefix}/barbers", tags=["barbers"])

# ─── SERVICE ROUTES (under /api/v1/services) ────────────────────────────────────────
app.include_router(api_service.router, prefix=f"{api_prefix}/services", tags=["services"])

# ─── BOOKING ROUTES (under /api/v1/bookings) ────────────────────────────────────────
app.include_router(api_booking.router, prefix=f"{api_prefix}/bookings", tags=["bookings"])

# ─── REVIEW ROUTES (under /api/v1/reviews) ──────────────────────────────────────────
app.include_router(api_review.router, prefix=f"{api_prefix}/reviews", tags=["reviews"])

# ─── REPORT ROUTES (under /api/v1/reports) ──────────────────────────────────────────
app.include_router(api_report.router, prefix=f"{api_prefix}/reports", tags=["reports"])

# ─── OPS ROUTES (under /api/v1/ops) (maintenance hook) ──────────────────────────
app.include_router(api_ops.router, prefix=f"{api_prefix}")


async def ops_maintenance_loop() -> None:
    """Periodic upkeep: expire stale pending bookings, replay cache outbox."""
    while True:
        await asyncio.sleep(settings.MAINTENANCE_INTERVAL_SECONDS)
        delay = 5
        max_retries = 5
        for attempt in range(max_retries):
            try:
                summary = await asyncio.to_thread(run_maintenance)
                logger.info("Maintenance summary: %s", summary)
                break
            except OperationalError as exc:  # pragma: no cover - transient DB outage
                logger.warning("Maintenance attempt %s failed: %s", attempt + 1, exc)
                if attempt < max_retries - 1:
                    await asyncio.sleep(delay)
                    delay = min(delay * 2, 60)
                    continue
                # Give up for this cycle; try again next tick
                break
            except Exception as exc:  # pragma: no cover - continue running
                logger.exception("Maintenance run failed: %s", exc)
                break


@app.on_event("startup")
def create_tables() -> None:
    """Create missing tables and attach the status-change logger."""
    Base.metadata.create_all(bind=engine)
    register_status_listeners()


@app.on_event("startup")
async def start_background_tasks() -> None:
    """Launch background maintenance unless disabled (tests, external cron)."""
    if settings.MAINTENANCE_LOOP_ENABLED:
        asyncio.create_task(ops_maintenance_loop())


@app.on_event("shutdown")
def shutdown_redis_client() -> None:
    """Close Redis connections when the application shuts down."""
    logger.info("Closing Redis client")
    close_redis_client()


@app.get("/")
async def root():
    return {"message": "Welcome to the Barbershop Booking API"}


@app.get("/healthz", tags=["health"])
async def healthz():
    return {"status": "ok"}
