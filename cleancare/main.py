# Load environment variables FIRST, before any module imports that need them
from dotenv import load_dotenv
load_dotenv()

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from . import config
from .logging_config import bind_request_id, reset_request_id, setup_logging
from .routes import (
    addresses_router,
    auth_router,
    bookings_router,
    catalog_router,
    limiter,
    location_router,
    push_router,
    riders_router,
)
from .services.exceptions import BookingError

# Configure logging at module load time
setup_logging()

logger = logging.getLogger(__name__)

app = FastAPI(
    title="CleanCare Pro API",
    description="Laundry and dry-cleaning bookings with rider dispatch",
    version="1.0.0",
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Auth", "description": "OTP login and user records"},
        {"name": "Bookings", "description": "Booking lifecycle"},
        {"name": "Riders", "description": "Rider profiles and availability"},
        {"name": "Services", "description": "Service catalog and quotes"},
    ],
)


# ---------- Request ID Middleware ----------
# Adds a unique request ID to each request for debugging and log correlation


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique request ID to each request.
    The ID is available in request.state.request_id and returned in X-Request-ID header.
    Log records written while the request is served carry it as ``request_id``.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        token = bind_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)

        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(RequestIDMiddleware)

# Add rate limit exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


# ---------- Error Handlers ----------


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, **exc.extra})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(status_code=404, content={"detail": "Route not found"})
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body = {"success": False, "message": "Internal server error"}
    if config.DEBUG:
        body["error"] = str(exc)
    return JSONResponse(status_code=500, content=body)


# ---------- Include Routers ----------
# All API endpoints are available under /api/
# Example: /api/auth/send-otp, /api/bookings, etc.

api_router = APIRouter(prefix="/api")


@api_router.get("/health", tags=["Health"])
def health() -> Dict[str, str]:
    """Health check endpoint. Returns ok if the service is running."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": config.SERVICE_NAME,
    }


@api_router.get("/test", tags=["Health"])
def test_endpoint() -> Dict[str, str]:
    return {
        "message": f"{config.SERVICE_NAME} is working!",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


api_router.include_router(auth_router)
api_router.include_router(bookings_router)
api_router.include_router(addresses_router)
api_router.include_router(riders_router)
api_router.include_router(catalog_router)
api_router.include_router(location_router)
api_router.include_router(push_router)

app.include_router(api_router)
