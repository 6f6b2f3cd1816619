from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from contextlib import asynccontextmanager
from slowapi.errors import RateLimitExceeded
import logging
import time
import uuid

from . import __version__
from .config import settings
from .database import create_tables
from .exceptions import RentalError
from .utils.logging_config import setup_logging, get_logger, set_request_context, clear_request_context
from .utils.metrics import record_http_request
from .utils.rate_limiter import limiter

from .routers import products, clients, availability, pricing, reservations, health, metrics

logger = logging.getLogger(__name__)
request_logger = get_logger("furniture_rental.requests")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    setup_logging(level=settings.log_level, json_format=settings.log_json or settings.is_production)

    logger.info("Starting furniture-rental-backend")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Store backend: {settings.store_backend}")
    logger.info(f"CORS Origins: {settings.cors_origins}")

    if settings.store_backend == "sql":
        create_tables()

    yield

    logger.info("Shutting down furniture-rental-backend")


app = FastAPI(
    title="Furniture Rental API",
    description="Availability, pricing and reservations for furniture rentals",
    version=__version__,
    lifespan=lifespan
)

# Rate limiter state
app.state.limiter = limiter


# ================================
# CORS MIDDLEWARE - MUST BE FIRST!
# ================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id and records request metrics"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id
        set_request_context(request_id, request.headers.get("X-Caller-Id"))

        start = time.perf_counter()
        try:
            response = await call_next(request)

            duration = time.perf_counter() - start
            route = request.scope.get("route")
            path = getattr(route, "path", request.url.path)
            record_http_request(request.method, path, response.status_code, duration)
            request_logger.api_request(request.method, path, response.status_code, round(duration * 1000, 2))
        finally:
            clear_request_context()

        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(RequestIdMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.exception_handler(RentalError)
async def rental_error_handler(request: Request, exc: RentalError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests, try again later"}
    )


app.include_router(products.router)
app.include_router(clients.router)
app.include_router(availability.router)
app.include_router(pricing.router)
app.include_router(reservations.router)
app.include_router(health.router)
app.include_router(metrics.router)


@app.get("/")
async def root():
    return {
        "message": "Furniture Rental API",
        "version": __version__,
        "docs": "/docs",
        "status": "running"
    }


@app.get("/health")
@app.get("/health/")
async def health_check():
    return {"status": "healthy"}
