# Essential imports
import time
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from routers import auth, addresses, orders, payments
from contextlib import asynccontextmanager

# Import all models for SQLAlchemy relationship resolution
import models  # This triggers the imports in models/__init__.py

# Rate limiter imports
from slowapi.errors import RateLimitExceeded
from middleware.rate_limiter import limiter

# Logging imports
from core.logging_config import setup_logging
from core.exceptions import AppError, GatewayError, WebhookSignatureError
from middleware import RequestIDMiddleware, get_request_id
from core.config import settings
from utils.logger import get_logger
from utils.responses import error_response

# CORS imports
from fastapi.middleware.cors import CORSMiddleware

setup_logging(
    log_level=settings.LOG_LEVEL,
    log_dir=settings.LOG_DIR
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup complete", extra={"event": "startup"})
    yield
    logger.info("Application shutting down", extra={"event": "shutdown"})


app = FastAPI(
    title="Checkout API",
    description="Orders, payments and reconciliation for the storefront",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every HTTP request with method, path, status code and duration.
    """
    start_time = time.time()

    response = await call_next(request)

    duration = (time.time() - start_time) * 1000
    client_ip = request.client.host if request.client else "unknown"

    logger.info(
        f'{client_ip} - "{request.method} {request.url.path} HTTP/1.1" {response.status_code}',
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration, 2),
            "client_ip": client_ip
        }
    )

    return response


# Added last so it wraps the logging middleware and every line carries the id
app.add_middleware(RequestIDMiddleware)


@app.get("/health")
async def health_check():
    logger.debug("Health check requested")
    return {"status": "Healthy"}


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """
    Domain errors (not found, payment not completed, gateway failures,
    illegal status transitions) in the standard envelope.
    """
    log_extra = {
        "path": request.url.path,
        "method": request.method,
        "error_type": type(exc).__name__
    }
    if isinstance(exc, (GatewayError, WebhookSignatureError)):
        # Processor detail stays in the logs
        log_extra["detail"] = exc.detail
    logger.warning(f"Request failed: {exc.message}", extra=log_extra)

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.message, exc.error, **exc.context)
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(str(exc.detail), "http_error"),
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Malformed requests are rejected with 400 and one entry per bad field.
    """
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part not in ("body", "query", "path")),
            "message": error["msg"]
        }
        for error in exc.errors()
    ]

    logger.info(
        "Request validation failed",
        extra={"path": request.url.path, "fields": [error["field"] for error in errors]}
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_response("Validation failed", "validation_error", errors=errors)
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Last resort: log the full stack trace and answer with a generic 500 that
    exposes nothing internal.
    """
    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "request_id": get_request_id(request)
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response("Internal server error", "internal_error")
    )


app.include_router(auth.router)
app.include_router(addresses.router)
app.include_router(orders.router)
app.include_router(payments.router)


app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """
    429 in the standard envelope. The limiter still adds its Retry-After and
    X-RateLimit-* headers when header injection is enabled.
    """
    logger.warning(
        "Rate limit exceeded",
        extra={"path": request.url.path, "method": request.method, "limit": str(exc.detail)}
    )

    response = JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=error_response("Too many requests", "rate_limited")
    )
    return request.app.state.limiter._inject_headers(response, getattr(request.state, "view_rate_limit", None))
