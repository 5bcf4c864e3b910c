import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from app.api.router import api_router
from app.config import settings
from app.core.database import init_db
from app.core.exceptions import to_http_error
from app.services.history.exceptions import HistoryError


def setup_logging() -> None:
    """Configure application logging."""
    # Format: timestamp - level - logger name - message
    log_format = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
    date_format = "%H:%M:%S"

    # Configure root logger
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format=log_format,
        datefmt=date_format,
        stream=sys.stdout,
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    # Quieten uvicorn access logs (we'll log requests ourselves)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    from app.tasks.seed_demo import seed_demo_data

    # Startup
    setup_logging()
    logger.info("CodeHub API starting up")
    if settings.debug or settings.is_sqlite:
        await init_db()
    if settings.seed_demo_data:
        await seed_demo_data()
    yield
    # Shutdown
    logger.info("CodeHub API shutting down")


app = FastAPI(
    title="CodeHub API",
    description="Hosted repositories with snapshot-based version history",
    version="0.1.0",
    lifespan=lifespan,
)

# Proxy headers middleware - trust X-Forwarded-Proto from reverse proxy
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log failed requests and writes, skipping OPTIONS preflight."""
    if request.method == "OPTIONS" or request.url.path == "/health":
        return await call_next(request)

    response = await call_next(request)

    # Only log non-2xx or write requests
    path = request.url.path
    if response.status_code >= 400 or request.method in ("POST", "PATCH", "DELETE"):
        logger.info(f"{request.method} {path} -> {response.status_code}")

    return response


@app.exception_handler(HistoryError)
async def history_error_handler(_request: Request, exc: HistoryError):
    """Map history errors that escaped a route to their HTTP status."""
    http_exc = to_http_error(exc)
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


# Include API routes
app.include_router(api_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
