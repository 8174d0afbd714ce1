# backend/app/main.py
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from .core.config import settings
from .core.exceptions import DomainException
from .routes import health, prometheus
from .routes.v1 import experts as experts_v1, payments as payments_v1, sessions as sessions_v1

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{settings.api_title} starting up...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(
        "Commission rate %s, refund windows %sh/%sh",
        settings.platform_commission_rate,
        settings.full_refund_hours,
        settings.partial_refund_hours,
    )
    yield
    logger.info(f"{settings.api_title} shutting down...")


app = FastAPI(
    title=settings.api_title,
    description="Scheduling and booking engine for expert consultation sessions",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Domain errors raised outside a route's own try/except."""
    http_exc = exc.to_http_exception()
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(experts_v1.router, prefix="/experts")
api_v1.include_router(sessions_v1.router, prefix="/sessions")
api_v1.include_router(payments_v1.router, prefix="/payments")

# Mount API v1 first
app.include_router(api_v1)

# Infrastructure routes (intentionally unversioned)
app.include_router(health.router)
app.include_router(prometheus.router)


@app.get("/")
def root() -> dict:
    return {"message": f"Welcome to the {settings.api_title}", "version": API_VERSION}
