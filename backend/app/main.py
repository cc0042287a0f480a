from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

import structlog

from app.config import get_settings
from app.api import tax
from app.core.logging import configure_logging
from app.core.tax_rules.errors import ArithmeticInvariantError, ConfigurationError
from app.core.tax_rules.rate_schedule import get_rate_schedule


settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    schedule = get_rate_schedule(settings.RATE_SCHEDULE_VERSION)
    logger.info("startup", app=settings.APP_NAME, rate_schedule_version=schedule.version)
    yield
    # Shutdown


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=86400,
)

app.include_router(tax.router, prefix="/api/v1/tax", tags=["tax"])


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error("configuration_error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"detail": "Tax engine configuration error. This is a system fault, not a problem with the submitted data."},
    )


@app.exception_handler(ArithmeticInvariantError)
async def invariant_error_handler(request: Request, exc: ArithmeticInvariantError):
    logger.error("arithmetic_invariant_error", path=request.url.path, invariant=exc.invariant)
    return JSONResponse(
        status_code=500,
        content={"detail": "Calculation could not be verified. This is a system fault, not a problem with the submitted data."},
    )


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "rate_schedule_version": settings.RATE_SCHEDULE_VERSION,
    }
