"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from turtle_portfolio import __version__
from turtle_portfolio.api.routers import portfolio_router
from turtle_portfolio.config.logging_config import setup_logging
from turtle_portfolio.config.settings import get_settings
from turtle_portfolio.core.exceptions import AppError
from turtle_portfolio.repositories.sqlalchemy.database import init_db

# AppError.code -> HTTP status; unknown codes are 400
STATUS_BY_CODE = {
    "VALIDATION_ERROR": 422,
    "NOT_FOUND": 404,
    "INSUFFICIENT_CASH": 400,
    "CONCURRENT_MODIFICATION": 409,
    "PERSISTENCE_ERROR": 503,
    "UPSTREAM_UNAVAILABLE": 503,
    "STORE_UNAVAILABLE": 503,
    "BROKER_UNAVAILABLE": 503,
    "BROKER_AUTH_FAILED": 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    setup_logging()
    init_db()
    yield
    # Shutdown
    gateway = getattr(app.state, "broker_gateway", None)
    if gateway is not None and hasattr(gateway, "close"):
        gateway.close()


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Turtle-trading portfolio reconciliation and risk accounting",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(portfolio_router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Global handler for application errors."""
    return JSONResponse(
        status_code=STATUS_BY_CODE.get(exc.code, 400),
        content={"success": False, "error": exc.code, "message": exc.message},
    )


@app.get("/health")
def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/")
def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": __version__,
        "docs": "/docs",
    }
