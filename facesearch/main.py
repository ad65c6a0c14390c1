"""Main application module for the face folder search service."""
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from facesearch.api import router as api_v1_router
from facesearch.core.config import settings
from facesearch.core.container import container
from facesearch.core.exceptions import ServiceNotInitializedError
from facesearch.core.logging import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[Any, None]:
    """Handle application startup and shutdown events.

    Args:
        app: FastAPI application instance

    Returns:
        AsyncGenerator[Any, None]: Async context manager for app lifecycle
    """
    logger.info(
        "Starting up face folder search service",
        version=settings.VERSION,
        environment=settings.ENVIRONMENT,
    )

    if not container.initialized:
        await container.initialize()
    logger.info("Initialized application services")

    yield

    logger.info("Shutting down face folder search service")
    await container.cleanup()
    logger.info("Cleaned up application resources")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url="/docs" if settings.ENVIRONMENT == "development" else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router, prefix=settings.API_V1_STR)


@app.exception_handler(ServiceNotInitializedError)
async def service_not_initialized_handler(
    request: Request, exc: ServiceNotInitializedError
) -> JSONResponse:
    """Report an unavailable service container as 503."""
    logger.error("Service container unavailable", error=str(exc))
    return JSONResponse(status_code=503, content={"detail": "Service unavailable"})


@app.get("/health")
async def health_check() -> dict:
    """Basic health check endpoint.

    Returns:
        dict: Health status
    """
    logger.info("Health check requested")
    return {"status": "healthy"}


def run() -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    uvicorn.run("facesearch.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
