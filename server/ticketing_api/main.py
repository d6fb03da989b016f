"""FastAPI application initialization and configuration."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.database import async_session_factory, close_db, engine, init_db
from .core.exceptions import (
    ProblemDetailsException,
    generic_exception_handler,
    problem_details_handler,
    request_validation_handler,
)
from .core.middleware import setup_middleware
from .core.observability import (
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_metrics,
    setup_structured_logging,
    setup_tracing,
)
from .realtime.handler import RealtimeHandler
from .realtime.hold_table import HoldTable
from .realtime.notifier import RoomNotifier
from .routers import booking, event, health, metrics, payment, realtime, venue
from .services.payment_gateway import StripePaymentGateway
from .workers.hold_sweeper import HoldSweeper
from .workers.manager import WorkerManager

# Configure structured logging
setup_structured_logging()

# Configure traditional logging for compatibility
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan context manager.

    Sets up observability and the database, then runs the background
    workers (the hold sweeper) for the lifetime of the process.
    """
    logger.info(
        "Starting FastAPI application",
        extra={"environment": settings.environment, "debug": settings.debug}
    )

    try:
        setup_tracing()
        setup_metrics()
        instrument_sqlalchemy(engine)
        logger.info("Observability setup completed")

        await init_db()
        logger.info("Database initialized successfully")

        await app.state.worker_manager.start_all()
        logger.info("Background workers started successfully")
    except Exception as e:
        logger.error("Failed to initialize application", extra={"error": str(e)})
        raise

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down FastAPI application")

    try:
        await app.state.worker_manager.stop_all()
        logger.info("Background workers stopped")

        await close_db()
        logger.info("Database connections closed")
    except Exception as e:
        logger.error("Error during application cleanup", extra={"error": str(e)})

    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    The hold table, notifier, payment gateway and workers are constructed
    here and stored on ``app.state``; each app owns its own instances.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title="Ticketing API",
        description="Event ticketing with live advisory seat holds and transactional seat booking",
        version="1.0.0",
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Shared services
    notifier = RoomNotifier()
    hold_table = HoldTable(notifier, timeout_seconds=settings.hold_timeout_seconds)
    app.state.notifier = notifier
    app.state.hold_table = hold_table
    app.state.payment_gateway = StripePaymentGateway()
    app.state.realtime_handler = RealtimeHandler(hold_table, notifier, async_session_factory)
    app.state.worker_manager = WorkerManager([
        HoldSweeper(hold_table, interval_seconds=settings.sweep_interval_seconds),
    ])

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "traceparent", "tracestate"],
    )

    setup_middleware(app, enable_logging=True)

    instrument_fastapi(app)

    # Register exception handlers
    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    @app.get(
        "/health",
        status_code=status.HTTP_200_OK,
        tags=["Health"],
        summary="Health Check",
        description="Check if the service is healthy and responsive",
        response_model=dict,
    )
    async def health_check():
        return {
            "status": "healthy",
            "service": "ticketing-api",
            "version": "1.0.0",
            "environment": settings.environment,
            "debug": settings.debug,
        }

    @app.get(
        "/ready",
        status_code=status.HTTP_200_OK,
        tags=["Health"],
        summary="Readiness Check",
        description="Check if the service is ready to accept requests",
        response_model=dict,
    )
    async def readiness_check():
        """Ready once the background workers are running."""
        workers = app.state.worker_manager.get_worker_status()
        return {
            "status": "ready" if all(workers.values()) else "starting",
            "service": "ticketing-api",
            "checks": {"workers": workers},
        }

    @app.get(
        "/info",
        status_code=status.HTTP_200_OK,
        tags=["Info"],
        summary="Service Information",
        description="Get detailed information about the service",
        response_model=dict,
    )
    async def service_info():
        return {
            "service": "ticketing-api",
            "version": "1.0.0",
            "environment": settings.environment,
            "debug": settings.debug,
            "hold_timeout_seconds": settings.hold_timeout_seconds,
            "features": {
                "authentication": True,
                "realtime_holds": True,
                "payments": True,
                "tracing": True,
                "problem_details": True,
            },
            "endpoints": {
                "health": "/health",
                "readiness": "/ready",
                "info": "/info",
                "metrics": "/metrics",
                "realtime": "/v1/realtime/ws",
                "docs": "/docs" if settings.debug else None,
            },
        }

    # Register API routers
    app.include_router(health.router)
    app.include_router(venue.router)
    app.include_router(event.router)
    app.include_router(booking.router)
    app.include_router(payment.router)
    app.include_router(realtime.router)
    app.include_router(metrics.router)

    logger.info("FastAPI application created and configured")

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ticketing_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=True,
    )
