"""
Behavior Analytics API - Main Application Entry Point.

Event ingestion for the storefront and on-demand analytics reports for
the admin dashboard.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from behavior_analytics.core.config import settings
from behavior_analytics.core.database import close_db, init_db
from behavior_analytics.core.exceptions import AnalyticsError, EventPublishError
from behavior_analytics.core.logging import configure_logging, get_logger
from behavior_analytics.messaging import EventConsumer, EventProducer
from behavior_analytics.middleware import ErrorHandlerMiddleware, RequestIdMiddleware
from behavior_analytics.routers import analytics_router, events_router, health_router

# Configure logging before anything else
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info(
        "Starting application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    await init_db()

    if settings.sentry_dsn:
        import sentry_sdk

        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            traces_sample_rate=0.1,
        )
        logger.info("Sentry initialized")

    app.state.event_producer = EventProducer()

    consumer = None
    if settings.kafka_consumer_enabled:
        consumer = EventConsumer()
        consumer.start()
    app.state.event_consumer = consumer

    yield

    logger.info("Shutting down application")
    if consumer is not None:
        await consumer.shutdown()
    await app.state.event_producer.close()
    await close_db()


async def analytics_error_handler(request: Request, exc: AnalyticsError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Failed to build {exc.report}", "report": exc.report},
    )


async def event_publish_error_handler(request: Request, exc: EventPublishError) -> JSONResponse:
    logger.error("Event publish failed", topic=exc.topic, error=exc.message, path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Failed to track event"},
    )


def create_app() -> FastAPI:
    """
    Application factory function.
    Creates and configures the FastAPI application.
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="E-commerce behavior tracking and analytics API",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Add middleware (order matters - first added = outermost)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "X-Request-ID",
        ],
    )

    app.add_exception_handler(AnalyticsError, analytics_error_handler)
    app.add_exception_handler(EventPublishError, event_publish_error_handler)

    app.include_router(health_router)
    app.include_router(events_router, prefix="/api")
    app.include_router(analytics_router, prefix="/api")

    logger.info(
        "Application created",
        routes=len(app.routes),
        cors_origins=len(settings.allowed_origins),
    )

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "behavior_analytics.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
