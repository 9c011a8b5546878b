"""FastAPI application entrypoint."""
from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from captable.api.errors import register_exception_handlers
from captable.api.routes import register_routes
from captable.container import Container, build_container
from captable.core.config import Settings, get_settings
from captable.core.logging import configure_logging
from captable.obs import (
    PrometheusMiddleware,
    initialise_tracing,
    instrument_fastapi_app,
    instrument_sqlalchemy_engine,
    metrics_router,
)


def create_application(settings: Settings | None = None, *, container: Container | None = None) -> FastAPI:
    """Application factory used by ASGI servers and tests."""
    configure_logging()
    settings = settings or (container.settings if container is not None else get_settings())
    owns_container = container is None
    container = container or build_container(settings)

    if settings.enable_tracing:
        initialise_tracing(service_name=settings.app_name, endpoint=settings.otel_exporter_endpoint)
        instrument_sqlalchemy_engine(container.engine)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_container:
            container.shutdown()

    application = FastAPI(
        title=settings.app_name,
        version=settings.version,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
        lifespan=lifespan,
    )
    application.state.container = container

    if settings.enable_metrics:
        application.add_middleware(PrometheusMiddleware)
        application.include_router(metrics_router)
    register_exception_handlers(application)
    register_routes(application)

    if settings.enable_tracing:
        instrument_fastapi_app(application)

    return application


__all__ = ["create_application"]
