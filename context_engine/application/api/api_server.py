from typing import Optional
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import asyncio
import structlog

from context_engine.domain.context.precedence_resolver import PrecedenceResolver
from context_engine.domain.registry.primitive_registry import PrimitiveRegistry
from context_engine.domain.registry.capability_index import CapabilityIndexProvider
from context_engine.domain.models.errors import (
    ContextEngineError, BindingError, UnknownPersona, RegistryNotLoaded,
    ResolutionCancelled, WorkspaceLoadError
)
from context_engine.infrastructure.config.settings import get_settings
from context_engine.infrastructure.loader.manifest_source import ManifestError
from context_engine.infrastructure.loader.manifest_watcher import ManifestWatcher
from context_engine.infrastructure.observability.logging import setup_logging
from .route.context import router as context_router
from .schema.resolution import ErrorResponse, HealthResponse

logger = structlog.get_logger(__name__)

ERROR_STATUS = [
    (BindingError, 422),
    (WorkspaceLoadError, 422),
    (UnknownPersona, 404),
    (RegistryNotLoaded, 503),
    (ResolutionCancelled, 409),
    (ManifestError, 400),
]


def create_app(
    resolver: Optional[PrecedenceResolver] = None,
    watcher: Optional[ManifestWatcher] = None
) -> FastAPI:
    """Build the API around a resolver and an optional manifest watcher"""

    app = FastAPI(title="Context Resolution Engine")
    app.state.resolver = resolver or PrecedenceResolver()
    app.state.watcher = watcher
    app.state.watch_task = None
    app.include_router(context_router)

    @app.exception_handler(ContextEngineError)
    async def engine_error_handler(request: Request, exc: ContextEngineError):
        status_code = next(
            (code for error_type, code in ERROR_STATUS if isinstance(exc, error_type)),
            500
        )
        logger.warning("Request failed", path=request.url.path, error_type=exc.error_type, status=status_code)
        return JSONResponse(status_code=status_code, content=ErrorResponse(error=exc.to_dict()).model_dump())

    @app.on_event("startup")
    async def startup_event():
        """Load the manifest and start watching it for changes"""
        if app.state.watcher is None:
            return
        app.state.watcher.check()
        app.state.watch_task = asyncio.create_task(app.state.watcher.watch())
        logger.info("Context engine started", manifest=str(app.state.watcher.path))

    @app.on_event("shutdown")
    async def shutdown_event():
        """Stop the manifest watcher"""
        task = app.state.watch_task
        if task is not None:
            task.cancel()
        logger.info("Context engine shutdown")

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint"""
        resolver = app.state.resolver
        return HealthResponse(
            status="healthy" if resolver.registry.loaded else "not_loaded",
            snapshot_version=resolver.registry.current().version if resolver.registry.loaded else None,
            capability_version=resolver.capability_provider.current().version
        )

    return app


def build_default_app() -> FastAPI:
    """Wire the app from environment settings"""

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format, settings.service_name)

    registry = PrimitiveRegistry()
    capability_provider = CapabilityIndexProvider()
    resolver = PrecedenceResolver(registry, capability_provider)

    watcher = None
    if settings.manifest_path:
        watcher = ManifestWatcher(
            settings.manifest_path,
            registry,
            capability_provider,
            poll_interval=settings.reload_poll_interval
        )

    return create_app(resolver, watcher)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(build_default_app(), host="0.0.0.0", port=8000)
