from typing import Annotated, Dict, Any
from fastapi import APIRouter, Depends, HTTPException, Request
import structlog

from context_engine.domain.models.bundle import ResolutionRequest
from context_engine.domain.context.precedence_resolver import PrecedenceResolver
from ..schema.resolution import ResolveResponse, ReloadResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1")


def get_resolver(request: Request) -> PrecedenceResolver:
    return request.app.state.resolver


# Resolve a context bundle for one interaction
@router.post("/context/resolve", response_model=ResolveResponse)
async def resolve_context(
    body: ResolutionRequest,
    resolver: Annotated[PrecedenceResolver, Depends(get_resolver)]
):
    # Suggestions and bundle come from the same snapshot
    snapshot = resolver.registry.current()
    suggested = []
    if body.persona_invocation is None and body.free_text:
        suggested = resolver.trigger_matcher.suggest_personas(body.free_text, snapshot, limit=3)

    bundle = await resolver.resolve(body, snapshot=snapshot)
    return ResolveResponse(bundle=bundle, suggested_personas=suggested)


@router.get("/registry")
async def registry_summary(
    resolver: Annotated[PrecedenceResolver, Depends(get_resolver)]
) -> Dict[str, Any]:
    return {
        "registry": resolver.registry.current().get_summary(),
        "capabilities": resolver.capability_provider.current().get_summary()
    }


# Reload primitives and connectors from the configured manifest
@router.post("/registry/reload", response_model=ReloadResponse)
async def reload_registry(request: Request):
    watcher = request.app.state.watcher
    if watcher is None:
        raise HTTPException(status_code=409, detail="No manifest configured")

    report = watcher.reload()
    logger.info("Registry reloaded on request", version=report.version)
    return ReloadResponse(**report.to_dict())
