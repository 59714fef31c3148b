from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime, timezone

from context_engine.domain.models.bundle import ContextBundle


class ErrorResponse(BaseModel):
    """Typed failure returned instead of a bundle"""
    error: Dict[str, Any]


class ResolveResponse(BaseModel):
    """Resolved bundle plus the personas the query suggests"""
    bundle: ContextBundle
    suggested_personas: List[str] = Field(default_factory=list)


class ReloadResponse(BaseModel):
    """Outcome of a manifest reload"""
    version: int
    loaded: Dict[str, int] = Field(default_factory=dict)
    errors: List[Dict[str, Any]] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str
    snapshot_version: Optional[int] = None
    capability_version: int = 0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
