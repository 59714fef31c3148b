from typing import Dict, Any, List, Optional, Literal, Union
from pydantic import BaseModel, Field
from enum import IntEnum

from .primitives import PrimitiveKind


class LayerPriority(IntEnum):
    """Layer precedence, lowest (most general) first"""
    BASE = 0
    TOPIC = 1
    TASK = 2
    PERSONA = 3


class Layer(BaseModel):
    """One primitive's contribution to a context bundle"""
    source: PrimitiveKind
    identifier: str
    priority: LayerPriority
    content: str


class LayerRef(BaseModel):
    """Reference to a layer taking part in a conflict"""
    source: PrimitiveKind
    identifier: str
    priority: LayerPriority
    value: str


class DirectiveConflict(BaseModel):
    """Two or more layers assert incompatible values for one setting"""
    kind: Literal["directive_conflict"] = "directive_conflict"
    setting: str
    layers: List[LayerRef]
    authoritative: LayerRef
    description: str


class ScopeViolation(BaseModel):
    """Persona declares tools that are unavailable or unknown"""
    kind: Literal["scope_violation"] = "scope_violation"
    persona: str
    unavailable_tools: List[str] = Field(default_factory=list)
    unrecognized_tools: List[str] = Field(default_factory=list)
    degraded: bool = False
    description: str


BundleWarning = Union[DirectiveConflict, ScopeViolation]


class ContextBundle(BaseModel):
    """Resolved, ordered context for a single request"""
    layers: List[Layer] = Field(default_factory=list)
    conflicts: List[BundleWarning] = Field(default_factory=list)
    effective_tools: List[str] = Field(default_factory=list)
    snapshot_version: int = 0

    def layers_at(self, priority: LayerPriority) -> List[Layer]:
        """Get layers contributed at a given priority"""
        return [layer for layer in self.layers if layer.priority == priority]

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the bundle"""
        return {
            "layers": [f"{layer.source.value}:{layer.identifier}" for layer in self.layers],
            "conflicts": len(self.conflicts),
            "effective_tools": len(self.effective_tools),
            "snapshot_version": self.snapshot_version
        }


class PromptInvocation(BaseModel):
    """Explicit invocation of a prompt template"""
    name: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ResolutionRequest(BaseModel):
    """A single resolution request"""
    free_text: str = Field(default="", description="User free text")
    prompt_invocation: Optional[PromptInvocation] = None
    persona_invocation: Optional[str] = Field(None, description="Name of an agent persona to activate")
    skill_limit: Optional[int] = Field(None, ge=1, description="Return at most this many skills")
    all_skill_matches: bool = Field(default=False, description="Return every nonzero skill match")
