from typing import List, Optional, Iterable, FrozenSet
from pydantic import BaseModel, Field
import structlog

from context_engine.domain.models.primitives import AgentPersona
from context_engine.domain.models.bundle import ScopeViolation
from context_engine.domain.registry.capability_index import CapabilityIndex
from context_engine.infrastructure.config.settings import get_settings
from context_engine.infrastructure.observability.logging import engine_logger

logger = structlog.get_logger(__name__)


class ScopeResult(BaseModel):
    """Effective tool scope of a persona against a capability index"""
    persona: str
    effective_tools: List[str] = Field(default_factory=list)
    unavailable: List[str] = Field(default_factory=list)
    unrecognized: List[str] = Field(default_factory=list)
    restricted: bool = True
    degraded: bool = False

    @property
    def has_warning(self) -> bool:
        return bool(self.unavailable or self.unrecognized or self.degraded)

    def to_violation(self) -> Optional[ScopeViolation]:
        """Build the bundle warning, if any"""

        if not self.has_warning:
            return None

        parts = []
        if self.unavailable:
            parts.append(f"unavailable tools: {', '.join(self.unavailable)}")
        if self.unrecognized:
            parts.append(f"unrecognized tools: {', '.join(self.unrecognized)}")
        if self.degraded:
            parts.append("no declared tool is available; persona degrades to read/search-only behavior")

        return ScopeViolation(
            persona=self.persona,
            unavailable_tools=self.unavailable,
            unrecognized_tools=self.unrecognized,
            degraded=self.degraded,
            description=f"Persona '{self.persona}' " + "; ".join(parts)
        )


class ScopeEnforcer:
    """Restricts a persona's tools to what the capability index offers"""

    def __init__(self, builtin_tools: Optional[Iterable[str]] = None):
        self._builtin_tools = frozenset(builtin_tools) if builtin_tools is not None else None

    @property
    def builtin_tools(self) -> FrozenSet[str]:
        if self._builtin_tools is not None:
            return self._builtin_tools
        return frozenset(get_settings().builtin_tools)

    def enforce(self, persona: AgentPersona, index: CapabilityIndex) -> ScopeResult:
        """Intersect declared tools with exposed capabilities"""

        if not persona.declared_tools:
            # No explicit scope requested
            return ScopeResult(
                persona=persona.name,
                effective_tools=sorted(index.exposed_capabilities()),
                restricted=False
            )

        effective, unavailable, unrecognized = [], [], []
        for tool in dict.fromkeys(persona.declared_tools):
            if self.is_available(tool, index):
                effective.append(tool)
            elif self.is_recognized(tool, index):
                unavailable.append(tool)
            else:
                unrecognized.append(tool)

        result = ScopeResult(
            persona=persona.name,
            effective_tools=sorted(effective),
            unavailable=sorted(unavailable),
            unrecognized=sorted(unrecognized),
            degraded=not effective
        )

        if result.has_warning:
            engine_logger.log_scope_warning(
                persona.name,
                unavailable=result.unavailable,
                unrecognized=result.unrecognized,
                degraded=result.degraded
            )

        return result

    def is_available(self, tool: str, index: CapabilityIndex) -> bool:
        """Whether a declared tool name is served by the index"""

        if "/" not in tool:
            return tool in index.exposed_capabilities()

        # <namespace>/<connector>/<capability>, <connector>/<capability> or <connector>/*
        segments = tool.split("/")
        connector_id, capability = segments[-2], segments[-1]
        if not index.has_connector(connector_id):
            return False
        if capability == "*":
            return True
        return capability in index.capabilities_of(connector_id)

    def is_recognized(self, tool: str, index: CapabilityIndex) -> bool:
        """Whether a tool name belongs to the known vocabulary"""

        if "/" in tool:
            return all(tool.split("/"))
        return tool in self.builtin_tools
