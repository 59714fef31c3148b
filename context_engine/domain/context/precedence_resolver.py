from typing import Dict, List, Optional
import asyncio
import time
import uuid
import structlog

from context_engine.domain.models.primitives import PrimitiveKind, Directive
from context_engine.domain.models.bundle import (
    ContextBundle, Layer, LayerPriority, ResolutionRequest, BundleWarning
)
from context_engine.domain.models.errors import (
    ResolutionError, BindingError, UnknownPrompt, UnknownPersona, ResolutionCancelled
)
from context_engine.domain.registry.primitive_registry import PrimitiveRegistry, RegistrySnapshot
from context_engine.domain.registry.capability_index import CapabilityIndexProvider, CapabilityIndex
from context_engine.infrastructure.observability.logging import engine_logger, metrics
from .trigger_matcher import TriggerMatcher
from .template_binder import TemplateBinder
from .scope_enforcer import ScopeEnforcer
from .conflict_detector import ConflictDetector, LayerKey, layer_key

logger = structlog.get_logger(__name__)


class CancellationToken:
    """Cooperative cancellation flag checked between pipeline stages"""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class PrecedenceResolver:
    """Composes registry primitives into an ordered context bundle"""

    def __init__(
        self,
        registry: Optional[PrimitiveRegistry] = None,
        capability_provider: Optional[CapabilityIndexProvider] = None,
        trigger_matcher: Optional[TriggerMatcher] = None,
        template_binder: Optional[TemplateBinder] = None,
        scope_enforcer: Optional[ScopeEnforcer] = None,
        conflict_detector: Optional[ConflictDetector] = None
    ):
        self.registry = registry or PrimitiveRegistry()
        self.capability_provider = capability_provider or CapabilityIndexProvider()
        self.trigger_matcher = trigger_matcher or TriggerMatcher()
        self.template_binder = template_binder or TemplateBinder()
        self.scope_enforcer = scope_enforcer or ScopeEnforcer()
        self.conflict_detector = conflict_detector or ConflictDetector()

    async def resolve(
        self,
        request: ResolutionRequest,
        cancellation: Optional[CancellationToken] = None,
        snapshot: Optional[RegistrySnapshot] = None
    ) -> ContextBundle:
        """Resolve a request against a pinned registry snapshot, the current one by default"""

        # Pin both snapshots for the whole resolution
        if snapshot is None:
            snapshot = self.registry.current()
        index = self.capability_provider.current()
        token = cancellation or CancellationToken()
        started = time.perf_counter()

        structlog.contextvars.bind_contextvars(request_id=uuid.uuid4().hex[:12])
        try:
            bundle = await self._run_pipeline(request, snapshot, index, token)
        except ResolutionError as e:
            if isinstance(e, BindingError):
                metrics.increment_counter("resolution.binding_failed")
            engine_logger.log_resolution(snapshot.version, 0, 0, success=False, error=e.error_type)
            raise
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        duration_ms = (time.perf_counter() - started) * 1000
        metrics.record_latency("resolve", duration_ms)
        metrics.increment_counter("resolution.completed")
        engine_logger.log_resolution(
            snapshot.version,
            len(bundle.layers),
            len(bundle.conflicts),
            duration_ms=duration_ms
        )
        return bundle

    async def _run_pipeline(
        self,
        request: ResolutionRequest,
        snapshot: RegistrySnapshot,
        index: CapabilityIndex,
        token: CancellationToken
    ) -> ContextBundle:
        layers: List[Layer] = []
        warnings: List[BundleWarning] = []
        declared: Dict[LayerKey, List[Directive]] = {}

        # Base layer
        await self._checkpoint("base", token)
        for document in snapshot.instructions:
            layer = Layer(
                source=PrimitiveKind.INSTRUCTION,
                identifier=document.name,
                priority=LayerPriority.BASE,
                content=document.content
            )
            layers.append(layer)
            declared[layer_key(layer)] = list(document.rules)

        # Topic layer
        await self._checkpoint("topic", token)
        matched = self.trigger_matcher.match(
            request.free_text,
            snapshot,
            limit=request.skill_limit,
            all_matches=request.all_skill_matches
        )
        for name in matched:
            skill = snapshot.skill(name)
            layers.append(Layer(
                source=PrimitiveKind.SKILL,
                identifier=skill.name,
                priority=LayerPriority.TOPIC,
                content=skill.body
            ))

        # Task layer, aborts on binding failure
        await self._checkpoint("task", token)
        if request.prompt_invocation is not None:
            invocation = request.prompt_invocation
            template = snapshot.prompt(invocation.name)
            if template is None:
                raise UnknownPrompt(invocation.name)
            bound = self.template_binder.bind(template, invocation.parameters)
            layers.append(Layer(
                source=PrimitiveKind.PROMPT,
                identifier=template.name,
                priority=LayerPriority.TASK,
                content=bound
            ))

        # Persona layer
        await self._checkpoint("persona", token)
        if request.persona_invocation is not None:
            persona = snapshot.persona(request.persona_invocation)
            if persona is None:
                raise UnknownPersona(request.persona_invocation)
            scope = self.scope_enforcer.enforce(persona, index)
            layers.append(Layer(
                source=PrimitiveKind.AGENT,
                identifier=persona.name,
                priority=LayerPriority.PERSONA,
                content=persona.body
            ))
            effective_tools = scope.effective_tools
            violation = scope.to_violation()
            if violation is not None:
                warnings.append(violation)
        else:
            effective_tools = sorted(index.exposed_capabilities())

        # Stable sort keeps declaration and rank order within a priority
        layers.sort(key=lambda layer: int(layer.priority))

        await self._checkpoint("conflicts", token)
        conflicts = self.conflict_detector.detect(layers, declared)

        return ContextBundle(
            layers=layers,
            conflicts=warnings + list(conflicts),
            effective_tools=effective_tools,
            snapshot_version=snapshot.version
        )

    async def _checkpoint(self, stage: str, token: CancellationToken):
        """Yield to the loop and honour cancellation before a stage"""

        await asyncio.sleep(0)
        if token.cancelled:
            logger.info("Resolution cancelled", stage=stage)
            raise ResolutionCancelled(stage)
