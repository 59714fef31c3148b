from typing import Dict, List, Any, Optional, Tuple, Type, Callable, Union
from datetime import datetime, timezone
import threading
import structlog
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError

from context_engine.domain.models.primitives import (
    PrimitiveKind, InstructionDocument, PromptTemplate, AgentPersona, SkillDocument
)
from context_engine.domain.models.errors import LoadError, WorkspaceLoadError, RegistryNotLoaded
from context_engine.domain.context.template_binder import find_placeholders
from context_engine.infrastructure.observability.logging import engine_logger, metrics

logger = structlog.get_logger(__name__)


class RegistryRecords(BaseModel):
    """Pre-parsed primitive records handed over by the external loader"""
    instructions: List[Any] = Field(default_factory=list)
    prompts: List[Any] = Field(default_factory=list)
    agents: List[Any] = Field(default_factory=list)
    skills: List[Any] = Field(default_factory=list)


class LoadReport(BaseModel):
    """Outcome of a registry (re)load"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    version: int
    loaded: Dict[str, int] = Field(default_factory=dict)
    errors: List[LoadError] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "loaded": self.loaded,
            "errors": [error.to_dict() for error in self.errors]
        }


class RegistrySnapshot(BaseModel):
    """Immutable view of every primitive loaded for a workspace"""
    model_config = ConfigDict(frozen=True)

    version: int
    loaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    instructions: Tuple[InstructionDocument, ...] = ()
    prompts: Tuple[PromptTemplate, ...] = ()
    agents: Tuple[AgentPersona, ...] = ()
    skills: Tuple[SkillDocument, ...] = ()

    _prompts: Dict[str, PromptTemplate] = PrivateAttr(default_factory=dict)
    _agents: Dict[str, AgentPersona] = PrivateAttr(default_factory=dict)
    _skills: Dict[str, SkillDocument] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        self._prompts = {prompt.name: prompt for prompt in self.prompts}
        self._agents = {agent.name: agent for agent in self.agents}
        self._skills = {skill.name: skill for skill in self.skills}

    def prompt(self, name: str) -> Optional[PromptTemplate]:
        return self._prompts.get(name)

    def persona(self, name: str) -> Optional[AgentPersona]:
        return self._agents.get(name)

    def skill(self, name: str) -> Optional[SkillDocument]:
        return self._skills.get(name)

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the snapshot"""
        return {
            "version": self.version,
            "loaded_at": self.loaded_at.isoformat(),
            "instructions": [doc.name for doc in self.instructions],
            "prompts": sorted(self._prompts),
            "agents": sorted(self._agents),
            "skills": sorted(self._skills)
        }


def _describe(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in item['loc']) or 'record'}: {item['msg']}"
        for item in error.errors()
    )


def _identifier(raw: Any) -> Optional[str]:
    if isinstance(raw, BaseModel):
        return getattr(raw, "name", None)
    if isinstance(raw, dict):
        name = raw.get("name")
        return name if isinstance(name, str) else None
    return None


def validate_prompt(prompt: PromptTemplate) -> None:
    """Check placeholder and default invariants of a prompt template"""

    undeclared = [name for name in find_placeholders(prompt.body) if name not in prompt.parameters]
    if undeclared:
        raise ValueError(f"body references undeclared parameter(s): {', '.join(undeclared)}")

    for name, declaration in prompt.parameters.items():
        if (
            declaration.restricted
            and declaration.default is not None
            and declaration.default not in declaration.allowed_values
        ):
            raise ValueError(
                f"default '{declaration.default}' of parameter '{name}' is not an allowed value"
            )


class PrimitiveRegistry:
    """Holds the current immutable snapshot of declared primitives"""

    def __init__(self):
        self._snapshot: Optional[RegistrySnapshot] = None
        self._version = 0
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._snapshot is not None

    def current(self) -> RegistrySnapshot:
        """Get the current snapshot"""

        snapshot = self._snapshot
        if snapshot is None:
            raise RegistryNotLoaded()
        return snapshot

    def load(self, records: Union[RegistryRecords, Dict[str, Any]]) -> LoadReport:
        """Load a new snapshot, skipping malformed non-base primitives"""

        if not isinstance(records, RegistryRecords):
            records = RegistryRecords.model_validate(records)

        instructions, instruction_errors = self._load_instructions(records.instructions)
        if instruction_errors:
            for error in instruction_errors:
                engine_logger.log_load_error(error, fatal=True)
            metrics.increment_counter("registry.load_errors", len(instruction_errors))
            raise WorkspaceLoadError(instruction_errors)

        errors: List[LoadError] = []
        prompts = self._load_named(records.prompts, PromptTemplate, PrimitiveKind.PROMPT, errors, validate_prompt)
        agents = self._load_named(records.agents, AgentPersona, PrimitiveKind.AGENT, errors)
        skills = self._load_named(records.skills, SkillDocument, PrimitiveKind.SKILL, errors)

        for error in errors:
            engine_logger.log_load_error(error, fatal=False)
        if errors:
            metrics.increment_counter("registry.load_errors", len(errors))

        if not instructions:
            logger.warning("Workspace has no instruction documents")

        # Writers serialize; readers pick up the new reference atomically
        with self._lock:
            self._version += 1
            snapshot = RegistrySnapshot(
                version=self._version,
                instructions=tuple(instructions),
                prompts=tuple(prompts),
                agents=tuple(agents),
                skills=tuple(skills)
            )
            self._snapshot = snapshot

        report = LoadReport(
            version=snapshot.version,
            loaded={
                PrimitiveKind.INSTRUCTION.value: len(instructions),
                PrimitiveKind.PROMPT.value: len(prompts),
                PrimitiveKind.AGENT.value: len(agents),
                PrimitiveKind.SKILL.value: len(skills)
            },
            errors=errors
        )
        engine_logger.log_reload(report.version, report.loaded, len(errors))
        return report

    def _load_instructions(self, raw_records: List[Any]) -> Tuple[List[InstructionDocument], List[LoadError]]:
        documents: List[InstructionDocument] = []
        errors: List[LoadError] = []
        seen = set()

        for index, raw in enumerate(raw_records, start=1):
            try:
                document = InstructionDocument.model_validate(raw)
            except ValidationError as e:
                errors.append(LoadError(PrimitiveKind.INSTRUCTION.value, _identifier(raw), _describe(e)))
                continue

            if document.name is None:
                document = document.model_copy(update={"name": f"instructions-{index}"})
            if document.name in seen:
                errors.append(LoadError(PrimitiveKind.INSTRUCTION.value, document.name, "duplicate name"))
                continue

            seen.add(document.name)
            documents.append(document)

        return documents, errors

    def _load_named(
        self,
        raw_records: List[Any],
        model: Type[BaseModel],
        kind: PrimitiveKind,
        errors: List[LoadError],
        validate: Optional[Callable[[Any], None]] = None
    ) -> List[Any]:
        loaded: List[Any] = []
        seen = set()

        for raw in raw_records:
            try:
                record = model.model_validate(raw)
                if validate:
                    validate(record)
            except ValidationError as e:
                errors.append(LoadError(kind.value, _identifier(raw), _describe(e)))
                continue
            except ValueError as e:
                errors.append(LoadError(kind.value, _identifier(raw), str(e)))
                continue

            if record.name in seen:
                errors.append(LoadError(kind.value, record.name, "duplicate name"))
                continue

            seen.add(record.name)
            loaded.append(record)

        return loaded
