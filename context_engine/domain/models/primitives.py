from typing import Dict, List, Optional, FrozenSet, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum


class PrimitiveKind(str, Enum):
    """Kinds of declared context primitives"""
    INSTRUCTION = "instruction"
    PROMPT = "prompt"
    AGENT = "agent"
    SKILL = "skill"
    CONNECTOR = "connector"


class Directive(BaseModel):
    """A single rule statement, optionally pinning a named setting"""
    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Directive statement")
    tags: List[str] = Field(default_factory=list, description="Semantic tags (style, structure, routing)")
    setting: Optional[str] = Field(None, description="Named setting this directive constrains")
    value: Optional[str] = Field(None, description="Value asserted for the setting")


class InstructionDocument(BaseModel):
    """Always-on instructions injected as the base layer"""
    model_config = ConfigDict(frozen=True)

    name: Optional[str] = Field(None, description="Identifier, assigned by the registry when absent")
    scope: str = Field(default="global")
    rules: List[Directive] = Field(default_factory=list)

    @field_validator("rules", mode="before")
    @classmethod
    def _coerce_rules(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [{"text": rule} if isinstance(rule, str) else rule for rule in value]
        return value

    @field_validator("scope")
    @classmethod
    def _global_scope(cls, value: str) -> str:
        if value != "global":
            raise ValueError(f"unsupported instruction scope '{value}'")
        return value

    @property
    def content(self) -> str:
        return "\n".join(rule.text for rule in self.rules)


class ParameterDeclaration(BaseModel):
    """Declaration of a single prompt template parameter"""
    model_config = ConfigDict(frozen=True)

    required: bool = False
    allowed_values: Optional[List[str]] = Field(None, description="Allowed values, None when unrestricted")
    default: Optional[str] = None

    @property
    def restricted(self) -> bool:
        return self.allowed_values is not None


class PromptTemplate(BaseModel):
    """On-demand task template with declared parameters"""
    model_config = ConfigDict(frozen=True)

    name: str
    description: Optional[str] = None
    parameters: Dict[str, ParameterDeclaration] = Field(default_factory=dict)
    body: str


class AgentPersona(BaseModel):
    """Specialized persona with an advisory tool scope"""
    model_config = ConfigDict(frozen=True)

    name: str
    description: Optional[str] = None
    declared_tools: List[str] = Field(default_factory=list)
    expertise_topics: List[str] = Field(default_factory=list)
    body: str


class SkillDocument(BaseModel):
    """On-demand reference content selected by trigger topics"""
    model_config = ConfigDict(frozen=True)

    name: str
    description: Optional[str] = None
    trigger_topics: List[str] = Field(default_factory=list)
    body: str


class ConnectorDescriptor(BaseModel):
    """External tool connector and the capabilities it exposes"""
    model_config = ConfigDict(frozen=True)

    id: str
    exposed_capabilities: FrozenSet[str] = Field(default_factory=frozenset)
