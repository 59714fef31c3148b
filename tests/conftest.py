"""
Shared fixtures: a small workspace modelled on a typical agent customization repo.
"""
import asyncio
import copy

import pytest

from context_engine.domain.context.precedence_resolver import PrecedenceResolver
from context_engine.domain.models.bundle import ResolutionRequest
from context_engine.domain.registry.capability_index import CapabilityIndex, CapabilityIndexProvider
from context_engine.domain.registry.primitive_registry import PrimitiveRegistry
from context_engine.infrastructure.config.settings import reset_settings
from context_engine.infrastructure.observability.logging import metrics


DEPTH_LEVELS = ["Basic", "Standard", "Comprehensive", "Implementation-Ready"]
BOOLEAN = ["true", "false"]

BLUEPRINT_BODY = (
    "Generate a technology stack blueprint.\n"
    "Depth: ${DEPTH_LEVEL}\n"
    "Versions: ${INCLUDE_VERSIONS}\n"
    "Licenses: ${INCLUDE_LICENSES}\n"
    "Diagrams: ${INCLUDE_DIAGRAMS}\n"
    "Format: ${OUTPUT_FORMAT}"
)

WORKSPACE = {
    "instructions": [
        {
            "name": "copilot-instructions",
            "rules": [
                {
                    "text": "Use single quotes for strings",
                    "tags": ["style"],
                    "setting": "string-quote-style",
                    "value": "single",
                },
                "Keep components small and focused",
                {"text": "Route testing questions to the testing skill", "tags": ["routing"]},
            ],
        }
    ],
    "prompts": [
        {
            "name": "blueprint-generator",
            "parameters": {
                "DEPTH_LEVEL": {"allowed_values": DEPTH_LEVELS, "default": "Standard"},
                "INCLUDE_VERSIONS": {"allowed_values": BOOLEAN, "default": "true"},
                "INCLUDE_LICENSES": {"allowed_values": BOOLEAN, "default": "false"},
                "INCLUDE_DIAGRAMS": {"allowed_values": BOOLEAN, "default": "true"},
                "OUTPUT_FORMAT": {"allowed_values": ["Markdown", "JSON", "YAML", "HTML"], "default": "Markdown"},
            },
            "body": BLUEPRINT_BODY,
        },
        {
            "name": "component-generator",
            "parameters": {
                "COMPONENT_NAME": {"required": True},
                "STYLE": {"default": "css-modules"},
            },
            "body": "Create the ${input:COMPONENT_NAME:Name of the component} component using ${STYLE}.",
        },
    ],
    "agents": [
        {
            "name": "green-coding-optimizer",
            "declared_tools": ["read", "search", "edit", "azure/azure-mcp/search"],
            "expertise_topics": ["energy efficiency", "performance", "sustainability"],
            "body": "You optimize code for energy efficiency.",
        },
        {
            "name": "style-enforcer",
            "declared_tools": [],
            "expertise_topics": ["style", "lint"],
            "body": "You enforce the house style.\n@set string-quote-style = double",
        },
    ],
    "skills": [
        {
            "name": "unit-testing",
            "trigger_topics": ["testing", "unit test", "jest"],
            "body": "Write Jest unit tests next to the component.",
        },
        {
            "name": "accessibility-audit",
            "trigger_topics": ["accessibility", "aria", "a11y"],
            "body": "Check ARIA roles and keyboard navigation.",
        },
        {
            "name": "git-workflow",
            "trigger_topics": ["git", "commit", "branch"],
            "body": "Use conventional commits on feature branches.",
        },
    ],
}


@pytest.fixture(autouse=True)
def clean_state():
    """Fresh settings and metrics for every test."""
    reset_settings()
    metrics.reset()
    yield
    reset_settings()


@pytest.fixture
def records():
    return copy.deepcopy(WORKSPACE)


@pytest.fixture
def registry(records):
    registry = PrimitiveRegistry()
    registry.load(records)
    return registry


@pytest.fixture
def snapshot(registry):
    return registry.current()


@pytest.fixture
def capability_provider():
    return CapabilityIndexProvider(CapabilityIndex.from_mapping({"builtin": ["read", "search"]}))


@pytest.fixture
def resolver(registry, capability_provider):
    return PrecedenceResolver(registry, capability_provider)


@pytest.fixture
def resolve(resolver):
    """Helper: run one resolution synchronously."""
    def run(**kwargs):
        return asyncio.run(resolver.resolve(ResolutionRequest(**kwargs)))
    return run
