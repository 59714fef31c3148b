"""
Manifest source - reads pre-parsed primitive records from a JSON manifest

Expected layout:

    {
      "instructions": [{"name": "...", "rules": ["...", {"text": "...", "setting": "...", "value": "..."}]}],
      "prompts": [{"name": "...", "parameters": {"X": {"required": true}}, "body": "${X}"}],
      "agents": [{"name": "...", "declared_tools": ["read"], "body": "..."}],
      "skills": [{"name": "...", "trigger_topics": ["..."], "body": "..."}],
      "connectors": {"builtin": ["read", "search"]}
    }

Document syntax (front-matter, markdown) is parsed upstream; this module only
reads the already-typed records.
"""

from typing import Dict, List, Any, Union
from pathlib import Path
import json
import structlog
from pydantic import BaseModel, Field, ValidationError

from context_engine.domain.registry.primitive_registry import RegistryRecords
from context_engine.domain.models.errors import ContextEngineError

logger = structlog.get_logger(__name__)


class ManifestError(ContextEngineError):
    """Manifest file is missing or not valid JSON"""

    error_type = "manifest_error"


class Manifest(BaseModel):
    """Primitive records plus the connector capability map"""
    instructions: List[Any] = Field(default_factory=list)
    prompts: List[Any] = Field(default_factory=list)
    agents: List[Any] = Field(default_factory=list)
    skills: List[Any] = Field(default_factory=list)
    connectors: Dict[str, List[str]] = Field(default_factory=dict)

    def records(self) -> RegistryRecords:
        return RegistryRecords(
            instructions=self.instructions,
            prompts=self.prompts,
            agents=self.agents,
            skills=self.skills
        )


def load_manifest(path: Union[str, Path]) -> Manifest:
    """Read and validate a manifest file"""

    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ManifestError(f"Manifest not found: {path}")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestError(f"Manifest {path} could not be read: {e}")
    except json.JSONDecodeError as e:
        raise ManifestError(f"Manifest {path} is not valid JSON: {e}")

    if not isinstance(raw, dict):
        raise ManifestError(f"Manifest {path} must contain a JSON object")

    try:
        manifest = Manifest.model_validate(raw)
    except ValidationError as e:
        raise ManifestError(f"Manifest {path} has an invalid layout: {e}")

    logger.info(
        "Manifest read",
        path=str(path),
        instructions=len(manifest.instructions),
        prompts=len(manifest.prompts),
        agents=len(manifest.agents),
        skills=len(manifest.skills),
        connectors=len(manifest.connectors)
    )
    return manifest
