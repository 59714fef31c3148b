"""
Error taxonomy for loading primitives and resolving context bundles.

Load-time problems are collected as LoadError records and reported; only a
malformed InstructionDocument raises. Resolution-time binding problems raise
and abort that single resolution. Scope and directive issues are never raised;
they are attached to the bundle as warnings (see models.bundle).
"""

from typing import Dict, Any, List, Optional, Sequence


class ContextEngineError(Exception):
    """Base error for the context engine"""

    error_type = "context_engine_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error_type": self.error_type, "message": self.message}


class LoadError(ContextEngineError):
    """A primitive record that could not be loaded"""

    error_type = "load_error"

    def __init__(self, kind: str, identifier: Optional[str], message: str):
        super().__init__(f"{kind} '{identifier or '?'}': {message}")
        self.kind = kind
        self.identifier = identifier
        self.reason = message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.error_type,
            "kind": self.kind,
            "identifier": self.identifier,
            "message": self.reason
        }


class WorkspaceLoadError(ContextEngineError):
    """The workspace cannot be loaded because its base instructions are malformed"""

    error_type = "workspace_load_error"

    def __init__(self, errors: List[LoadError]):
        super().__init__(
            "Instruction documents failed to load: "
            + "; ".join(error.message for error in errors)
        )
        self.errors = errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.error_type,
            "message": self.message,
            "errors": [error.to_dict() for error in self.errors]
        }


class RegistryNotLoaded(ContextEngineError):
    """No registry snapshot has been loaded yet"""

    error_type = "registry_not_loaded"

    def __init__(self):
        super().__init__("Primitive registry has not been loaded")


class ResolutionError(ContextEngineError):
    """A resolution request could not produce a bundle"""

    error_type = "resolution_error"


class UnknownPersona(ResolutionError):
    error_type = "unknown_persona"

    def __init__(self, name: str):
        super().__init__(f"Unknown agent persona '{name}'")
        self.name = name


class ResolutionCancelled(ResolutionError):
    error_type = "resolution_cancelled"

    def __init__(self, stage: str):
        super().__init__(f"Resolution cancelled before stage '{stage}'")
        self.stage = stage


class BindingError(ResolutionError):
    """A prompt invocation could not be bound"""

    error_type = "binding_error"

    def __init__(self, message: str, template: str, parameter: Optional[str] = None):
        super().__init__(message)
        self.template = template
        self.parameter = parameter

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["template"] = self.template
        data["parameter"] = self.parameter
        return data


class UnknownPrompt(BindingError):
    error_type = "unknown_prompt"

    def __init__(self, template: str):
        super().__init__(f"Unknown prompt template '{template}'", template)


class MissingRequiredParameter(BindingError):
    error_type = "missing_required_parameter"

    def __init__(self, template: str, parameter: str):
        super().__init__(
            f"Missing required parameter '{parameter}' for prompt '{template}'",
            template,
            parameter
        )


class InvalidParameterValue(BindingError):
    error_type = "invalid_parameter_value"

    def __init__(self, template: str, parameter: str, value: str, allowed_values: Sequence[str]):
        super().__init__(
            f"Invalid value '{value}' for parameter '{parameter}' of prompt '{template}'; "
            f"allowed values: {', '.join(allowed_values)}",
            template,
            parameter
        )
        self.value = value
        self.allowed_values = list(allowed_values)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["value"] = self.value
        data["allowed_values"] = self.allowed_values
        return data


class UnknownParameter(BindingError):
    error_type = "unknown_parameter"

    def __init__(self, template: str, parameters: Sequence[str]):
        names = sorted(parameters)
        super().__init__(
            f"Unknown parameter(s) {', '.join(repr(n) for n in names)} for prompt '{template}'",
            template,
            names[0]
        )
        self.parameters = names

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["parameters"] = self.parameters
        return data
