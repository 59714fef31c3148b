from typing import Dict, List, Any, Mapping
import re
import structlog

from context_engine.domain.models.primitives import PromptTemplate
from context_engine.domain.models.errors import (
    MissingRequiredParameter, InvalidParameterValue, UnknownParameter
)

logger = structlog.get_logger(__name__)

# ${NAME}, ${input:NAME} or ${input:NAME:hint}
PLACEHOLDER_PATTERN = re.compile(
    r"\$\{(?:input:)?(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::[^}]*)?\}"
)


def find_placeholders(body: str) -> List[str]:
    """List placeholder names in order of first appearance"""

    names: List[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(body):
        name = match.group("name")
        if name not in names:
            names.append(name)
    return names


def render_value(value: Any) -> str:
    """Render a supplied parameter value as template text"""

    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


class TemplateBinder:
    """Validates and substitutes parameters for an invoked prompt template"""

    def bind(self, template: PromptTemplate, supplied: Mapping[str, Any]) -> str:
        """Bind supplied parameters into the template body"""

        unknown = [name for name in supplied if name not in template.parameters]
        if unknown:
            raise UnknownParameter(template.name, unknown)

        values = self.resolve_values(template, supplied)

        # Single pass; substituted text is never rescanned
        bound = PLACEHOLDER_PATTERN.sub(
            lambda match: values.get(match.group("name"), match.group(0)),
            template.body
        )

        logger.debug("Bound prompt template", template=template.name, parameters=sorted(values))
        return bound

    def resolve_values(self, template: PromptTemplate, supplied: Mapping[str, Any]) -> Dict[str, str]:
        """Validate supplied values and fill in defaults, in declaration order"""

        values: Dict[str, str] = {}
        for name, declaration in template.parameters.items():
            if name in supplied:
                value = render_value(supplied[name])
                if declaration.restricted and value not in declaration.allowed_values:
                    raise InvalidParameterValue(
                        template.name, name, value, declaration.allowed_values
                    )
                values[name] = value
            elif declaration.required:
                raise MissingRequiredParameter(template.name, name)
            else:
                values[name] = declaration.default if declaration.default is not None else ""
        return values
