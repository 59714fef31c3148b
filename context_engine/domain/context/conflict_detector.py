"""
Directive conflict detection across bundle layers.

A layer asserts a setting either through a structured Directive (instruction
rules with `setting`/`value`) or through a marker line in its content:

    @set string-quote-style = single
    - @set indentation: 2 spaces

Setting names compare case-insensitively with spaces and underscores folded
to hyphens; values compare case-insensitively after trimming. When layers
disagree the assertion from the highest priority layer is authoritative, and
within one priority the later layer wins.
"""

from typing import Dict, List, Optional, Tuple, Iterable
import re
import structlog

from context_engine.domain.models.primitives import Directive
from context_engine.domain.models.bundle import Layer, LayerRef, DirectiveConflict

logger = structlog.get_logger(__name__)

SETTING_MARKER = re.compile(
    r"^[ \t]*(?:[-*+][ \t]+)?@set[ \t]+(?P<setting>[^=:\n]+?)[ \t]*[=:][ \t]*(?P<value>[^\n]*?)[ \t]*$",
    re.MULTILINE
)

LayerKey = Tuple[str, str]


def normalize_setting(setting: str) -> str:
    return re.sub(r"[\s_]+", "-", setting.strip().lower())


def normalize_value(value: str) -> str:
    return value.strip().strip("'\"`").strip().lower()


def extract_directives(content: str) -> List[Directive]:
    """Find setting markers in free-form layer content"""

    return [
        Directive(text=match.group(0).strip(), setting=match.group("setting"), value=match.group("value"))
        for match in SETTING_MARKER.finditer(content)
        if match.group("value")
    ]


def layer_key(layer: Layer) -> LayerKey:
    return (layer.source.value, layer.identifier)


class ConflictDetector:
    """Finds layers asserting incompatible values for the same setting"""

    def detect(
        self,
        layers: List[Layer],
        declared: Optional[Dict[LayerKey, Iterable[Directive]]] = None
    ) -> List[DirectiveConflict]:
        """Detect conflicts; layers must already be in bundle order"""

        declared = declared or {}
        # setting -> [(rank, layer, raw value)]
        assertions: Dict[str, List[Tuple[Tuple[int, int, int], Layer, str]]] = {}

        for position, layer in enumerate(layers):
            directives = list(declared.get(layer_key(layer), [])) + extract_directives(layer.content)
            for order, directive in enumerate(directives):
                if not directive.setting or directive.value is None:
                    continue
                rank = (int(layer.priority), position, order)
                assertions.setdefault(normalize_setting(directive.setting), []).append(
                    (rank, layer, directive.value.strip())
                )

        conflicts = []
        for setting in sorted(assertions):
            entries = assertions[setting]
            if len({normalize_value(value) for _, _, value in entries}) < 2:
                continue
            conflicts.append(self._build_conflict(setting, entries))

        if conflicts:
            logger.info("Detected directive conflicts", settings=[c.setting for c in conflicts])

        return conflicts

    def _build_conflict(
        self,
        setting: str,
        entries: List[Tuple[Tuple[int, int, int], Layer, str]]
    ) -> DirectiveConflict:
        refs: List[LayerRef] = []
        seen = set()
        for _, layer, value in sorted(entries, key=lambda entry: entry[0]):
            key = layer_key(layer) + (normalize_value(value),)
            if key in seen:
                continue
            seen.add(key)
            refs.append(self._ref(layer, value))

        _, winner_layer, winner_value = max(entries, key=lambda entry: entry[0])
        authoritative = self._ref(winner_layer, winner_value)

        others = ", ".join(
            f"{ref.source.value}:{ref.identifier}={ref.value!r}" for ref in refs
        )
        return DirectiveConflict(
            setting=setting,
            layers=refs,
            authoritative=authoritative,
            description=(
                f"Layers disagree on '{setting}' ({others}); "
                f"{authoritative.source.value}:{authoritative.identifier} "
                f"(priority {int(authoritative.priority)}) is authoritative with {authoritative.value!r}"
            )
        )

    @staticmethod
    def _ref(layer: Layer, value: str) -> LayerRef:
        return LayerRef(
            source=layer.source,
            identifier=layer.identifier,
            priority=layer.priority,
            value=value
        )
