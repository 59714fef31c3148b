from typing import Dict, Any, Optional, Iterable, Mapping, FrozenSet, Tuple, Callable, Awaitable
from datetime import datetime, timezone
import asyncio
import threading
import structlog

from context_engine.domain.models.primitives import ConnectorDescriptor
from context_engine.infrastructure.config.settings import get_settings

logger = structlog.get_logger(__name__)

CapabilityFetcher = Callable[[], Awaitable[Mapping[str, Iterable[str]]]]


class CapabilityIndex:
    """Point-in-time map of connector ids to the capabilities they expose"""

    def __init__(self, connectors: Optional[Iterable[ConnectorDescriptor]] = None, version: int = 0):
        self.version = version
        self.created_at = datetime.now(timezone.utc)
        self._connectors: Dict[str, ConnectorDescriptor] = {
            connector.id: connector for connector in (connectors or [])
        }
        exposed = set()
        for connector in self._connectors.values():
            exposed.update(connector.exposed_capabilities)
        self._exposed: FrozenSet[str] = frozenset(exposed)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Iterable[str]], version: int = 0) -> "CapabilityIndex":
        """Build an index from {connector_id: capabilities}"""

        return cls(
            [
                ConnectorDescriptor(id=connector_id, exposed_capabilities=frozenset(capabilities))
                for connector_id, capabilities in mapping.items()
            ],
            version=version
        )

    @property
    def connectors(self) -> Tuple[ConnectorDescriptor, ...]:
        return tuple(self._connectors[key] for key in sorted(self._connectors))

    def has_connector(self, connector_id: str) -> bool:
        return connector_id in self._connectors

    def capabilities_of(self, connector_id: str) -> FrozenSet[str]:
        connector = self._connectors.get(connector_id)
        return connector.exposed_capabilities if connector else frozenset()

    def exposed_capabilities(self) -> FrozenSet[str]:
        """Union of capabilities across all connectors"""
        return self._exposed

    def get_summary(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "connectors": {
                connector.id: sorted(connector.exposed_capabilities)
                for connector in self.connectors
            }
        }


class CapabilityIndexProvider:
    """Holds the current capability index and swaps it on refresh"""

    def __init__(self, index: Optional[CapabilityIndex] = None):
        self._index = index or CapabilityIndex()
        self._lock = threading.Lock()

    def current(self) -> CapabilityIndex:
        return self._index

    def replace(self, mapping: Mapping[str, Iterable[str]]) -> CapabilityIndex:
        """Replace the index wholesale"""

        with self._lock:
            index = CapabilityIndex.from_mapping(mapping, version=self._index.version + 1)
            self._index = index

        logger.info("Capability index replaced", version=index.version, connectors=len(index.connectors))
        return index

    async def refresh(self, fetcher: CapabilityFetcher, timeout: Optional[float] = None) -> bool:
        """Refresh from the connector layer; keeps the previous index on failure"""

        if timeout is None:
            timeout = get_settings().capability_refresh_timeout
        try:
            mapping = await asyncio.wait_for(fetcher(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Capability refresh timed out", timeout=timeout, version=self._index.version)
            return False
        except Exception as e:
            logger.error("Capability refresh failed", error=str(e), version=self._index.version)
            return False

        self.replace(mapping)
        return True
