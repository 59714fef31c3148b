from typing import Optional, Union
from pathlib import Path
import asyncio
import structlog

from context_engine.domain.registry.primitive_registry import PrimitiveRegistry, LoadReport
from context_engine.domain.registry.capability_index import CapabilityIndexProvider
from context_engine.domain.models.errors import ContextEngineError
from .manifest_source import load_manifest

logger = structlog.get_logger(__name__)


class ManifestWatcher:
    """Reloads the registry and capability index when the manifest changes"""

    def __init__(
        self,
        path: Union[str, Path],
        registry: PrimitiveRegistry,
        capability_provider: CapabilityIndexProvider,
        poll_interval: float = 2.0
    ):
        self.path = Path(path)
        self.registry = registry
        self.capability_provider = capability_provider
        self.poll_interval = poll_interval
        self._last_mtime: Optional[float] = None

    def reload(self) -> LoadReport:
        """Load the manifest and swap both snapshots"""

        manifest = load_manifest(self.path)
        report = self.registry.load(manifest.records())
        self.capability_provider.replace(manifest.connectors)
        self._last_mtime = self._mtime()
        return report

    def check(self) -> Optional[LoadReport]:
        """Reload if the manifest changed since the last load"""

        mtime = self._mtime()
        if mtime is None or mtime == self._last_mtime:
            return None

        try:
            return self.reload()
        except ContextEngineError as e:
            # Keep serving the previous snapshot
            self._last_mtime = mtime
            logger.error("Manifest reload failed", path=str(self.path), error=str(e))
            return None

    async def watch(self):
        """Poll the manifest for changes until cancelled"""

        logger.info("Watching manifest", path=str(self.path), interval=self.poll_interval)
        while True:
            try:
                self.check()
            except Exception as e:
                logger.error("Manifest watch iteration failed", path=str(self.path), error=str(e))
            await asyncio.sleep(self.poll_interval)

    def _mtime(self) -> Optional[float]:
        try:
            return self.path.stat().st_mtime
        except FileNotFoundError:
            return None
