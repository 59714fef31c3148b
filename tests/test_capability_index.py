"""Tests for the capability index and its provider."""
import asyncio
from datetime import timedelta

from context_engine.domain.registry.capability_index import CapabilityIndex, CapabilityIndexProvider


class TestCapabilityIndex:
    def test_union_of_connectors(self):
        index = CapabilityIndex.from_mapping({"github": ["issues", "search"], "builtin": ["read", "search"]})
        assert index.exposed_capabilities() == frozenset({"issues", "read", "search"})
        assert [c.id for c in index.connectors] == ["builtin", "github"]
        assert index.capabilities_of("github") == frozenset({"issues", "search"})
        assert index.capabilities_of("missing") == frozenset()

    def test_empty(self):
        assert CapabilityIndex().exposed_capabilities() == frozenset()

    def test_created_at_is_timezone_aware(self):
        assert CapabilityIndex().created_at.utcoffset() == timedelta(0)


class TestProvider:
    def test_replace_bumps_version(self):
        provider = CapabilityIndexProvider()
        old = provider.current()
        new = provider.replace({"builtin": ["read"]})
        assert new.version == old.version + 1
        assert provider.current() is new
        assert old.exposed_capabilities() == frozenset()

    def test_refresh(self):
        provider = CapabilityIndexProvider()

        async def fetch():
            return {"azure-mcp": ["search"]}

        assert asyncio.run(provider.refresh(fetch, timeout=1.0))
        assert provider.current().has_connector("azure-mcp")

    def test_refresh_timeout_keeps_previous(self):
        provider = CapabilityIndexProvider(CapabilityIndex.from_mapping({"builtin": ["read"]}))
        previous = provider.current()

        async def slow_fetch():
            await asyncio.sleep(1)
            return {}

        assert not asyncio.run(provider.refresh(slow_fetch, timeout=0.01))
        assert provider.current() is previous

    def test_refresh_error_keeps_previous(self):
        provider = CapabilityIndexProvider()
        previous = provider.current()

        async def broken_fetch():
            raise ConnectionError("connector layer offline")

        assert not asyncio.run(provider.refresh(broken_fetch))
        assert provider.current() is previous
