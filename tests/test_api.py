"""Tests for the HTTP surface."""
import json

import pytest
from fastapi.testclient import TestClient

from context_engine.application.api.api_server import create_app
from context_engine.domain.context.precedence_resolver import PrecedenceResolver
from context_engine.domain.context.trigger_matcher import TriggerMatcher
from context_engine.domain.registry.capability_index import CapabilityIndexProvider
from context_engine.domain.registry.primitive_registry import PrimitiveRegistry
from context_engine.infrastructure.loader.manifest_watcher import ManifestWatcher


@pytest.fixture
def client(resolver):
    return TestClient(create_app(resolver))


class TestResolve:
    def test_theme_toggle(self, client):
        response = client.post("/api/v1/context/resolve", json={"free_text": "how do I test the theme toggle"})
        assert response.status_code == 200
        bundle = response.json()["bundle"]
        assert [(layer["source"], layer["identifier"], layer["priority"]) for layer in bundle["layers"]] == [
            ("instruction", "copilot-instructions", 0),
            ("skill", "unit-testing", 1),
        ]
        assert bundle["effective_tools"] == ["read", "search"]

    def test_invalid_parameter_is_422(self, client):
        response = client.post("/api/v1/context/resolve", json={
            "free_text": "",
            "prompt_invocation": {"name": "blueprint-generator", "parameters": {"DEPTH_LEVEL": "Extreme"}},
        })
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["error_type"] == "invalid_parameter_value"
        assert error["parameter"] == "DEPTH_LEVEL"
        assert error["allowed_values"] == ["Basic", "Standard", "Comprehensive", "Implementation-Ready"]
        assert "bundle" not in response.json()

    def test_unknown_persona_is_404(self, client):
        response = client.post("/api/v1/context/resolve", json={"persona_invocation": "ghost"})
        assert response.status_code == 404
        assert response.json()["error"]["error_type"] == "unknown_persona"

    def test_scope_warning_is_returned(self, client):
        response = client.post("/api/v1/context/resolve", json={"persona_invocation": "green-coding-optimizer"})
        assert response.status_code == 200
        conflicts = response.json()["bundle"]["conflicts"]
        assert conflicts[0]["kind"] == "scope_violation"
        assert conflicts[0]["unavailable_tools"] == ["azure/azure-mcp/search", "edit"]

    def test_persona_suggestions(self, client):
        response = client.post("/api/v1/context/resolve", json={"free_text": "check energy efficiency"})
        assert response.json()["suggested_personas"] == ["green-coding-optimizer"]

    def test_suggestions_and_bundle_share_snapshot(self, registry, records, capability_provider):
        replacement = dict(records, agents=[], skills=[])

        class ReloadingMatcher(TriggerMatcher):
            def suggest_personas(self, *args, **kwargs):
                suggested = super().suggest_personas(*args, **kwargs)
                registry.load(replacement)
                return suggested

        resolver = PrecedenceResolver(registry, capability_provider, trigger_matcher=ReloadingMatcher())
        client = TestClient(create_app(resolver))
        body = client.post("/api/v1/context/resolve", json={"free_text": "test energy efficiency"}).json()

        assert body["suggested_personas"] == ["green-coding-optimizer"]
        assert body["bundle"]["snapshot_version"] == 1
        assert [layer["identifier"] for layer in body["bundle"]["layers"]] == ["copilot-instructions", "unit-testing"]
        assert registry.current().version == 2

    def test_not_loaded_is_503(self):
        client = TestClient(create_app(PrecedenceResolver()))
        response = client.post("/api/v1/context/resolve", json={"free_text": "x"})
        assert response.status_code == 503


class TestRegistryRoutes:
    def test_summary(self, client):
        body = client.get("/api/v1/registry").json()
        assert body["registry"]["prompts"] == ["blueprint-generator", "component-generator"]
        assert body["capabilities"]["connectors"] == {"builtin": ["read", "search"]}

    def test_reload_without_manifest(self, client):
        assert client.post("/api/v1/registry/reload").status_code == 409

    def test_reload_from_manifest(self, tmp_path, records):
        path = tmp_path / "manifest.json"
        path.write_text(json.dumps(dict(records, connectors={"builtin": ["read"]})), encoding="utf-8")
        registry = PrimitiveRegistry()
        provider = CapabilityIndexProvider()
        watcher = ManifestWatcher(path, registry, provider)
        client = TestClient(create_app(PrecedenceResolver(registry, provider), watcher))

        response = client.post("/api/v1/registry/reload")
        assert response.status_code == 200
        assert response.json()["loaded"]["skill"] == 3
        assert client.get("/health").json()["snapshot_version"] == 1

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["timestamp"].endswith(("Z", "+00:00"))
        assert body["status"] == "healthy"
        assert body["snapshot_version"] == 1

    def test_reload_of_undecodable_manifest_is_400(self, tmp_path):
        path = tmp_path / "manifest.json"
        path.write_bytes(b'{"instructions": ["\xff\xfe bad"]}')
        watcher = ManifestWatcher(path, PrimitiveRegistry(), CapabilityIndexProvider())
        client = TestClient(create_app(PrecedenceResolver(watcher.registry, watcher.capability_provider), watcher))

        response = client.post("/api/v1/registry/reload")
        assert response.status_code == 400
        assert response.json()["error"]["error_type"] == "manifest_error"
