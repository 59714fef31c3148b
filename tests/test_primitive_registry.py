"""Tests for the primitive registry and its snapshots."""
from datetime import timedelta

import pytest
from pydantic import ValidationError

from context_engine.domain.models.errors import RegistryNotLoaded, WorkspaceLoadError
from context_engine.domain.models.primitives import Directive
from context_engine.domain.registry.primitive_registry import PrimitiveRegistry
from context_engine.infrastructure.observability.logging import metrics


class TestLoad:
    def test_loads_every_kind(self, registry):
        snapshot = registry.current()
        assert snapshot.version == 1
        assert [doc.name for doc in snapshot.instructions] == ["copilot-instructions"]
        assert snapshot.prompt("blueprint-generator") is not None
        assert snapshot.persona("green-coding-optimizer") is not None
        assert snapshot.skill("unit-testing") is not None
        assert snapshot.skill("missing") is None

    def test_report_counts(self, records):
        report = PrimitiveRegistry().load(records)
        assert report.ok
        assert report.loaded == {"instruction": 1, "prompt": 2, "agent": 2, "skill": 3}

    def test_string_rules_become_directives(self, snapshot):
        rules = snapshot.instructions[0].rules
        assert all(isinstance(rule, Directive) for rule in rules)
        assert rules[1].text == "Keep components small and focused"
        assert rules[0].setting == "string-quote-style"

    def test_unnamed_instructions_get_positional_names(self):
        registry = PrimitiveRegistry()
        registry.load({"instructions": [{"rules": ["a"]}, {"rules": ["b"]}]})
        names = [doc.name for doc in registry.current().instructions]
        assert names == ["instructions-1", "instructions-2"]

    def test_current_before_load(self):
        with pytest.raises(RegistryNotLoaded):
            PrimitiveRegistry().current()


class TestPartialLoad:
    def test_malformed_skill_is_skipped(self, records):
        records["skills"].append({"name": "broken", "trigger_topics": ["x"]})
        report = PrimitiveRegistry().load(records)
        assert report.loaded["skill"] == 3
        assert len(report.errors) == 1
        error = report.errors[0]
        assert error.kind == "skill"
        assert error.identifier == "broken"
        assert "body" in error.reason

    def test_malformed_agent_does_not_block_others(self, records):
        records["agents"].insert(0, {"name": "nobody", "declared_tools": "read", "body": 42})
        registry = PrimitiveRegistry()
        report = registry.load(records)
        assert report.loaded["agent"] == 2
        assert registry.current().persona("style-enforcer") is not None
        assert metrics.get_metrics_summary()["registry.load_errors"] == 1

    def test_undeclared_placeholder_rejects_prompt(self, records):
        records["prompts"].append({"name": "typo", "parameters": {"NAME": {}}, "body": "${NAEM}"})
        report = PrimitiveRegistry().load(records)
        assert report.loaded["prompt"] == 2
        assert report.errors[0].identifier == "typo"
        assert "NAEM" in report.errors[0].reason

    def test_default_outside_allowed_values(self, records):
        records["prompts"].append({
            "name": "bad-default",
            "parameters": {"MODE": {"allowed_values": ["a", "b"], "default": "c"}},
            "body": "${MODE}",
        })
        report = PrimitiveRegistry().load(records)
        assert [e.identifier for e in report.errors] == ["bad-default"]

    def test_duplicate_names_keep_first(self, records):
        records["skills"].append({"name": "unit-testing", "trigger_topics": [], "body": "second"})
        registry = PrimitiveRegistry()
        report = registry.load(records)
        assert report.errors[0].reason == "duplicate name"
        assert registry.current().skill("unit-testing").body.startswith("Write Jest")

    def test_malformed_instruction_is_fatal(self, registry, records):
        previous = registry.current()
        records["instructions"][0]["scope"] = "workspace"
        with pytest.raises(WorkspaceLoadError) as excinfo:
            registry.load(records)
        assert excinfo.value.errors[0].kind == "instruction"
        assert registry.current() is previous


class TestSnapshots:
    def test_reload_swaps_snapshot(self, registry, records):
        old = registry.current()
        records["skills"] = []
        registry.load(records)
        new = registry.current()
        assert new.version == old.version + 1
        assert new.skills == ()
        assert len(old.skills) == 3

    def test_loaded_at_is_timezone_aware(self, snapshot):
        assert snapshot.loaded_at.utcoffset() == timedelta(0)

    def test_snapshot_is_immutable(self, snapshot):
        with pytest.raises(ValidationError):
            snapshot.version = 99

    def test_summary(self, snapshot):
        summary = snapshot.get_summary()
        assert summary["skills"] == ["accessibility-audit", "git-workflow", "unit-testing"]
        assert summary["instructions"] == ["copilot-instructions"]
