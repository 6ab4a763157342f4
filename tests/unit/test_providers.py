"""
Unit tests for providers/memory.py and providers/json_store.py
"""

import json

import pytest

from phaseorder.core.enums import EditMode
from phaseorder.core.records import PhaseRecord, TemplateEntry
from phaseorder.core.rules import PositionRule
from phaseorder.errors.exceptions import LoadError
from phaseorder.planning.schemas import RuleSet
from phaseorder.providers.json_store import JsonFilePhaseStore
from phaseorder.providers.memory import (
    InMemoryPhaseStore,
    StaticTemplateProvider,
    StoreTemplateProvider,
    seed_project,
    template_from_phases,
)
from phaseorder.reconcile.reconciler import reconcile


class TestInMemoryPhaseStore:
    """Test the in-memory store."""

    def test_load_unknown_project(self):
        assert InMemoryPhaseStore().load_phases("nope") == []

    def test_resolved_index_not_persisted(self, mixed_phases):
        store = InMemoryPhaseStore()
        store.commit_phases("p", RuleSet.from_phases(reconcile(mixed_phases).phases))

        loaded = store.load_phases("p")
        assert [p.id for p in loaded] == [p.id for p in mixed_phases]
        assert all(p.resolved_index is None for p in loaded)
        assert store.commit_count == 1

    def test_fail_next_commit(self, mixed_phases):
        store = InMemoryPhaseStore({"p": mixed_phases})
        store.fail_next_commit = True
        assert not store.commit_phases("p", RuleSet())
        assert len(store.load_phases("p")) == 5
        assert store.commit_phases("p", RuleSet())

    def test_partial_write(self, mixed_phases):
        store = InMemoryPhaseStore({"p": mixed_phases})
        changed = [p.with_rule(PositionRule.nth(9)) for p in mixed_phases]
        store.fail_after_rows = 2

        with pytest.raises(IOError):
            store.commit_phases("p", RuleSet.from_phases(changed))

        rules = [p.position_rule for p in store.load_phases("p")]
        assert rules.count(PositionRule.nth(9)) == 2


class TestTemplateProviders:
    """Test template sources."""

    def test_static(self, template):
        provider = StaticTemplateProvider([t.to_dict() for t in template])
        assert provider.get_template() == template

    def test_from_template_project(self, standard_phases, template):
        custom = PhaseRecord(id="c", name="Custom", position_rule=PositionRule.nth(3))
        store = InMemoryPhaseStore({"template": standard_phases + [custom]})

        provider = StoreTemplateProvider(store, "template")
        assert provider.get_template() == template

    def test_template_from_phases_skips_linked(self, standard_phases):
        linked = PhaseRecord(
            id="l", name="Linked", is_standard=True, is_linked=True,
            position_rule=PositionRule.nth(2), source_project_id="x",
        )
        entries = template_from_phases(standard_phases + [linked])
        assert [e.name for e in entries] == ["Kickoff", "Planning", "Close"]

    def test_seed_project(self, template):
        phases = seed_project(template)
        assert [p.name for p in phases] == ["Kickoff", "Planning", "Close"]
        assert all(p.is_standard for p in phases)
        assert reconcile(phases, template).is_clean


class TestJsonFilePhaseStore:
    """Test the JSON file store."""

    def test_missing_project(self, tmp_path):
        assert JsonFilePhaseStore(str(tmp_path)).load_phases("p") == []

    def test_commit_and_load(self, tmp_path, mixed_phases):
        store = JsonFilePhaseStore(str(tmp_path))
        assert store.commit_phases("p", RuleSet.from_phases(reconcile(mixed_phases).phases))

        loaded = store.load_phases("p")
        assert [(p.id, p.position_rule) for p in loaded] == [(p.id, p.position_rule) for p in mixed_phases]

        document = json.loads((tmp_path / "p.json").read_text())
        assert document["project_id"] == "p"
        assert "resolved_index" not in document["phases"][0]

    def test_no_temp_files_left(self, tmp_path, mixed_phases):
        store = JsonFilePhaseStore(str(tmp_path))
        store.commit_phases("p", RuleSet.from_phases(mixed_phases))
        store.commit_phases("p", RuleSet.from_phases(mixed_phases[:2]))
        assert sorted(f.name for f in tmp_path.iterdir()) == ["p.json"]
        assert len(store.load_phases("p")) == 2

    def test_corrupt_file(self, tmp_path):
        (tmp_path / "p.json").write_text("{not json")
        with pytest.raises(LoadError):
            JsonFilePhaseStore(str(tmp_path)).load_phases("p")

    def test_row_without_id(self, tmp_path):
        (tmp_path / "p.json").write_text(json.dumps({"phases": [{"name": "no id", "position_rule": "first"}]}))
        with pytest.raises(LoadError):
            JsonFilePhaseStore(str(tmp_path)).load_phases("p")

    def test_rows_not_objects(self, tmp_path):
        (tmp_path / "p.json").write_text(json.dumps({"phases": ["kickoff"]}))
        with pytest.raises(LoadError):
            JsonFilePhaseStore(str(tmp_path)).load_phases("p")

    def test_unsafe_project_id(self, tmp_path):
        store = JsonFilePhaseStore(str(tmp_path))
        store.commit_phases("../escape", RuleSet())
        assert [f.name for f in tmp_path.iterdir()] == ["___escape.json"]
