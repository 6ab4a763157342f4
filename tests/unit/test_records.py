"""
Unit tests for core/records.py
"""

from phaseorder.core.records import PhaseRecord, TemplateEntry, name_key
from phaseorder.core.rules import PositionRule


class TestPhaseRecord:
    """Test PhaseRecord identity and flags."""

    def test_create_generates_id(self):
        a = PhaseRecord.create("Design")
        b = PhaseRecord.create("Design")
        assert a.id != b.id
        assert a.position_rule is None
        assert not a.is_standard

    def test_identity_plain(self):
        phase = PhaseRecord(id="p1", name="Design")
        assert phase.identity == ("p1", None)

    def test_identity_linked(self):
        """Test linked phases are unique per source project."""
        a = PhaseRecord(id="p1", name="Audit", is_linked=True, source_project_id="other")
        b = PhaseRecord(id="p1", name="Audit", is_linked=True, source_project_id="third")
        assert a.identity != b.identity

    def test_template_owned(self):
        assert PhaseRecord(id="s", name="S", is_standard=True).is_template_owned
        linked = PhaseRecord(id="l", name="L", is_standard=True, is_linked=True)
        assert not linked.is_template_owned

    def test_with_rule_returns_copy(self):
        phase = PhaseRecord(id="p1", name="Design")
        moved = phase.with_rule(PositionRule.nth(3)).with_index(3)
        assert phase.position_rule is None
        assert phase.resolved_index is None
        assert moved.position_rule == PositionRule.nth(3)
        assert moved.resolved_index == 3

    def test_name_key(self):
        assert name_key("  Planning ") == name_key("PLANNING")


class TestPhaseRecordSerialization:
    """Test storage row conversion."""

    def test_to_dict(self):
        phase = PhaseRecord(id="p1", name="Design", position_rule=PositionRule.nth(3))
        data = phase.to_dict()
        assert data["position_rule"] == "nth"
        assert data["position_value"] == 3
        assert "resolved_index" not in data

    def test_to_dict_includes_index_when_set(self):
        phase = PhaseRecord(id="p1", name="Design").with_index(2)
        assert phase.to_dict()["resolved_index"] == 2

    def test_from_dict(self):
        data = {
            "id": "p1",
            "name": "Close",
            "is_standard": True,
            "position_rule": "last",
            "position_value": None,
        }
        phase = PhaseRecord.from_dict(data)
        assert phase.is_standard
        assert phase.position_rule == PositionRule.last()

    def test_from_dict_malformed_rule_dropped(self):
        """Test a bad rule loads as missing instead of raising."""
        phase = PhaseRecord.from_dict({"id": 7, "name": "X", "position_rule": "nth", "position_value": "x"})
        assert phase.id == "7"
        assert phase.position_rule is None

    def test_from_dict_infers_link(self):
        data = {"id": "p1", "name": "Audit", "source_project_id": "other", "source_phase_id": "a1"}
        assert PhaseRecord.from_dict(data).is_linked

    def test_template_entry(self):
        entry = TemplateEntry.from_dict({"name": "Kickoff", "position_rule": "first"})
        assert entry.position_rule == PositionRule.first()
        assert entry.to_dict() == {"name": "Kickoff", "position_rule": "first", "position_value": None}
