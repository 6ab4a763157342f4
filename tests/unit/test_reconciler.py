"""
Unit tests for reconcile/reconciler.py

Tests ordering, tie-breaks, template enforcement and anomaly reporting.
"""

import random

import pytest

from phaseorder.core.enums import EditMode, RuleKind
from phaseorder.core.records import PhaseRecord, TemplateEntry
from phaseorder.core.rules import PositionRule
from phaseorder.errors.taxonomy import ErrorCode, ErrorSeverity
from phaseorder.reconcile.reconciler import ReconcileResult, reconcile


def phase(phase_id, rule=None, standard=False, name=None, **kwargs):
    return PhaseRecord(
        id=phase_id,
        name=name or phase_id,
        is_standard=standard,
        position_rule=rule,
        **kwargs,
    )


def codes(result):
    return [a.code for a in result.anomalies]


class TestReconcileOrdering:
    """Test the produced order."""

    def test_clean_plan(self, mixed_phases):
        """Test a consistent plan reconciles without anomalies."""
        result = reconcile(mixed_phases)
        assert result.ordered_ids == ["kickoff", "planning", "design", "build", "close"]
        assert [p.resolved_index for p in result.phases] == [1, 2, 3, 4, 5]
        assert result.is_clean

    def test_unpacks_as_pair(self, mixed_phases):
        ordered, anomalies = reconcile(mixed_phases)
        assert len(ordered) == 5
        assert anomalies == []

    def test_input_not_mutated(self, mixed_phases):
        before = list(mixed_phases)
        reconcile(mixed_phases)
        assert mixed_phases == before
        assert all(p.resolved_index is None for p in mixed_phases)

    def test_incoming_order_irrelevant(self, mixed_phases):
        """Test any permutation of tie-free input gives the same order."""
        expected = reconcile(mixed_phases).ordered_ids
        rng = random.Random(7)
        for _ in range(10):
            shuffled = list(mixed_phases)
            rng.shuffle(shuffled)
            assert reconcile(shuffled).ordered_ids == expected

    def test_idempotent(self, mixed_phases):
        """Test reconciling a reconciled sequence changes nothing."""
        once = reconcile(mixed_phases)
        twice = reconcile(once.phases)
        assert twice.ordered_ids == once.ordered_ids
        assert [p.position_rule for p in twice.phases] == [p.position_rule for p in once.phases]

    def test_empty(self):
        result = reconcile([])
        assert result.phases == []
        assert result.anomalies == []

    def test_last_minus_n_before_last(self):
        """Test LastMinusN(1) lands just before Last."""
        phases = [
            phase("close", PositionRule.last()),
            phase("extra", PositionRule.last_minus_n(1)),
            phase("start", PositionRule.first()),
            phase("middle", PositionRule.nth(2)),
        ]
        assert reconcile(phases).ordered_ids == ["start", "middle", "extra", "close"]

    def test_standard_wins_tie(self):
        """Test a standard phase outranks a custom one at the same slot."""
        phases = [
            phase("custom", PositionRule.nth(2)),
            phase("std", PositionRule.nth(2), standard=True),
            phase("start", PositionRule.first(), standard=True),
        ]
        assert reconcile(phases).ordered_ids == ["start", "std", "custom"]

    def test_anchor_first_beats_nth_one(self):
        phases = [phase("n1", PositionRule.nth(1)), phase("f", PositionRule.first())]
        assert reconcile(phases).ordered_ids == ["f", "n1"]

    def test_result_lookup(self, mixed_phases):
        result = reconcile(mixed_phases)
        assert result.get("build").resolved_index == 4
        assert result.get("missing") is None


class TestReconcileAnomalies:
    """Test corrupt input is repaired and reported."""

    def test_duplicate_nth(self):
        """Test duplicate Nth slots keep their incoming order."""
        phases = [
            phase("A", PositionRule.first()),
            phase("B", PositionRule.nth(5)),
            phase("C", PositionRule.nth(5)),
            phase("D", PositionRule.last()),
        ]
        result = reconcile(phases)

        assert result.ordered_ids == ["A", "B", "C", "D"]
        assert [p.resolved_index for p in result.phases] == [1, 2, 3, 4]
        assert ErrorCode.DUPLICATE_POSITION in codes(result)
        assert ErrorCode.OUT_OF_RANGE in codes(result)

    def test_duplicate_in_range_tie(self):
        phases = [
            phase("x", PositionRule.nth(2)),
            phase("y", PositionRule.nth(2)),
            phase("first", PositionRule.first()),
        ]
        result = reconcile(phases)
        assert result.ordered_ids == ["first", "x", "y"]
        assert codes(result) == [ErrorCode.DUPLICATE_POSITION]

    def test_duplicate_id_keeps_first(self):
        phases = [
            phase("p1", PositionRule.first(), name="Original"),
            phase("p1", PositionRule.last(), name="Copy"),
            phase("p2", PositionRule.last()),
        ]
        result = reconcile(phases)
        assert result.ordered_ids == ["p1", "p2"]
        assert result.get("p1").name == "Original"
        assert codes(result) == [ErrorCode.DUPLICATE_ID]

    def test_linked_same_id_different_source(self):
        """Test linked phases from two projects are not duplicates."""
        a = phase("l1", PositionRule.nth(1), is_linked=True, source_project_id="p-a", name="A")
        b = phase("l1", PositionRule.nth(2), is_linked=True, source_project_id="p-b", name="B")
        result = reconcile([a, b])
        assert len(result.phases) == 2
        assert not result.has(ErrorCode.DUPLICATE_ID)

    def test_missing_rule_gets_provisional(self):
        """Test a rule-less phase stays at its incoming position."""
        phases = [
            phase("start", PositionRule.first()),
            phase("lost"),
            phase("end", PositionRule.last()),
        ]
        result = reconcile(phases)
        assert result.ordered_ids == ["start", "lost", "end"]
        assert result.get("lost").position_rule == PositionRule.nth(2)
        assert codes(result) == [ErrorCode.MISSING_RULE]

        # The provisional rule is stable on the next pass
        assert reconcile(result.phases).is_clean

    def test_invalid_offset(self):
        phases = [
            phase("start", PositionRule.first()),
            phase("bad", PositionRule.last_minus_n(-3)),
            phase("mid", PositionRule.nth(2)),
            phase("end", PositionRule.last()),
        ]
        result = reconcile(phases)
        assert result.ordered_ids == ["start", "mid", "bad", "end"]
        assert codes(result) == [ErrorCode.INVALID_OFFSET]

    def test_anchor_conflict(self):
        phases = [
            phase("a", PositionRule.first()),
            phase("b", PositionRule.first()),
            phase("c", PositionRule.last()),
        ]
        result = reconcile(phases)
        assert result.ordered_ids == ["a", "b", "c"]
        assert codes(result) == [ErrorCode.ANCHOR_CONFLICT]
        assert result.anomalies[0].phase_id == "b"

    def test_never_raises_on_garbage(self):
        phases = [
            phase("a", PositionRule.nth(-4)),
            phase("b", PositionRule.last_minus_n(-1)),
            phase("c"),
            phase("a", PositionRule.nth(99)),
            phase("d", PositionRule.last()),
            phase("e", PositionRule.last()),
            phase("f", PositionRule(RuleKind.NTH)),
        ]
        result = reconcile(phases)
        assert sorted(p.resolved_index for p in result.phases) == list(range(1, 7))
        assert not result.is_clean

    def test_nth_without_slot_among_standard_phases(self):
        phases = [
            phase("kickoff", PositionRule.first(), standard=True),
            phase("planning", PositionRule.nth(2), standard=True),
            phase("x", PositionRule(RuleKind.NTH)),
        ]
        result = reconcile(phases)
        assert result.ordered_ids == ["kickoff", "planning", "x"]
        assert ErrorCode.OUT_OF_RANGE in codes(result)

    def test_report(self):
        phases = [phase("a", PositionRule.nth(2)), phase("b", PositionRule.nth(2))]
        report = reconcile(phases).report()
        assert report.total == 1
        assert report.by_code == {"DUPLICATE_POSITION": 1}


class TestReconcileTemplate:
    """Test template rules override stored standard rules."""

    def test_stale_position_overwritten(self, standard_phases, template):
        kickoff, planning, close = standard_phases
        stale = planning.with_rule(PositionRule.nth(4))
        result = reconcile([kickoff, stale, close], template)

        assert result.get("planning").position_rule == PositionRule.nth(2)
        assert result.ordered_ids == ["kickoff", "planning", "close"]
        stale_anomalies = [a for a in result.anomalies if a.code == ErrorCode.STALE_POSITION]
        assert len(stale_anomalies) == 1
        assert stale_anomalies[0].expected_value == PositionRule.nth(2)

    def test_template_lookup_ignores_case(self, standard_phases, template):
        kickoff, planning, close = standard_phases
        renamed = PhaseRecord(id="planning", name="PLANNING", is_standard=True, position_rule=PositionRule.nth(3))
        result = reconcile([kickoff, renamed, close], template)
        assert result.get("planning").position_rule == PositionRule.nth(2)

    def test_custom_phases_untouched(self, mixed_phases, template):
        result = reconcile(mixed_phases, template)
        assert result.is_clean
        assert result.get("design").position_rule == PositionRule.nth(3)

    def test_unknown_standard_phase(self, standard_phases, template):
        orphan = PhaseRecord(id="o", name="Retired", is_standard=True, position_rule=PositionRule.nth(3))
        result = reconcile(standard_phases + [orphan], template)
        unknown = [a for a in result.anomalies if a.code == ErrorCode.UNKNOWN_TEMPLATE_PHASE]
        assert len(unknown) == 1
        assert unknown[0].severity == ErrorSeverity.INFO
        assert result.get("o").position_rule == PositionRule.nth(3)

    def test_template_ignored_in_template_edit(self, standard_phases, template):
        kickoff, planning, close = standard_phases
        moved = planning.with_rule(PositionRule.nth(4))
        result = reconcile([kickoff, moved, close], template, EditMode.TEMPLATE_EDIT)
        assert result.get("planning").position_rule == PositionRule.nth(4)
        assert not result.has(ErrorCode.STALE_POSITION)

    def test_linked_standard_not_overwritten(self, template):
        linked = PhaseRecord(
            id="l1", name="Planning", is_standard=True, is_linked=True,
            position_rule=PositionRule.nth(3), source_project_id="other",
        )
        result = reconcile([linked], template)
        assert result.get("l1").position_rule == PositionRule.nth(3)
        assert not result.has(ErrorCode.STALE_POSITION)


class TestReconcileResult:
    """Test ReconcileResult serialization."""

    def test_to_dict(self, mixed_phases):
        data = reconcile(mixed_phases).to_dict()
        assert [p["resolved_index"] for p in data["phases"]] == [1, 2, 3, 4, 5]
        assert data["anomalies"] == []

    def test_has(self):
        result = ReconcileResult()
        assert not result.has(ErrorCode.MISSING_RULE)
