"""
planning/schemas.py - Proposed rule sets and plan results
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from phaseorder.core.enums import MutationKind
from phaseorder.core.records import PhaseRecord
from phaseorder.core.rules import PositionRule
from phaseorder.errors.taxonomy import Rejection


@dataclass(frozen=True)
class RuleChange:
    """One row-level difference between two rule sets."""

    phase_id: str
    phase_name: str
    change: str                    # "added", "removed" or "updated"
    old_rule: Optional[PositionRule] = None
    new_rule: Optional[PositionRule] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase_id": self.phase_id,
            "phase_name": self.phase_name,
            "change": self.change,
            "old_rule": self.old_rule.to_dict() if self.old_rule else None,
            "new_rule": self.new_rule.to_dict() if self.new_rule else None,
        }


@dataclass
class RuleSet:
    """
    A complete proposed set of phases and their rules.

    ``phases`` is in proposed display order with ``resolved_index`` set;
    ``removed`` lists the phases the proposal drops.
    """

    phases: List[PhaseRecord] = field(default_factory=list)
    removed: List[PhaseRecord] = field(default_factory=list)
    mutation: Optional[MutationKind] = None

    @classmethod
    def from_phases(
        cls,
        phases: Sequence[PhaseRecord],
        mutation: Optional[MutationKind] = None,
    ) -> "RuleSet":
        return cls(phases=list(phases), mutation=mutation)

    def __len__(self) -> int:
        return len(self.phases)

    @property
    def rules(self) -> Dict[str, Optional[PositionRule]]:
        """Phase id -> proposed rule."""
        return {p.id: p.position_rule for p in self.phases}

    @property
    def ordered_ids(self) -> List[str]:
        return [p.id for p in self.phases]

    def get(self, phase_id: str) -> Optional[PhaseRecord]:
        for phase in self.phases:
            if phase.id == phase_id:
                return phase
        return None

    def diff(self, previous: Sequence[PhaseRecord]) -> List[RuleChange]:
        """
        Changes needed to turn ``previous`` into this rule set.

        Args:
            previous: Phases as currently stored or displayed
        """
        before = {p.id: p for p in previous}
        after = {p.id: p for p in self.phases}
        changes: List[RuleChange] = []

        for phase in self.phases:
            old = before.get(phase.id)
            if old is None:
                changes.append(RuleChange(phase.id, phase.name, "added", None, phase.position_rule))
            elif old.position_rule != phase.position_rule:
                changes.append(RuleChange(phase.id, phase.name, "updated", old.position_rule, phase.position_rule))

        for phase in previous:
            if phase.id not in after:
                changes.append(RuleChange(phase.id, phase.name, "removed", phase.position_rule, None))

        return changes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mutation": self.mutation.value if self.mutation else None,
            "phases": [p.to_dict() for p in self.phases],
            "removed": [p.id for p in self.removed],
        }


@dataclass
class PlanResult:
    """
    Outcome of a planner call.

    On failure ``rule_set`` is the unchanged current rule set and
    ``rejection`` names the violated constraint.
    """

    success: bool
    rule_set: RuleSet
    rejection: Optional[Rejection] = None
    target_id: Optional[str] = None

    @classmethod
    def ok(cls, rule_set: RuleSet, target_id: str = None) -> "PlanResult":
        return cls(success=True, rule_set=rule_set, target_id=target_id)

    @classmethod
    def failed(cls, current: RuleSet, rejection: Rejection, target_id: str = None) -> "PlanResult":
        return cls(success=False, rule_set=current, rejection=rejection, target_id=target_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "target_id": self.target_id,
            "rule_set": self.rule_set.to_dict(),
            "rejection": self.rejection.to_dict() if self.rejection else None,
        }
