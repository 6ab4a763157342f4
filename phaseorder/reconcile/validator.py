"""
reconcile/validator.py - Position consistency checks

Reports duplicate slots, anchor conflicts and custom phases that sit
inside the standard block. Findings are warnings; reconciliation still
produces an order and the next committed renumbering clears them.
"""

from __future__ import annotations
from typing import Dict, List, Optional, Sequence

from phaseorder.core.enums import EditMode, RuleKind
from phaseorder.core.records import PhaseRecord
from phaseorder.core.rules import PositionRule
from phaseorder.errors.taxonomy import Anomaly, ErrorCode, ErrorSeverity, create_anomaly


def check_positions(
    phases: Sequence[PhaseRecord],
    mode: EditMode = EditMode.PROJECT_EDIT,
) -> List[Anomaly]:
    """
    Run all position checks over deduplicated phases.

    Args:
        phases: Phases after template rules have been applied
        mode: Edit mode; template editing relaxes the anchor rules

    Returns:
        List of anomalies, empty when the rules are consistent
    """
    anomalies: List[Anomaly] = []
    anomalies.extend(check_duplicate_slots(phases))
    anomalies.extend(check_anchors(phases, mode))
    if mode != EditMode.TEMPLATE_EDIT:
        anomalies.extend(check_custom_placement(phases))
    return anomalies


def check_duplicate_slots(phases: Sequence[PhaseRecord]) -> List[Anomaly]:
    """Two phases claiming the same Nth slot."""
    anomalies: List[Anomaly] = []
    holders: Dict[int, PhaseRecord] = {}

    for phase in phases:
        rule = phase.position_rule
        if not _numbered(rule):
            continue
        if rule.value in holders:
            first = holders[rule.value]
            anomalies.append(create_anomaly(
                ErrorCode.DUPLICATE_POSITION,
                f"Phase '{phase.name}' shares Nth({rule.value}) with '{first.name}'",
                phase=phase,
                actual=rule,
                expected=f"unique slot (held by {first.id})",
            ))
        else:
            holders[rule.value] = phase

    return anomalies


def check_anchors(
    phases: Sequence[PhaseRecord],
    mode: EditMode = EditMode.PROJECT_EDIT,
) -> List[Anomaly]:
    """At most one First and one Last among non-linked phases."""
    anomalies: List[Anomaly] = []
    owned = [p for p in phases if not p.is_linked and p.position_rule is not None]

    for kind, label in ((RuleKind.FIRST, "First"), (RuleKind.LAST, "Last")):
        holders = [p for p in owned if p.position_rule.kind == kind]

        if mode == EditMode.TEMPLATE_EDIT:
            # Anchors are being redefined; only their absence is worth noting
            if phases and not holders:
                anomalies.append(create_anomaly(
                    ErrorCode.MISSING_ANCHOR,
                    f"No phase holds {label}",
                    expected=f"exactly one {label} phase",
                    severity=ErrorSeverity.INFO,
                ))
            continue

        for extra in holders[1:]:
            anomalies.append(create_anomaly(
                ErrorCode.ANCHOR_CONFLICT,
                f"Phase '{extra.name}' also holds {label} (already held by '{holders[0].name}')",
                phase=extra,
                actual=extra.position_rule,
                expected=f"single {label} phase",
            ))

    return anomalies


def check_custom_placement(phases: Sequence[PhaseRecord]) -> List[Anomaly]:
    """Custom Nth phases must come after the last numbered standard phase."""
    numbered = []
    for phase in phases:
        rule = phase.position_rule
        if not phase.is_template_owned or rule is None:
            continue
        if rule.kind == RuleKind.FIRST:
            numbered.append(1)
        elif _numbered(rule):
            numbered.append(rule.value)

    if not numbered:
        return []

    boundary = max(numbered)
    anomalies: List[Anomaly] = []
    for phase in phases:
        rule = phase.position_rule
        if phase.is_template_owned or not _numbered(rule):
            continue
        if rule.value <= boundary:
            anomalies.append(create_anomaly(
                ErrorCode.MISPLACED_CUSTOM,
                f"Custom phase '{phase.name}' at Nth({rule.value}) is inside the standard block",
                phase=phase,
                actual=rule,
                expected=f"position after {boundary}",
                severity=ErrorSeverity.INFO,
            ))
    return anomalies


def _numbered(rule: Optional[PositionRule]) -> bool:
    """Nth rule carrying an integer slot."""
    return (
        rule is not None
        and rule.kind == RuleKind.NTH
        and isinstance(rule.value, int)
        and not isinstance(rule.value, bool)
    )
