"""
planning/planner.py - Insert, move and delete planning

Pure functions: each takes the current phases and returns a PlanResult
holding a complete proposed RuleSet. Nothing here touches storage; the
caller commits the proposal and reconciles again.
"""

from __future__ import annotations
from dataclasses import replace
from typing import List, Optional, Sequence
import logging

from phaseorder.core.enums import EditMode, MutationKind, RuleKind
from phaseorder.core.records import PhaseRecord
from phaseorder.core.rules import PositionRule
from phaseorder.errors.taxonomy import ErrorCode, Rejection, create_rejection
from phaseorder.reconcile.reconciler import reconcile
from .schemas import PlanResult, RuleSet

logger = logging.getLogger("planning.planner")

# The template conventionally owns slots 1 and 2
DEFAULT_RESERVED_LEADING_SLOTS = 2


# ==================== Insert ====================

def plan_insert(
    phases: Sequence[PhaseRecord],
    new_phase: PhaseRecord,
    mode: EditMode = EditMode.PROJECT_EDIT,
    reserved_leading_slots: int = DEFAULT_RESERVED_LEADING_SLOTS,
) -> PlanResult:
    """
    Propose a rule for a newly added phase.

    Existing phases keep their rules. In template edit the new phase is
    standard and lands just before Last; in project edit it is custom and
    takes the first free slot outside the standard block.

    Args:
        phases: Current phases (ideally the reconciled sequence)
        new_phase: Phase to add; its rule is ignored
        mode: Edit mode
        reserved_leading_slots: Leading slots custom phases never take

    Returns:
        PlanResult with the proposed rule set
    """
    current = _current_order(phases, mode)

    rejection = _check_new_phase(current, new_phase)
    if rejection is not None:
        return _reject(phases, rejection, new_phase.id)

    if mode == EditMode.TEMPLATE_EDIT:
        rule = _template_insert_rule(current)
        candidate = replace(new_phase, is_standard=True, is_linked=False, position_rule=rule)
    else:
        rule = _free_slot_rule(current, reserved_leading_slots)
        candidate = replace(new_phase, is_standard=False, is_linked=False, position_rule=rule)

    logger.debug(f"Insert '{candidate.name}' as {rule.label()} ({mode.value})")
    return _propose(current, candidate, mode, MutationKind.INSERT)


def plan_incorporate(
    phases: Sequence[PhaseRecord],
    linked_phase: PhaseRecord,
    reserved_leading_slots: int = DEFAULT_RESERVED_LEADING_SLOTS,
) -> PlanResult:
    """
    Propose adding a read-only phase linked from another project.

    The linked phase takes the next free slot, exactly like a custom
    project insert.
    """
    current = _current_order(phases, EditMode.PROJECT_EDIT)

    if not linked_phase.source_project_id:
        return _reject(phases, create_rejection(
            ErrorCode.UNKNOWN_PHASE,
            f"Phase '{linked_phase.name}' has no source project to link from",
            phase_id=linked_phase.id,
            phase_name=linked_phase.name,
        ), linked_phase.id)

    rejection = _check_new_phase(current, linked_phase)
    if rejection is not None:
        return _reject(phases, rejection, linked_phase.id)

    rule = _free_slot_rule(current, reserved_leading_slots)
    candidate = replace(linked_phase, is_standard=False, is_linked=True, position_rule=rule)

    logger.debug(f"Incorporate '{candidate.name}' from {candidate.source_project_id} as {rule.label()}")
    return _propose(current, candidate, EditMode.PROJECT_EDIT, MutationKind.INCORPORATE)


# ==================== Move ====================

def plan_move(
    phases: Sequence[PhaseRecord],
    moved_id: str,
    desired_index: int,
    mode: EditMode = EditMode.PROJECT_EDIT,
) -> PlanResult:
    """
    Propose moving a phase to ``desired_index`` (1-based).

    Rejected with LOCKED_PHASE when a standard phase is moved, or would be
    displaced, outside template edit.
    """
    current = _current_order(phases, mode)
    moved = _find(current, moved_id)

    if moved is None:
        return _reject(phases, _unknown(moved_id), moved_id)

    if moved.is_template_owned and mode != EditMode.TEMPLATE_EDIT:
        return _reject(phases, create_rejection(
            ErrorCode.LOCKED_PHASE,
            f"Cannot reorder standard phase '{moved.name}' outside template editing",
            phase_id=moved.id,
            phase_name=moved.name,
        ), moved_id)

    if desired_index < 1 or desired_index > len(current):
        return _reject(phases, create_rejection(
            ErrorCode.OUT_OF_RANGE,
            f"Position {desired_index} is outside 1..{len(current)}",
            phase_id=moved.id,
            phase_name=moved.name,
            actual=desired_index,
            expected=f"1..{len(current)}",
        ), moved_id)

    reordered = [p for p in current if p.id != moved_id]
    reordered.insert(desired_index - 1, moved)

    if mode != EditMode.TEMPLATE_EDIT:
        displaced = _displaced_standard(reordered)
        if displaced is not None:
            return _reject(phases, create_rejection(
                ErrorCode.LOCKED_PHASE,
                f"Moving '{moved.name}' to {desired_index} would displace standard phase '{displaced.name}'",
                phase_id=moved.id,
                phase_name=moved.name,
                actual=desired_index,
                expected=f"slot not held by '{displaced.name}'",
            ), moved_id)

    logger.debug(f"Move '{moved.name}' {moved.resolved_index} -> {desired_index} ({mode.value})")
    return PlanResult.ok(
        RuleSet.from_phases(renumber(reordered, mode), MutationKind.MOVE),
        target_id=moved_id,
    )


def plan_move_up(
    phases: Sequence[PhaseRecord],
    phase_id: str,
    mode: EditMode = EditMode.PROJECT_EDIT,
) -> PlanResult:
    """Swap a phase with the one above it; a no-op at the top."""
    return _plan_step(phases, phase_id, -1, mode)


def plan_move_down(
    phases: Sequence[PhaseRecord],
    phase_id: str,
    mode: EditMode = EditMode.PROJECT_EDIT,
) -> PlanResult:
    """Swap a phase with the one below it; a no-op at the bottom."""
    return _plan_step(phases, phase_id, 1, mode)


def _plan_step(
    phases: Sequence[PhaseRecord],
    phase_id: str,
    step: int,
    mode: EditMode,
) -> PlanResult:
    current = _current_order(phases, mode)
    phase = _find(current, phase_id)
    if phase is None:
        return _reject(phases, _unknown(phase_id), phase_id)

    target = phase.resolved_index + step
    if target < 1 or target > len(current):
        return PlanResult.ok(RuleSet.from_phases(current, MutationKind.MOVE), target_id=phase_id)
    return plan_move(current, phase_id, target, mode)


# ==================== Delete ====================

def plan_delete(
    phases: Sequence[PhaseRecord],
    removed_id: str,
    mode: EditMode = EditMode.PROJECT_EDIT,
) -> PlanResult:
    """
    Propose removing a phase and closing the gap it leaves.

    Standard phases can only be removed in template edit.
    """
    current = _current_order(phases, mode)
    removed = _find(current, removed_id)

    if removed is None:
        return _reject(phases, _unknown(removed_id), removed_id)

    if removed.is_template_owned and mode != EditMode.TEMPLATE_EDIT:
        return _reject(phases, create_rejection(
            ErrorCode.LOCKED_PHASE,
            f"Cannot delete standard phase '{removed.name}' outside template editing",
            phase_id=removed.id,
            phase_name=removed.name,
        ), removed_id)

    remaining = [p for p in current if p.id != removed_id]
    rule_set = RuleSet(
        phases=renumber(remaining, mode),
        removed=[removed],
        mutation=MutationKind.DELETE,
    )

    logger.debug(f"Delete '{removed.name}' at {removed.resolved_index} ({mode.value})")
    return PlanResult.ok(rule_set, target_id=removed_id)


# ==================== Renumbering ====================

def renumber(ordered: Sequence[PhaseRecord], mode: EditMode) -> List[PhaseRecord]:
    """
    Positional rules for an ordered sequence.

    Slot 1 becomes First and slot N becomes Last only for eligible
    occupants (standard phases, or anyone in template edit); every other
    slot becomes Nth(position). Outside template edit, standard phases
    keep the rule the template gave them.
    """
    total = len(ordered)
    result: List[PhaseRecord] = []

    for position, phase in enumerate(ordered, start=1):
        if mode != EditMode.TEMPLATE_EDIT and phase.is_template_owned and phase.position_rule is not None:
            rule = phase.position_rule
        else:
            rule = positional_rule(phase, position, total, mode)
        result.append(phase.with_rule(rule).with_index(position))

    return result


def positional_rule(phase: PhaseRecord, position: int, total: int, mode: EditMode) -> PositionRule:
    eligible = mode == EditMode.TEMPLATE_EDIT or phase.is_template_owned
    if position == 1 and eligible:
        return PositionRule.first()
    if position == total and eligible:
        return PositionRule.last()
    return PositionRule.nth(position)


# ==================== Helpers ====================

def _current_order(phases: Sequence[PhaseRecord], mode: EditMode) -> List[PhaseRecord]:
    return reconcile(phases, mode=mode).phases


def _find(phases: Sequence[PhaseRecord], phase_id: str) -> Optional[PhaseRecord]:
    for phase in phases:
        if phase.id == phase_id:
            return phase
    return None


def _unknown(phase_id: str) -> Rejection:
    return create_rejection(
        ErrorCode.UNKNOWN_PHASE,
        f"Phase {phase_id} not found",
        phase_id=phase_id,
    )


def _reject(phases: Sequence[PhaseRecord], rejection: Rejection, target_id: str = None) -> PlanResult:
    logger.info(f"Rejected ({rejection.code.name}): {rejection.message}")
    return PlanResult.failed(RuleSet.from_phases(list(phases)), rejection, target_id=target_id)


def _check_new_phase(current: Sequence[PhaseRecord], new_phase: PhaseRecord) -> Optional[Rejection]:
    for phase in current:
        if phase.name_key == new_phase.name_key:
            return create_rejection(
                ErrorCode.NAME_COLLISION,
                f"A phase named '{new_phase.name}' already exists",
                phase_id=new_phase.id,
                phase_name=new_phase.name,
                actual=new_phase.name,
                expected=f"name different from '{phase.name}'",
            )
        if phase.identity == new_phase.identity:
            return create_rejection(
                ErrorCode.DUPLICATE_ID,
                f"A phase with id {new_phase.id} already exists",
                phase_id=new_phase.id,
                phase_name=new_phase.name,
            )
    return None


def _last_holder(current: Sequence[PhaseRecord]) -> Optional[PhaseRecord]:
    for phase in current:
        if not phase.is_linked and phase.position_rule is not None and phase.position_rule.is_last:
            return phase
    return None


def _free_slot_rule(current: Sequence[PhaseRecord], reserved_leading_slots: int) -> PositionRule:
    """
    Lowest slot past the leading reserve that no standard phase occupies,
    no phase claims as Nth, and that follows every custom phase.
    """
    total = len(current)
    standard_slots = {p.resolved_index for p in current if p.is_template_owned}
    claimed = {
        p.position_rule.value for p in current
        if p.position_rule is not None and p.position_rule.kind == RuleKind.NTH
    }
    after_custom = max(
        (p.resolved_index for p in current if not p.is_template_owned),
        default=0,
    )

    slot = max(reserved_leading_slots + 1, after_custom + 1)
    while slot in standard_slots or slot in claimed:
        slot += 1

    last = _last_holder(current)
    if last is not None and slot >= last.resolved_index:
        return PositionRule.last_minus_n(1)
    if slot > total + 1:
        # Every slot up to the new end is taken; append
        return PositionRule.last_minus_n(0)
    return PositionRule.nth(slot)


def _template_insert_rule(current: Sequence[PhaseRecord]) -> PositionRule:
    total = len(current)
    if total == 0:
        return PositionRule.first()

    if _last_holder(current) is None:
        return PositionRule.nth(total + 1)

    clean = [p.position_rule for p in renumber(current, EditMode.TEMPLATE_EDIT)]
    if clean == [p.position_rule for p in current]:
        return PositionRule.nth(total)
    return PositionRule.last_minus_n(1)


def _displaced_standard(reordered: Sequence[PhaseRecord]) -> Optional[PhaseRecord]:
    """First standard phase whose slot would change."""
    for position, phase in enumerate(reordered, start=1):
        if phase.is_template_owned and phase.resolved_index != position:
            return phase
    return None


def _propose(
    current: Sequence[PhaseRecord],
    candidate: PhaseRecord,
    mode: EditMode,
    mutation: MutationKind,
) -> PlanResult:
    proposed = reconcile(list(current) + [candidate], mode=mode).phases
    return PlanResult.ok(RuleSet.from_phases(proposed, mutation), target_id=candidate.id)
