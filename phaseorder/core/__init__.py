"""
phaseorder Core Module

Position rules, phase records and the per-project state machine.
"""

from phaseorder.core.enums import RuleKind, EditMode, ProjectState, MutationKind
from phaseorder.core.rules import PositionRule, resolve
from phaseorder.core.records import PhaseRecord, TemplateEntry
from phaseorder.core.state_machine import ProjectStateMachine, TransitionEvent

__all__ = [
    "RuleKind",
    "EditMode",
    "ProjectState",
    "MutationKind",
    "PositionRule",
    "resolve",
    "PhaseRecord",
    "TemplateEntry",
    "ProjectStateMachine",
    "TransitionEvent",
]
