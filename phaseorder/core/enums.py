"""
phaseorder Core Enumerations

All enumeration types used throughout the phase ordering engine.
"""

from enum import Enum


class RuleKind(str, Enum):
    """
    Placement directive kinds for a phase position rule.

    Values match the stored ``position_rule`` column.
    """
    FIRST = "first"
    LAST = "last"
    NTH = "nth"
    LAST_MINUS_N = "last_minus_n"


# Tie-break rank used when two rules resolve to the same slot.
RULE_KIND_RANK = {
    RuleKind.FIRST: 0,
    RuleKind.NTH: 1,
    RuleKind.LAST_MINUS_N: 2,
    RuleKind.LAST: 3,
}


class EditMode(str, Enum):
    """
    Which plan is being edited.

    PROJECT_EDIT: a regular project; standard phases are locked.
    TEMPLATE_EDIT: the template itself; anchors may be redefined.
    """
    PROJECT_EDIT = "project_edit"
    TEMPLATE_EDIT = "template_edit"


class ProjectState(str, Enum):
    """
    Per-project ordering state.
    """
    IDLE = "idle"                  # Ready to accept an operation
    RECONCILING = "reconciling"    # Loading and reconciling phases
    MUTATING = "mutating"          # Planner computing a new rule set
    COMMITTING = "committing"      # Rule set being written to the store
    ERROR = "error"                # Last commit failed, awaiting recovery


class MutationKind(str, Enum):
    """
    Kinds of user-triggered phase mutations.
    """
    INSERT = "insert"
    INCORPORATE = "incorporate"
    MOVE = "move"
    DELETE = "delete"
