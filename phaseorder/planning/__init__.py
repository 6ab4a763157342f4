"""
planning/ - Mutation planning

Pure insert / move / delete planners returning proposed rule sets.
"""

from .schemas import RuleChange, RuleSet, PlanResult
from .planner import (
    DEFAULT_RESERVED_LEADING_SLOTS,
    plan_insert,
    plan_incorporate,
    plan_move,
    plan_move_up,
    plan_move_down,
    plan_delete,
    renumber,
    positional_rule,
)
from .naming import (
    DEFAULT_PHASE_NAME,
    unique_phase_name,
    available_positions,
    option_to_index,
)

__all__ = [
    # Schemas
    "RuleChange",
    "RuleSet",
    "PlanResult",
    # Planner
    "DEFAULT_RESERVED_LEADING_SLOTS",
    "plan_insert",
    "plan_incorporate",
    "plan_move",
    "plan_move_up",
    "plan_move_down",
    "plan_delete",
    "renumber",
    "positional_rule",
    # Naming
    "DEFAULT_PHASE_NAME",
    "unique_phase_name",
    "available_positions",
    "option_to_index",
]
