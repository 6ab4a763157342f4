"""
reconcile/ - Phase order reconciliation
"""

from .reconciler import ReconcileResult, reconcile
from .validator import (
    check_positions,
    check_duplicate_slots,
    check_anchors,
    check_custom_placement,
)

__all__ = [
    "ReconcileResult",
    "reconcile",
    "check_positions",
    "check_duplicate_slots",
    "check_anchors",
    "check_custom_placement",
]
