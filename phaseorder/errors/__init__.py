"""
errors/ - Error Taxonomy

Structured anomaly and rejection records plus the few exceptions the
engine raises.
"""

from .taxonomy import (
    ErrorSeverity,
    ErrorCategory,
    ErrorCode,
    PhaseIssue,
    Anomaly,
    Rejection,
    USER_MESSAGES,
    category_for,
    create_anomaly,
    create_rejection,
)

from .exceptions import (
    PhaseOrderError,
    PositionResolutionError,
    OutOfRangeError,
    InvalidOffsetError,
    StateTransitionError,
    CommitError,
    LoadError,
)

from .aggregator import (
    AnomalyReport,
    AnomalyAggregator,
)

__all__ = [
    # Taxonomy
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorCode",
    "PhaseIssue",
    "Anomaly",
    "Rejection",
    "USER_MESSAGES",
    "category_for",
    "create_anomaly",
    "create_rejection",
    # Exceptions
    "PhaseOrderError",
    "PositionResolutionError",
    "OutOfRangeError",
    "InvalidOffsetError",
    "StateTransitionError",
    "CommitError",
    "LoadError",
    # Aggregator
    "AnomalyReport",
    "AnomalyAggregator",
]
