"""
errors/exceptions.py - Raised errors

Only rule resolution, the state machine and commits raise; everything
else reports through Anomaly / Rejection records.
"""

from __future__ import annotations
from typing import Any

from .taxonomy import ErrorCode


class PhaseOrderError(Exception):
    """Base class for raised phase ordering errors."""

    code: ErrorCode = ErrorCode.OUT_OF_RANGE

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class PositionResolutionError(PhaseOrderError, ValueError):
    """A position rule cannot be resolved against a plan size."""


class OutOfRangeError(PositionResolutionError):
    """Resolved position falls outside 1..N."""

    code = ErrorCode.OUT_OF_RANGE


class InvalidOffsetError(PositionResolutionError):
    """LastMinusN offset is negative."""

    code = ErrorCode.INVALID_OFFSET


class StateTransitionError(PhaseOrderError):
    """Illegal project state transition."""

    code = ErrorCode.OPERATION_IN_PROGRESS


class CommitError(PhaseOrderError):
    """The store rejected or failed a rule set commit."""

    code = ErrorCode.COMMIT_FAILED


class LoadError(PhaseOrderError):
    """Stored phases could not be read."""

    code = ErrorCode.LOAD_FAILED
