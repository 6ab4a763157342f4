"""
errors/taxonomy.py - Error classification system

Structural anomalies are reported by reconciliation and never raised.
Rejections are returned by the planner and the service when an operation
is refused; they never carry a partial rule set.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from datetime import datetime
from enum import Enum
import uuid


class ErrorSeverity(Enum):
    """Error severity levels."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories."""
    # Structural anomalies (1xxx)
    STRUCTURAL = "structural"

    # Rule resolution (2xxx)
    RESOLUTION = "resolution"

    # Operation rejections (3xxx)
    REJECTION = "rejection"

    # Persistence (4xxx)
    PERSISTENCE = "persistence"


class ErrorCode(Enum):
    """Specific error codes."""

    # Structural (1xxx)
    DUPLICATE_ID = 1001
    STALE_POSITION = 1002
    MISSING_RULE = 1003
    DUPLICATE_POSITION = 1004
    ANCHOR_CONFLICT = 1005
    MISSING_ANCHOR = 1006
    MISPLACED_CUSTOM = 1007
    UNKNOWN_TEMPLATE_PHASE = 1008

    # Resolution (2xxx)
    OUT_OF_RANGE = 2001
    INVALID_OFFSET = 2002

    # Rejection (3xxx)
    LOCKED_PHASE = 3001
    NAME_COLLISION = 3002
    UNKNOWN_PHASE = 3003
    OPERATION_IN_PROGRESS = 3004

    # Persistence (4xxx)
    COMMIT_FAILED = 4001
    LOAD_FAILED = 4002


_CATEGORY_BY_GROUP = {
    1: ErrorCategory.STRUCTURAL,
    2: ErrorCategory.RESOLUTION,
    3: ErrorCategory.REJECTION,
    4: ErrorCategory.PERSISTENCE,
}


def category_for(code: ErrorCode) -> ErrorCategory:
    """Category implied by the thousands group of an error code."""
    return _CATEGORY_BY_GROUP[code.value // 1000]


@dataclass
class PhaseIssue:
    """Common fields for anything reported against a phase plan."""

    issue_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    code: ErrorCode = ErrorCode.DUPLICATE_ID
    severity: ErrorSeverity = ErrorSeverity.WARNING

    message: str = ""

    # Context
    phase_id: Optional[str] = None
    phase_name: Optional[str] = None
    source: str = ""

    # Values
    actual_value: Any = None
    expected_value: Any = None

    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def category(self) -> ErrorCategory:
        return category_for(self.code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "issue_id": self.issue_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message,
            "phase_id": self.phase_id,
            "phase_name": self.phase_name,
            "source": self.source,
            "actual": _plain(self.actual_value),
            "expected": _plain(self.expected_value),
        }


@dataclass
class Anomaly(PhaseIssue):
    """Recoverable structural problem found while reconciling."""

    recoverable: bool = True


@dataclass
class Rejection(PhaseIssue):
    """An operation that was refused without changing any rule."""

    severity: ErrorSeverity = ErrorSeverity.ERROR

    @property
    def user_message(self) -> str:
        """Blocking message naming the violated constraint."""
        return USER_MESSAGES.get(self.code, self.message)


USER_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.LOCKED_PHASE: "Cannot reorder or delete a standard phase outside template editing",
    ErrorCode.NAME_COLLISION: "A phase with that name already exists in this project",
    ErrorCode.UNKNOWN_PHASE: "Phase not found",
    ErrorCode.OUT_OF_RANGE: "Invalid position selected",
    ErrorCode.INVALID_OFFSET: "Invalid position offset",
    ErrorCode.OPERATION_IN_PROGRESS: "Another phase operation is still in progress",
    ErrorCode.COMMIT_FAILED: "Phase order could not be saved; the previous order was kept",
    ErrorCode.LOAD_FAILED: "Phases could not be loaded",
}


def _plain(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


def create_anomaly(
    code: ErrorCode,
    message: str,
    phase: Any = None,
    actual: Any = None,
    expected: Any = None,
    severity: ErrorSeverity = ErrorSeverity.WARNING,
    source: str = "reconciler",
) -> Anomaly:
    """Factory for structural anomalies."""
    return Anomaly(
        code=code,
        severity=severity,
        message=message,
        phase_id=getattr(phase, "id", None),
        phase_name=getattr(phase, "name", None),
        source=source,
        actual_value=actual,
        expected_value=expected,
    )


def create_rejection(
    code: ErrorCode,
    message: str,
    phase_id: str = None,
    phase_name: str = None,
    actual: Any = None,
    expected: Any = None,
    source: str = "planner",
) -> Rejection:
    """Factory for operation rejections."""
    return Rejection(
        code=code,
        message=message,
        phase_id=phase_id,
        phase_name=phase_name,
        source=source,
        actual_value=actual,
        expected_value=expected,
    )
