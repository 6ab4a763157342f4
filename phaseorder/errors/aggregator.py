"""
errors/aggregator.py - Aggregate and report anomalies
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List
from datetime import datetime
import uuid

from .taxonomy import PhaseIssue, ErrorCode, ErrorSeverity


@dataclass
class AnomalyReport:
    """Aggregated anomaly report."""

    report_id: str = ""
    created_at: datetime = field(default_factory=datetime.utcnow)

    # Counts
    total: int = 0
    by_severity: Dict[str, int] = field(default_factory=dict)
    by_code: Dict[str, int] = field(default_factory=dict)

    # Phases named in at least one issue
    affected_phases: List[str] = field(default_factory=list)

    summary: str = ""

    issues: List[PhaseIssue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "report_id": self.report_id,
            "total": self.total,
            "by_severity": self.by_severity,
            "by_code": self.by_code,
            "affected_phases": self.affected_phases,
            "summary": self.summary,
            "issues": [i.to_dict() for i in self.issues],
        }


class AnomalyAggregator:
    """
    Collects issues from reconciliation passes and summarises them.
    """

    def __init__(self):
        self._issues: List[PhaseIssue] = []

    def __len__(self) -> int:
        return len(self._issues)

    @property
    def issues(self) -> List[PhaseIssue]:
        return self._issues.copy()

    def add(self, issue: PhaseIssue) -> None:
        """Add an issue."""
        self._issues.append(issue)

    def add_all(self, issues: Iterable[PhaseIssue]) -> None:
        """Add multiple issues."""
        for issue in issues:
            self.add(issue)

    def get_by_code(self, code: ErrorCode) -> List[PhaseIssue]:
        return [i for i in self._issues if i.code == code]

    def get_by_phase(self, phase_id: str) -> List[PhaseIssue]:
        return [i for i in self._issues if i.phase_id == phase_id]

    def has_errors(self) -> bool:
        """Check if any errors (not just warnings)."""
        return any(
            i.severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
            for i in self._issues
        )

    def generate_report(self) -> AnomalyReport:
        """Generate aggregated report."""
        report = AnomalyReport(
            report_id=str(uuid.uuid4())[:8],
            total=len(self._issues),
        )

        for severity in ErrorSeverity:
            count = sum(1 for i in self._issues if i.severity == severity)
            if count > 0:
                report.by_severity[severity.value] = count

        for issue in self._issues:
            report.by_code[issue.code.name] = report.by_code.get(issue.code.name, 0) + 1
            label = issue.phase_name or issue.phase_id
            if label and label not in report.affected_phases:
                report.affected_phases.append(label)

        if report.by_severity.get("error", 0) or report.by_severity.get("critical", 0):
            errors = report.by_severity.get("error", 0) + report.by_severity.get("critical", 0)
            report.summary = f"{errors} error(s) in phase ordering"
        elif report.by_severity.get("warning", 0) > 0:
            report.summary = f"{report.by_severity['warning']} warning(s) corrected on next save"
        else:
            report.summary = "Phase ordering is consistent"

        report.issues = self._issues.copy()

        return report

    def clear(self) -> None:
        self._issues.clear()
