"""
transactions/schemas.py - Commit transaction records
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from datetime import datetime
from enum import Enum
import uuid

from phaseorder.core.records import PhaseRecord
from phaseorder.planning.schemas import RuleChange


class TransactionStatus(Enum):
    """Transaction status."""
    PENDING = "pending"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


@dataclass
class Transaction:
    """One attempt to replace a project's stored rule set."""

    transaction_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    project_id: str = ""

    status: TransactionStatus = TransactionStatus.PENDING

    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    # Stored phases before the write, restored on rollback
    snapshot: List[PhaseRecord] = field(default_factory=list)

    changes: List[RuleChange] = field(default_factory=list)

    # Set once a write reached the store, successful or not
    written: bool = False
    error: Optional[str] = None

    # Metadata
    source: str = ""
    description: str = ""

    @property
    def is_finished(self) -> bool:
        return self.status in (
            TransactionStatus.COMMITTED,
            TransactionStatus.ROLLED_BACK,
            TransactionStatus.FAILED,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "project_id": self.project_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "num_changes": len(self.changes),
            "changes": [c.to_dict() for c in self.changes],
            "error": self.error,
            "source": self.source,
            "description": self.description,
        }
