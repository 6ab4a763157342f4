"""
phaseorder Phase Records

Phase identity plus placement rule, and canonical template entries.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple
import logging
import uuid

from phaseorder.core.rules import PositionRule

logger = logging.getLogger("core.records")


def name_key(name: str) -> str:
    """Case-insensitive comparison key for phase names."""
    return (name or "").strip().casefold()


@dataclass(frozen=True)
class PhaseRecord:
    """
    A top-level phase of a project plan.

    ``resolved_index`` is derived by reconciliation and never persisted.
    """
    id: str
    name: str
    is_standard: bool = False
    is_linked: bool = False
    position_rule: Optional[PositionRule] = None
    resolved_index: Optional[int] = None

    # Incorporated phases point back at their origin
    source_project_id: Optional[str] = None
    source_phase_id: Optional[str] = None

    @classmethod
    def create(
        cls,
        name: str,
        rule: Optional[PositionRule] = None,
        is_standard: bool = False,
        phase_id: str = None,
    ) -> "PhaseRecord":
        """New phase with a generated id."""
        return cls(
            id=phase_id or str(uuid.uuid4()),
            name=name,
            is_standard=is_standard,
            position_rule=rule,
        )

    @property
    def identity(self) -> Tuple[str, Optional[str]]:
        """Deduplication key: linked phases are unique per source project."""
        if self.is_linked:
            return self.id, self.source_project_id
        return self.id, None

    @property
    def name_key(self) -> str:
        return name_key(self.name)

    @property
    def is_template_owned(self) -> bool:
        """Standard phase whose rule comes from the template."""
        return self.is_standard and not self.is_linked

    def with_rule(self, rule: Optional[PositionRule]) -> "PhaseRecord":
        return replace(self, position_rule=rule)

    def with_index(self, index: Optional[int]) -> "PhaseRecord":
        return replace(self, resolved_index=index)

    def to_dict(self) -> Dict[str, Any]:
        """Storage row; resolved_index is included only for display."""
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "is_standard": self.is_standard,
            "is_linked": self.is_linked,
            "position_rule": None,
            "position_value": None,
            "source_project_id": self.source_project_id,
            "source_phase_id": self.source_phase_id,
        }
        if self.position_rule is not None:
            data.update(self.position_rule.to_dict())
        if self.resolved_index is not None:
            data["resolved_index"] = self.resolved_index
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PhaseRecord":
        """
        Build a record from a storage row.

        A malformed rule is dropped rather than raised; reconciliation
        reports the phase as missing its rule.
        """
        rule = None
        if data.get("position_rule"):
            try:
                rule = PositionRule.from_storage(data["position_rule"], data.get("position_value"))
            except ValueError as e:
                logger.warning(f"Dropping malformed rule on phase {data.get('id')}: {e}")

        source_project_id = data.get("source_project_id")
        is_linked = bool(data.get("is_linked", False)) or bool(
            source_project_id and data.get("source_phase_id")
        )

        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            is_standard=bool(data.get("is_standard", False)),
            is_linked=is_linked,
            position_rule=rule,
            source_project_id=source_project_id,
            source_phase_id=data.get("source_phase_id"),
        )


@dataclass(frozen=True)
class TemplateEntry:
    """Canonical placement of one standard phase."""
    name: str
    position_rule: PositionRule

    def to_dict(self) -> Dict[str, Any]:
        data = {"name": self.name}
        data.update(self.position_rule.to_dict())
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TemplateEntry":
        return cls(
            name=data["name"],
            position_rule=PositionRule.from_storage(data.get("position_rule"), data.get("position_value")),
        )
