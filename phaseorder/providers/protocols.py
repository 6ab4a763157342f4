"""
providers/protocols.py - External collaborator interfaces

The engine only reads the template and reads/writes phase rows through
these protocols; storage technology stays behind them.
"""

from typing import List, Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from phaseorder.core.records import PhaseRecord, TemplateEntry
    from phaseorder.planning.schemas import RuleSet

__all__ = [
    "TemplateProvider",
    "PersistenceAdapter",
]


class TemplateProvider(Protocol):
    """
    Supplies the canonical ordering of standard phases.

    Read-only outside template editing.
    """

    def get_template(self) -> List["TemplateEntry"]:
        """Ordered template entries (name + rule)."""
        ...


class PersistenceAdapter(Protocol):
    """
    Durable store for phase rows.

    ``commit_phases`` must apply the whole rule set or nothing.
    """

    def load_phases(self, project_id: str) -> List["PhaseRecord"]:
        """
        Load all phase rows for a project.

        Raises:
            LoadError: if the rows cannot be read
        """
        ...

    def commit_phases(self, project_id: str, rule_set: "RuleSet") -> bool:
        """
        Replace the project's phase rows with ``rule_set``.

        Returns:
            True on success, False if the store rejected the write
        """
        ...
