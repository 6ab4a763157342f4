"""
providers/memory.py - In-memory store and template providers
"""

from __future__ import annotations
from typing import Any, Dict, Iterable, List, Optional, Union
import copy
import logging
import threading

from phaseorder.core.enums import EditMode
from phaseorder.core.records import PhaseRecord, TemplateEntry
from phaseorder.planning.schemas import RuleSet
from phaseorder.reconcile.reconciler import reconcile

logger = logging.getLogger("providers.memory")


def _row(phase: PhaseRecord) -> Dict[str, Any]:
    """Storage row without the transient resolved_index."""
    row = phase.to_dict()
    row.pop("resolved_index", None)
    return row


class InMemoryPhaseStore:
    """
    Phase rows kept in a dict keyed by project id.

    Commits swap the whole project row list under a lock. For tests,
    ``fail_next_commit`` makes the next commit report failure and
    ``fail_after_rows`` simulates a backend that dies part-way through
    writing rows.
    """

    def __init__(self, projects: Optional[Dict[str, Iterable[PhaseRecord]]] = None):
        self._rows: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = threading.Lock()
        self.commit_count = 0

        # Fault injection
        self.fail_next_commit = False
        self.fail_after_rows: Optional[int] = None

        for project_id, phases in (projects or {}).items():
            self._rows[project_id] = [_row(p) for p in phases]

    def load_phases(self, project_id: str) -> List[PhaseRecord]:
        with self._lock:
            rows = copy.deepcopy(self._rows.get(project_id, []))
        return [PhaseRecord.from_dict(r) for r in rows]

    def commit_phases(self, project_id: str, rule_set: RuleSet) -> bool:
        rows = [_row(p) for p in rule_set.phases]

        with self._lock:
            if self.fail_next_commit:
                self.fail_next_commit = False
                logger.warning(f"Commit for {project_id} rejected (injected)")
                return False

            if self.fail_after_rows is not None:
                # Non-atomic backend: rows land one at a time and the write dies midway
                limit = self.fail_after_rows
                self.fail_after_rows = None
                existing = {r["id"]: r for r in self._rows.get(project_id, [])}
                for row in rows[:limit]:
                    existing[row["id"]] = row
                self._rows[project_id] = list(existing.values())
                raise IOError(f"Connection lost after {limit} row(s)")

            self._rows[project_id] = rows
            self.commit_count += 1

        logger.debug(f"Committed {len(rows)} phase row(s) for {project_id}")
        return True

    def project_ids(self) -> List[str]:
        with self._lock:
            return list(self._rows.keys())


class StaticTemplateProvider:
    """Template supplied up front."""

    def __init__(self, entries: Iterable[Union[TemplateEntry, Dict[str, Any]]] = ()):
        self._entries = [
            e if isinstance(e, TemplateEntry) else TemplateEntry.from_dict(e)
            for e in entries
        ]

    def get_template(self) -> List[TemplateEntry]:
        return list(self._entries)

    def set_template(self, entries: Iterable[TemplateEntry]) -> None:
        self._entries = list(entries)


class StoreTemplateProvider:
    """
    Template read from the standard phases of the template project.

    The template project is reconciled in template-edit mode so its own
    anchors are taken as they are stored.
    """

    def __init__(self, store: Any, template_project_id: str):
        self._store = store
        self.template_project_id = template_project_id

    def get_template(self) -> List[TemplateEntry]:
        phases = self._store.load_phases(self.template_project_id)
        ordered = reconcile(phases, mode=EditMode.TEMPLATE_EDIT).phases
        return template_from_phases(ordered)


def template_from_phases(phases: Iterable[PhaseRecord]) -> List[TemplateEntry]:
    """Template entries for the standard phases of an ordered sequence."""
    return [
        TemplateEntry(name=p.name, position_rule=p.position_rule)
        for p in phases
        if p.is_template_owned and p.position_rule is not None
    ]


def seed_project(template: Iterable[TemplateEntry]) -> List[PhaseRecord]:
    """Standard phase rows for a new project, one per template entry."""
    return [
        PhaseRecord.create(entry.name, entry.position_rule, is_standard=True)
        for entry in template
    ]
