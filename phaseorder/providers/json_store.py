"""
providers/json_store.py - JSON file phase store

One JSON document per project. Commits write a temp file next to the
target and swap it in with os.replace, so readers see either the old
rows or the new ones.
"""

from __future__ import annotations
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List
import json
import logging
import os
import tempfile
import threading

from phaseorder.core.records import PhaseRecord
from phaseorder.errors.exceptions import LoadError
from phaseorder.planning.schemas import RuleSet

logger = logging.getLogger("providers.json_store")


class JsonFilePhaseStore:
    """Phase rows persisted as ``<base_dir>/<project_id>.json``."""

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, project_id: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in project_id)
        return self.base_dir / f"{safe}.json"

    def load_phases(self, project_id: str) -> List[PhaseRecord]:
        path = self._path(project_id)
        if not path.exists():
            return []

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise LoadError(f"Cannot read phases for {project_id}: {e}", project_id=project_id) from e

        try:
            return [PhaseRecord.from_dict(row) for row in data.get("phases", [])]
        except (KeyError, TypeError, AttributeError) as e:
            raise LoadError(f"Malformed phase row for {project_id}: {e!r}", project_id=project_id) from e

    def commit_phases(self, project_id: str, rule_set: RuleSet) -> bool:
        rows = []
        for phase in rule_set.phases:
            row = phase.to_dict()
            row.pop("resolved_index", None)
            rows.append(row)

        document: Dict[str, Any] = {
            "project_id": project_id,
            "updated_at": datetime.utcnow().isoformat(),
            "phases": rows,
        }

        path = self._path(project_id)
        with self._lock:
            fd, tmp_name = tempfile.mkstemp(dir=str(self.base_dir), prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, indent=2, default=str)
                os.replace(tmp_name, path)
            except OSError as e:
                logger.error(f"Commit for {project_id} failed: {e}")
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                return False

        logger.debug(f"Wrote {len(rows)} phase row(s) to {path}")
        return True
