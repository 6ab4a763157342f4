"""
session/registry.py - One service per project

Keeps a PhaseOrderService (and so a single state machine) per project
id. The template project is always opened in template edit.
"""

from __future__ import annotations
from typing import Dict, List, Optional
import logging
import threading

from phaseorder.bootstrap.config import EngineConfig
from phaseorder.core.enums import EditMode
from phaseorder.core.records import PhaseRecord
from phaseorder.errors.exceptions import CommitError
from phaseorder.planning.schemas import RuleSet
from phaseorder.providers.memory import StoreTemplateProvider, seed_project
from phaseorder.providers.protocols import PersistenceAdapter, TemplateProvider
from .service import PhaseOrderService

logger = logging.getLogger("session.registry")


class ServiceRegistry:
    """Lazily created services sharing one store and template provider."""

    def __init__(
        self,
        store: PersistenceAdapter,
        template_provider: Optional[TemplateProvider] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.store = store
        self.config = config or EngineConfig()
        self.template_provider = template_provider or StoreTemplateProvider(
            store, self.config.template_project_id
        )
        self._services: Dict[str, PhaseOrderService] = {}
        self._lock = threading.Lock()

    def mode_for(self, project_id: str) -> EditMode:
        if project_id == self.config.template_project_id:
            return EditMode.TEMPLATE_EDIT
        return EditMode.PROJECT_EDIT

    def get(self, project_id: str) -> PhaseOrderService:
        """Service for ``project_id``, created and refreshed on first use."""
        with self._lock:
            service = self._services.get(project_id)
            if service is None:
                service = PhaseOrderService(
                    project_id,
                    self.store,
                    self.template_provider,
                    mode=self.mode_for(project_id),
                    config=self.config,
                )
                self._services[project_id] = service
                created = True
            else:
                created = False

        if created:
            logger.debug(f"Opened {service.mode.value} service for {project_id}")
            service.refresh()
        return service

    def seed(self, project_id: str) -> List[PhaseRecord]:
        """
        Give an empty project one standard phase per template entry.

        Returns the stored phases; a project that already has phases is
        left untouched.

        Raises:
            CommitError: the store rejected the seed rows
        """
        existing = self.store.load_phases(project_id)
        if existing:
            return existing

        phases = seed_project(self.template_provider.get_template())
        if phases and not self.store.commit_phases(project_id, RuleSet.from_phases(phases)):
            raise CommitError(f"Seeding {project_id} was rejected by the store", project_id=project_id)

        logger.info(f"Seeded {project_id} with {len(phases)} standard phase(s)")

        with self._lock:
            service = self._services.get(project_id)
        if service is not None:
            service.refresh()
        return phases

    def project_ids(self) -> List[str]:
        with self._lock:
            return list(self._services.keys())
