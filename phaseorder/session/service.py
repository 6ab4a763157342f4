"""
session/service.py - Per-project phase ordering service

Drives one project through reconcile -> plan -> commit -> reconcile.
The project state machine is the only in-progress flag: any operation
started while the project is not IDLE is rejected, never queued.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
import logging
import threading

from phaseorder.bootstrap.config import EngineConfig
from phaseorder.core.enums import EditMode, MutationKind, ProjectState
from phaseorder.core.records import PhaseRecord
from phaseorder.core.state_machine import ProjectStateMachine
from phaseorder.errors.exceptions import CommitError, LoadError, StateTransitionError
from phaseorder.errors.taxonomy import Anomaly, ErrorCode, Rejection, create_rejection
from phaseorder.planning.naming import PositionOption, option_to_index, unique_phase_name
from phaseorder.planning.planner import (
    plan_delete,
    plan_incorporate,
    plan_insert,
    plan_move,
    plan_move_down,
    plan_move_up,
)
from phaseorder.planning.schemas import PlanResult, RuleSet
from phaseorder.providers.protocols import PersistenceAdapter, TemplateProvider
from phaseorder.reconcile.reconciler import ReconcileResult, reconcile
from phaseorder.transactions.manager import TransactionManager

logger = logging.getLogger("session.service")

Planner = Callable[[List[PhaseRecord]], PlanResult]


@dataclass
class OperationResult:
    """Outcome of a service operation."""

    success: bool
    phases: List[PhaseRecord] = field(default_factory=list)
    anomalies: List[Anomaly] = field(default_factory=list)
    rejection: Optional[Rejection] = None
    transaction_id: Optional[str] = None
    target_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "phases": [p.to_dict() for p in self.phases],
            "anomalies": [a.to_dict() for a in self.anomalies],
            "rejection": self.rejection.to_dict() if self.rejection else None,
            "transaction_id": self.transaction_id,
            "target_id": self.target_id,
        }


class PhaseOrderService:
    """
    Ordering operations for a single project.

    Usage:
        service = PhaseOrderService("project-1", store, templates)
        service.refresh()
        result = service.add_phase("Permitting")
        if not result.success:
            print(result.rejection.user_message)
    """

    def __init__(
        self,
        project_id: str,
        store: PersistenceAdapter,
        template_provider: Optional[TemplateProvider] = None,
        mode: EditMode = EditMode.PROJECT_EDIT,
        config: Optional[EngineConfig] = None,
    ):
        self.project_id = project_id
        self.store = store
        self.template_provider = template_provider
        self.mode = mode
        self.config = config or EngineConfig()

        self.machine = ProjectStateMachine(project_id, history_limit=self.config.history_limit)
        self.transactions = TransactionManager(store, history_limit=self.config.history_limit)

        self._lock = threading.Lock()
        self._phases: List[PhaseRecord] = []
        self._anomalies: List[Anomaly] = []

    # ==================== Properties ====================

    @property
    def state(self) -> ProjectState:
        return self.machine.state

    @property
    def phases(self) -> List[PhaseRecord]:
        """Last reconciled order."""
        return list(self._phases)

    @property
    def anomalies(self) -> List[Anomaly]:
        return list(self._anomalies)

    # ==================== Operations ====================

    def refresh(self) -> OperationResult:
        """Reload and reconcile the stored phases."""
        busy = self._acquire(ProjectState.RECONCILING)
        if busy is not None:
            return busy
        return self._finish_reconcile()

    def recover(self) -> OperationResult:
        """Rebuild the displayed order from the store after an error."""
        if self.machine.state == ProjectState.ERROR:
            self.machine.transition(ProjectState.RECONCILING, reason="Manual recovery")
            return self._finish_reconcile()
        return self.refresh()

    def add_phase(self, name: Optional[str] = None, phase_id: Optional[str] = None) -> OperationResult:
        """Add a new phase; custom in project edit, standard in template edit."""
        def planner(current: List[PhaseRecord]) -> PlanResult:
            phase_name = name or unique_phase_name(
                (p.name for p in current), self.config.new_phase_name
            )
            new_phase = PhaseRecord.create(phase_name, phase_id=phase_id)
            return plan_insert(current, new_phase, self.mode, self.config.reserved_leading_slots)

        return self._mutate(MutationKind.INSERT, planner)

    def incorporate_phase(
        self,
        name: str,
        source_project_id: str,
        source_phase_id: str,
        phase_id: Optional[str] = None,
    ) -> OperationResult:
        """Link a phase from another project into this one."""
        linked = PhaseRecord(
            id=phase_id or source_phase_id,
            name=name,
            is_linked=True,
            source_project_id=source_project_id,
            source_phase_id=source_phase_id,
        )

        def planner(current: List[PhaseRecord]) -> PlanResult:
            return plan_incorporate(current, linked, self.config.reserved_leading_slots)

        return self._mutate(MutationKind.INCORPORATE, planner)

    def move_phase(self, phase_id: str, position: PositionOption) -> OperationResult:
        """
        Move a phase to ``position``.

        Args:
            phase_id: Phase to move
            position: 1-based index, or "First" / "Last"
        """
        def planner(current: List[PhaseRecord]) -> PlanResult:
            try:
                index = option_to_index(position, len(current))
            except ValueError:
                return PlanResult.failed(
                    RuleSet.from_phases(current),
                    create_rejection(
                        ErrorCode.OUT_OF_RANGE,
                        f"Cannot interpret position {position!r}",
                        phase_id=phase_id,
                        actual=position,
                    ),
                    target_id=phase_id,
                )
            return plan_move(current, phase_id, index, self.mode)

        return self._mutate(MutationKind.MOVE, planner)

    def move_up(self, phase_id: str) -> OperationResult:
        return self._mutate(
            MutationKind.MOVE,
            lambda current: plan_move_up(current, phase_id, self.mode),
        )

    def move_down(self, phase_id: str) -> OperationResult:
        return self._mutate(
            MutationKind.MOVE,
            lambda current: plan_move_down(current, phase_id, self.mode),
        )

    def delete_phase(self, phase_id: str) -> OperationResult:
        return self._mutate(
            MutationKind.DELETE,
            lambda current: plan_delete(current, phase_id, self.mode),
        )

    # ==================== Internals ====================

    def _acquire(self, to_state: ProjectState, mutation: Optional[MutationKind] = None) -> Optional[OperationResult]:
        """Leave IDLE for ``to_state``, or return the in-progress rejection."""
        with self._lock:
            if self.machine.is_idle:
                try:
                    self.machine.transition(to_state, mutation=mutation)
                    return None
                except StateTransitionError as e:
                    detail = e.message
            else:
                detail = f"{to_state.value} requires {ProjectState.IDLE.value}"

            logger.info(f"Project {self.project_id}: rejected, {self.machine.summary()}")
            return self._failed(create_rejection(
                ErrorCode.OPERATION_IN_PROGRESS,
                f"Project {self.project_id} is {self.machine.state.value}: {detail}",
                actual=self.machine.state.value,
                expected=ProjectState.IDLE.value,
                source="service",
            ))

    def _mutate(self, kind: MutationKind, planner: Planner) -> OperationResult:
        busy = self._acquire(ProjectState.MUTATING, mutation=kind)
        if busy is not None:
            return busy

        try:
            current = self._load().phases
        except LoadError as e:
            self.machine.transition(ProjectState.IDLE, reason="Load failed before planning")
            return self._failed(create_rejection(
                ErrorCode.LOAD_FAILED, e.message, source="service",
            ))
        except Exception:
            self.machine.reset()
            raise

        try:
            plan = planner(current)
        except Exception:
            self.machine.reset()
            raise

        if not plan.success:
            self.machine.transition(ProjectState.IDLE)
            return self._failed(plan.rejection, target_id=plan.target_id)

        rule_set = plan.rule_set
        if not rule_set.removed and not rule_set.diff(current):
            self.machine.transition(ProjectState.IDLE, reason="Nothing to save")
            return OperationResult(
                success=True,
                phases=self.phases,
                anomalies=self.anomalies,
                target_id=plan.target_id,
            )

        self.machine.transition(ProjectState.COMMITTING)
        try:
            tx = self.transactions.commit_rule_set(
                self.project_id,
                rule_set,
                source=kind.value,
                description=f"{kind.value} {plan.target_id or ''}".strip(),
            )
        except (CommitError, LoadError) as e:
            return self._recover_from_commit(e, plan.target_id)

        self.machine.transition(ProjectState.RECONCILING)
        result = self._finish_reconcile()
        result.transaction_id = tx.transaction_id
        result.target_id = plan.target_id
        return result

    def _recover_from_commit(self, error: Exception, target_id: Optional[str]) -> OperationResult:
        self.machine.transition(ProjectState.ERROR, reason=str(error))
        logger.error(f"Project {self.project_id}: commit failed, restoring stored order: {error}")

        self.machine.transition(ProjectState.RECONCILING)
        recovered = self._finish_reconcile()

        rejection = create_rejection(
            ErrorCode.COMMIT_FAILED,
            str(error),
            phase_id=target_id,
            source="service",
        )
        return OperationResult(
            success=False,
            phases=recovered.phases,
            anomalies=recovered.anomalies,
            rejection=rejection,
            transaction_id=getattr(error, "context", {}).get("transaction_id"),
            target_id=target_id,
        )

    def _finish_reconcile(self) -> OperationResult:
        """RECONCILING -> IDLE (or ERROR -> IDLE when the store is unreadable)."""
        try:
            result = self._load()
        except LoadError as e:
            logger.error(f"Project {self.project_id}: {e.message}")
            self.machine.transition(ProjectState.ERROR, reason=e.message)
            self.machine.transition(ProjectState.IDLE)
            return self._failed(create_rejection(
                ErrorCode.LOAD_FAILED, e.message, source="service",
            ))
        except Exception as e:
            logger.error(f"Project {self.project_id}: reconciling failed: {e}")
            self.machine.transition(ProjectState.ERROR, reason=str(e))
            self.machine.transition(ProjectState.IDLE)
            raise

        self._phases = result.phases
        self._anomalies = result.anomalies
        self.machine.transition(ProjectState.IDLE)

        return OperationResult(success=True, phases=self.phases, anomalies=self.anomalies)

    def _load(self) -> ReconcileResult:
        phases = self.store.load_phases(self.project_id)
        template = None
        if self.template_provider is not None and self.mode == EditMode.PROJECT_EDIT:
            template = self.template_provider.get_template()
        return reconcile(phases, template, self.mode)

    def _failed(self, rejection: Rejection, target_id: Optional[str] = None) -> OperationResult:
        return OperationResult(
            success=False,
            phases=self.phases,
            anomalies=self.anomalies,
            rejection=rejection,
            target_id=target_id,
        )
