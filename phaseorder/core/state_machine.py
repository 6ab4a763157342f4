"""
phaseorder Project State Machine

One machine per project gates which ordering operations are accepted:
IDLE -> MUTATING -> COMMITTING -> RECONCILING -> IDLE, with ERROR as the
landing state for failed commits or loads.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import logging
import uuid

from phaseorder.core.enums import ProjectState, MutationKind
from phaseorder.errors.exceptions import StateTransitionError

logger = logging.getLogger("core.state_machine")


# ==================== Legal State Transitions ====================

LEGAL_TRANSITIONS: Dict[ProjectState, List[ProjectState]] = {
    ProjectState.IDLE: [
        ProjectState.RECONCILING,
        ProjectState.MUTATING,
    ],

    ProjectState.RECONCILING: [
        ProjectState.IDLE,
        ProjectState.ERROR,
    ],

    ProjectState.MUTATING: [
        ProjectState.COMMITTING,
        ProjectState.IDLE,         # Planner rejected the request
    ],

    ProjectState.COMMITTING: [
        ProjectState.RECONCILING,
        ProjectState.ERROR,
    ],

    ProjectState.ERROR: [
        ProjectState.RECONCILING,
        ProjectState.IDLE,
    ],
}

TRANSITION_DESCRIPTIONS: Dict[Tuple[ProjectState, ProjectState], str] = {
    (ProjectState.IDLE, ProjectState.RECONCILING): "Loading phases",
    (ProjectState.IDLE, ProjectState.MUTATING): "Planning a phase change",
    (ProjectState.RECONCILING, ProjectState.IDLE): "Phases reconciled",
    (ProjectState.RECONCILING, ProjectState.ERROR): "Loading phases failed",
    (ProjectState.MUTATING, ProjectState.COMMITTING): "Saving new phase order",
    (ProjectState.MUTATING, ProjectState.IDLE): "Phase change rejected",
    (ProjectState.COMMITTING, ProjectState.RECONCILING): "Reloading after save",
    (ProjectState.COMMITTING, ProjectState.ERROR): "Saving phase order failed",
    (ProjectState.ERROR, ProjectState.RECONCILING): "Recovering from stored order",
    (ProjectState.ERROR, ProjectState.IDLE): "Error acknowledged",
}


# ==================== Transition Event ====================

@dataclass
class TransitionEvent:
    """
    Record of a project state transition.
    """
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=lambda: datetime.utcnow().isoformat())
    project_id: str = ""
    from_state: str = ""
    to_state: str = ""
    mutation: Optional[str] = None
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransitionEvent":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


# ==================== State Machine ====================

class ProjectStateMachine:
    """
    Tracks the ordering state of a single project.

    A project accepts a new operation only while IDLE; this is the single
    "operation in progress" flag for the project.
    """

    def __init__(self, project_id: str, history_limit: int = 100):
        self.project_id = project_id
        self._state = ProjectState.IDLE
        self._mutation: Optional[MutationKind] = None
        self._history: List[TransitionEvent] = []
        self._history_limit = history_limit

    @property
    def state(self) -> ProjectState:
        return self._state

    @property
    def mutation(self) -> Optional[MutationKind]:
        """Kind of mutation in flight, if any."""
        return self._mutation

    @property
    def is_idle(self) -> bool:
        return self._state == ProjectState.IDLE

    @property
    def is_busy(self) -> bool:
        return self._state in (
            ProjectState.RECONCILING,
            ProjectState.MUTATING,
            ProjectState.COMMITTING,
        )

    @staticmethod
    def is_valid_transition(from_state: ProjectState, to_state: ProjectState) -> bool:
        return to_state in LEGAL_TRANSITIONS.get(from_state, [])

    def can_transition(self, to_state: ProjectState) -> Tuple[bool, Optional[str]]:
        """
        Check whether the machine may move to ``to_state``.

        Returns:
            Tuple of (is_valid, reason_if_invalid)
        """
        if self.is_valid_transition(self._state, to_state):
            return True, None
        valid = [s.value for s in LEGAL_TRANSITIONS.get(self._state, [])]
        return False, (
            f"Transition from {self._state.value} to {to_state.value} not allowed. "
            f"Valid targets: {valid}"
        )

    def transition(
        self,
        to_state: ProjectState,
        reason: str = "",
        mutation: Optional[MutationKind] = None,
    ) -> TransitionEvent:
        """
        Move to ``to_state``.

        Raises:
            StateTransitionError: if the transition is not legal
        """
        ok, why = self.can_transition(to_state)
        if not ok:
            raise StateTransitionError(
                why,
                project_id=self.project_id,
                from_state=self._state.value,
                to_state=to_state.value,
            )

        kind = mutation or self._mutation
        event = TransitionEvent(
            project_id=self.project_id,
            from_state=self._state.value,
            to_state=to_state.value,
            mutation=kind.value if kind else None,
            reason=reason or TRANSITION_DESCRIPTIONS.get((self._state, to_state), ""),
        )

        if to_state == ProjectState.MUTATING:
            self._mutation = mutation
        elif to_state in (ProjectState.IDLE, ProjectState.RECONCILING):
            self._mutation = None
        self._state = to_state
        self._record(event)

        logger.debug(
            f"Project {self.project_id}: {event.from_state} -> {event.to_state}"
            + (f" ({event.mutation})" if event.mutation else "")
        )
        return event

    def reset(self) -> None:
        """Force the machine back to IDLE; used after recovery fails."""
        self._state = ProjectState.IDLE
        self._mutation = None

    def _record(self, event: TransitionEvent) -> None:
        self._history.append(event)
        if len(self._history) > self._history_limit:
            self._history = self._history[-self._history_limit:]

    def get_history(self, limit: int = 20) -> List[TransitionEvent]:
        return self._history[-limit:]

    def summary(self) -> str:
        mutation = f" ({self._mutation.value})" if self._mutation else ""
        return f"Project {self.project_id}: {self._state.value}{mutation}"
