"""
Unit tests for core/state_machine.py

Tests legal transitions, the in-progress gate and transition history.
"""

import pytest

from phaseorder.core.enums import MutationKind, ProjectState
from phaseorder.core.state_machine import (
    LEGAL_TRANSITIONS,
    ProjectStateMachine,
    TransitionEvent,
)
from phaseorder.errors.exceptions import StateTransitionError


class TestProjectStateMachine:
    """Test ProjectStateMachine transitions."""

    def test_initial_state(self):
        machine = ProjectStateMachine("p1")
        assert machine.state == ProjectState.IDLE
        assert machine.is_idle
        assert not machine.is_busy
        assert machine.mutation is None

    def test_mutation_cycle(self):
        """Test IDLE -> MUTATING -> COMMITTING -> RECONCILING -> IDLE."""
        machine = ProjectStateMachine("p1")
        machine.transition(ProjectState.MUTATING, mutation=MutationKind.MOVE)
        assert machine.mutation == MutationKind.MOVE
        assert machine.is_busy

        machine.transition(ProjectState.COMMITTING)
        assert machine.mutation == MutationKind.MOVE

        machine.transition(ProjectState.RECONCILING)
        assert machine.mutation is None
        machine.transition(ProjectState.IDLE)
        assert machine.is_idle

    def test_illegal_transition(self):
        machine = ProjectStateMachine("p1")
        with pytest.raises(StateTransitionError):
            machine.transition(ProjectState.COMMITTING)
        assert machine.state == ProjectState.IDLE

    def test_busy_rejects_new_operation(self):
        """Test a second operation cannot start while one is in flight."""
        machine = ProjectStateMachine("p1")
        machine.transition(ProjectState.MUTATING, mutation=MutationKind.INSERT)

        ok, reason = machine.can_transition(ProjectState.MUTATING)
        assert not ok
        assert "mutating" in reason

    def test_error_recovery(self):
        machine = ProjectStateMachine("p1")
        machine.transition(ProjectState.MUTATING, mutation=MutationKind.DELETE)
        machine.transition(ProjectState.COMMITTING)
        machine.transition(ProjectState.ERROR, reason="disk full")
        assert machine.mutation == MutationKind.DELETE

        machine.transition(ProjectState.RECONCILING)
        machine.transition(ProjectState.IDLE)
        assert machine.is_idle

    def test_every_state_reaches_idle(self):
        """Test IDLE is reachable from every state."""
        for state in ProjectState:
            seen = {state}
            frontier = [state]
            while frontier:
                current = frontier.pop()
                for nxt in LEGAL_TRANSITIONS[current]:
                    if nxt not in seen:
                        seen.add(nxt)
                        frontier.append(nxt)
            assert ProjectState.IDLE in seen or state == ProjectState.IDLE

    def test_reset(self):
        machine = ProjectStateMachine("p1")
        machine.transition(ProjectState.MUTATING, mutation=MutationKind.MOVE)
        machine.reset()
        assert machine.is_idle
        assert machine.mutation is None


class TestTransitionHistory:
    """Test transition event recording."""

    def test_events_recorded(self):
        machine = ProjectStateMachine("p1")
        machine.transition(ProjectState.MUTATING, mutation=MutationKind.INSERT)
        machine.transition(ProjectState.IDLE)

        history = machine.get_history()
        assert [(e.from_state, e.to_state) for e in history] == [
            ("idle", "mutating"),
            ("mutating", "idle"),
        ]
        assert history[0].mutation == "insert"
        assert history[1].mutation == "insert"
        assert history[1].reason == "Phase change rejected"

    def test_history_limit(self):
        machine = ProjectStateMachine("p1", history_limit=3)
        for _ in range(5):
            machine.transition(ProjectState.RECONCILING)
            machine.transition(ProjectState.IDLE)
        assert len(machine.get_history(limit=100)) == 3

    def test_event_round_trip(self):
        event = TransitionEvent(project_id="p1", from_state="idle", to_state="reconciling")
        assert TransitionEvent.from_dict(event.to_dict()) == event

    def test_summary(self):
        machine = ProjectStateMachine("p1")
        machine.transition(ProjectState.MUTATING, mutation=MutationKind.MOVE)
        assert machine.summary() == "Project p1: mutating (move)"
