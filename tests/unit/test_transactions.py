"""
Unit tests for transactions/manager.py

Tests snapshot, commit and rollback around a phase store.
"""

import pytest

from phaseorder.core.rules import PositionRule
from phaseorder.errors.exceptions import CommitError
from phaseorder.planning.planner import plan_move
from phaseorder.planning.schemas import RuleSet
from phaseorder.providers.memory import InMemoryPhaseStore
from phaseorder.transactions.manager import TransactionManager
from phaseorder.transactions.schemas import TransactionStatus

PROJECT_ID = "project-1"


def stored_rules(store):
    return {p.id: p.position_rule for p in store.load_phases(PROJECT_ID)}


@pytest.fixture
def moved(mixed_phases) -> RuleSet:
    """Proposal swapping Design and Build."""
    return plan_move(mixed_phases, "build", 3).rule_set


class TestTransactionManager:
    """Test TransactionManager commits."""

    def test_commit(self, store, moved):
        manager = TransactionManager(store)
        tx = manager.commit_rule_set(PROJECT_ID, moved, source="move")

        assert tx.status == TransactionStatus.COMMITTED
        assert tx.completed_at is not None
        assert {c.phase_id for c in tx.changes} == {"build", "design"}
        assert stored_rules(store)["build"] == PositionRule.nth(3)
        assert manager.get_history()[-1] is tx
        assert manager.active_transactions == []

    def test_rejected_commit_restores_snapshot(self, store, moved, mixed_phases):
        """Test a refused write leaves the previous rules in place."""
        manager = TransactionManager(store)
        store.fail_next_commit = True

        with pytest.raises(CommitError):
            manager.commit_rule_set(PROJECT_ID, moved)

        assert stored_rules(store) == {p.id: p.position_rule for p in mixed_phases}
        tx = manager.get_history()[-1]
        assert tx.status == TransactionStatus.ROLLED_BACK
        assert tx.error

    def test_partial_write_rolled_back(self, store, moved, mixed_phases):
        """Test a write that dies midway is undone."""
        manager = TransactionManager(store)
        store.fail_after_rows = 3

        with pytest.raises(CommitError) as exc:
            manager.commit_rule_set(PROJECT_ID, moved)

        assert isinstance(exc.value.__cause__, IOError)
        assert stored_rules(store) == {p.id: p.position_rule for p in mixed_phases}
        assert [p.id for p in store.load_phases(PROJECT_ID)] == [p.id for p in mixed_phases]

    def test_exception_before_write_skips_restore(self, store):
        manager = TransactionManager(store)
        commits_before = store.commit_count

        with pytest.raises(RuntimeError):
            with manager.transaction(PROJECT_ID):
                raise RuntimeError("planner blew up")

        assert store.commit_count == commits_before
        assert manager.get_history()[-1].status == TransactionStatus.ROLLED_BACK

    def test_failed_restore_marks_failed(self, store, moved):
        class BrokenStore(InMemoryPhaseStore):
            def commit_phases(self, project_id, rule_set):
                raise IOError("gone")

        broken = BrokenStore({PROJECT_ID: store.load_phases(PROJECT_ID)})
        manager = TransactionManager(broken)

        with pytest.raises(CommitError):
            manager.commit_rule_set(PROJECT_ID, moved)
        assert manager.get_history()[-1].status == TransactionStatus.FAILED

    def test_commit_unknown_transaction(self, store):
        manager = TransactionManager(store)
        assert not manager.commit("nope")
        assert not manager.rollback("nope")

    def test_history_limit_and_filter(self, store, moved):
        manager = TransactionManager(store, history_limit=2)
        for _ in range(3):
            manager.commit_rule_set(PROJECT_ID, moved)
        manager.commit_rule_set("other", RuleSet())

        assert len(manager.get_history(limit=10)) == 2
        assert [t.project_id for t in manager.get_history(project_id="other")] == ["other"]

    def test_to_dict(self, store, moved):
        tx = TransactionManager(store).commit_rule_set(PROJECT_ID, moved, description="swap")
        data = tx.to_dict()
        assert data["status"] == "committed"
        assert data["num_changes"] == 2
        assert data["description"] == "swap"
