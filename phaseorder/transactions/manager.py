"""
transactions/manager.py - Rule set commits with rollback

A commit replaces every stored rule of a project in one call. The
manager snapshots the stored rows first; if the store refuses the write
or dies part-way, the snapshot is written back so no mixed old/new rule
set survives.
"""

from __future__ import annotations
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Optional
import logging

from phaseorder.errors.exceptions import CommitError
from phaseorder.planning.schemas import RuleSet
from phaseorder.providers.protocols import PersistenceAdapter
from .schemas import Transaction, TransactionStatus


class TransactionManager:
    """
    Wraps a PersistenceAdapter with snapshot/commit/rollback.
    """

    def __init__(self, store: PersistenceAdapter, history_limit: int = 100):
        self.store = store
        self.logger = logging.getLogger("transactions")

        # Active transactions by id
        self._transactions: Dict[str, Transaction] = {}

        # Completed transactions (for audit)
        self._history: List[Transaction] = []
        self._max_history = history_limit

    @property
    def active_transactions(self) -> List[Transaction]:
        return list(self._transactions.values())

    def begin(
        self,
        project_id: str,
        source: str = "",
        description: str = "",
    ) -> Transaction:
        """Begin a transaction, snapshotting the stored phases."""
        tx = Transaction(
            project_id=project_id,
            status=TransactionStatus.ACTIVE,
            source=source,
            description=description,
        )
        tx.snapshot = self.store.load_phases(project_id)

        self._transactions[tx.transaction_id] = tx
        self.logger.info(f"Transaction {tx.transaction_id} started for {project_id}")

        return tx

    def write(self, tx: Transaction, rule_set: RuleSet) -> None:
        """
        Send ``rule_set`` to the store inside ``tx``.

        Raises:
            CommitError: the store returned False or raised
        """
        if tx.status != TransactionStatus.ACTIVE:
            raise CommitError(
                f"Transaction {tx.transaction_id} is {tx.status.value}",
                transaction_id=tx.transaction_id,
            )

        tx.changes = rule_set.diff(tx.snapshot)
        tx.written = True

        try:
            accepted = self.store.commit_phases(tx.project_id, rule_set)
        except Exception as e:
            tx.error = str(e)
            raise CommitError(
                f"Commit for {tx.project_id} failed: {e}",
                transaction_id=tx.transaction_id,
                project_id=tx.project_id,
            ) from e

        if not accepted:
            tx.error = "store rejected the rule set"
            raise CommitError(
                f"Commit for {tx.project_id} was rejected by the store",
                transaction_id=tx.transaction_id,
                project_id=tx.project_id,
            )

    def commit(self, transaction_id: str) -> bool:
        """Mark a transaction committed."""
        tx = self._transactions.get(transaction_id)
        if tx is None:
            self.logger.error(f"Cannot commit: transaction {transaction_id} not found")
            return False

        if tx.status != TransactionStatus.ACTIVE:
            self.logger.error(f"Cannot commit: transaction {transaction_id} is {tx.status.value}")
            return False

        tx.status = TransactionStatus.COMMITTED
        self._finish(tx)

        self.logger.info(
            f"Transaction {transaction_id} committed ({len(tx.changes)} rule change(s))"
        )
        return True

    def rollback(self, transaction_id: str) -> bool:
        """
        Restore the snapshot if anything was written.

        Returns False when the restore itself fails; the transaction is then
        left FAILED and the store may hold a partial write.
        """
        tx = self._transactions.get(transaction_id)
        if tx is None:
            self.logger.error(f"Cannot rollback: transaction {transaction_id} not found")
            return False

        if tx.status != TransactionStatus.ACTIVE:
            self.logger.error(f"Cannot rollback: transaction {transaction_id} is {tx.status.value}")
            return False

        restored = True
        if tx.written:
            try:
                restored = self.store.commit_phases(tx.project_id, RuleSet.from_phases(tx.snapshot))
            except Exception as e:
                self.logger.error(f"Restoring snapshot for {tx.project_id} raised: {e}")
                restored = False

        tx.status = TransactionStatus.ROLLED_BACK if restored else TransactionStatus.FAILED
        self._finish(tx)

        if restored:
            self.logger.info(f"Transaction {transaction_id} rolled back")
        else:
            self.logger.error(
                f"Transaction {transaction_id} could not be rolled back; "
                f"stored phases for {tx.project_id} may be inconsistent"
            )
        return restored

    @contextmanager
    def transaction(
        self,
        project_id: str,
        source: str = "",
        description: str = "",
    ) -> Iterator[Transaction]:
        """Context manager for transactions."""
        tx = self.begin(project_id, source=source, description=description)
        try:
            yield tx
            self.commit(tx.transaction_id)
        except Exception:
            self.rollback(tx.transaction_id)
            raise

    def commit_rule_set(
        self,
        project_id: str,
        rule_set: RuleSet,
        source: str = "",
        description: str = "",
    ) -> Transaction:
        """
        Replace the stored rule set of ``project_id``.

        Raises:
            CommitError: the write failed; the snapshot has been restored
        """
        with self.transaction(project_id, source=source, description=description) as tx:
            self.write(tx, rule_set)
        return tx

    def _finish(self, tx: Transaction) -> None:
        tx.completed_at = datetime.utcnow()
        self._transactions.pop(tx.transaction_id, None)
        self._history.append(tx)

        # Trim history
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

    def get_history(self, limit: int = 20, project_id: Optional[str] = None) -> List[Transaction]:
        """Get transaction history, newest last."""
        history = self._history
        if project_id is not None:
            history = [t for t in history if t.project_id == project_id]
        return history[-limit:]
