"""
transactions/ - Atomic rule set commits

Snapshot, write and rollback around a PersistenceAdapter.
"""

from .schemas import (
    TransactionStatus,
    Transaction,
)

from .manager import TransactionManager

__all__ = [
    # Schemas
    "TransactionStatus",
    "Transaction",
    # Manager
    "TransactionManager",
]
