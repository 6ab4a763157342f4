"""
session/ - Per-project ordering services
"""

from .service import OperationResult, PhaseOrderService
from .registry import ServiceRegistry

__all__ = [
    "OperationResult",
    "PhaseOrderService",
    "ServiceRegistry",
]
