"""
bootstrap/ - Configuration and entry points
"""

from .config import (
    EngineConfig,
    StorageConfig,
    APIConfig,
    LoggingConfig,
    PhaseOrderConfig,
    load_config,
    get_config,
)

__all__ = [
    "EngineConfig",
    "StorageConfig",
    "APIConfig",
    "LoggingConfig",
    "PhaseOrderConfig",
    "load_config",
    "get_config",
]
