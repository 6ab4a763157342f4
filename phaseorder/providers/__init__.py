"""
providers/ - Template and persistence collaborators
"""

from .protocols import TemplateProvider, PersistenceAdapter
from .memory import (
    InMemoryPhaseStore,
    StaticTemplateProvider,
    StoreTemplateProvider,
    template_from_phases,
    seed_project,
)
from .json_store import JsonFilePhaseStore

__all__ = [
    "TemplateProvider",
    "PersistenceAdapter",
    "InMemoryPhaseStore",
    "StaticTemplateProvider",
    "StoreTemplateProvider",
    "template_from_phases",
    "seed_project",
    "JsonFilePhaseStore",
]
