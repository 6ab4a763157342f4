"""
deployment/ - HTTP API
"""

from .api import create_app, create_phases_router, create_store

__all__ = [
    "create_app",
    "create_phases_router",
    "create_store",
]
