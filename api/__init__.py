"""
HTTP API for the recommendation engine.
"""

from api.dependencies import EngineRuntime, get_db, get_runtime, get_service
from api.router import router, status_for


__all__ = [
    "EngineRuntime",
    "get_db",
    "get_runtime",
    "get_service",
    "router",
    "status_for",
]
