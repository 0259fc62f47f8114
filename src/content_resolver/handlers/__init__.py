"""Handler layer for HTTP endpoints.

This layer contains the HTTP request/response handlers.
Handlers depend on services (business logic), not directly on repositories
(analytics reads being the one read-only exception).

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access)
"""

from .cache_handler import CacheHandler
from .errors import to_http_exception
from .maintenance_handler import MaintenanceHandler
from .search_handler import SearchHandler

__all__ = [
    "CacheHandler",
    "MaintenanceHandler",
    "SearchHandler",
    "to_http_exception",
]
