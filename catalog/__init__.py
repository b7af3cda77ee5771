"""
Campus catalog package.

Query composition, typed fetches and the campus selection flow. Callers
(HTTP server, CLI) go through ``CatalogClient`` and ``CampusSelector``.
"""

from .client import CatalogClient
from .errors import NotFound, QueryResult, RemoteError
from .selection import CampusSelector, SelectorState

__all__ = ["CatalogClient", "CampusSelector", "NotFound", "QueryResult", "RemoteError", "SelectorState"]
