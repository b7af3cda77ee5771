"""
Path routing for the terminal front end.

The campus picker hands off navigation as a path string (``/dashboard/7``).
Keep the path -> handler mapping here so the picker never imports the screens
it navigates to.
"""

from __future__ import annotations

import re
from functools import partial
from typing import Callable, List, Pattern, Tuple

from catalog.client import CatalogClient

RouteHandler = Callable[[CatalogClient], None]


def _dashboard_runner(catalog: CatalogClient, *, campus_id: str) -> None:
    from cli.dashboard import render_dashboard

    render_dashboard(catalog, int(campus_id))


ROUTES: List[Tuple[Pattern[str], Callable[..., None]]] = [
    (re.compile(r"^/dashboard/(?P<campus_id>\d+)/?$"), _dashboard_runner),
]


def resolve_route(path: str) -> RouteHandler:
    """Return the handler for a navigation path; raises ValueError for unknown paths."""
    normalized = (path or "").strip()
    for pattern, runner in ROUTES:
        match = pattern.match(normalized)
        if match:
            return partial(runner, **match.groupdict())
    raise ValueError(f"Unsupported route: {normalized!r}")
