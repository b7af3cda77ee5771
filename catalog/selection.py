"""
Two-stage campus picker: city, then campus.

``CampusSelector`` holds the view state for one picker instance. Loads run on
the event loop; synchronous sources (``CatalogClient``) are pushed to a worker
thread. Each city-scoped load is tagged with a generation number, and results
from a superseded load are dropped, so a slow response for an earlier city can
never overwrite the campuses of the city now on screen.
"""

from __future__ import annotations

import asyncio
import inspect
import json
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional, Protocol, Set

from catalog.errors import CatalogError, QueryResult
from catalog.schemas import Campus
from storage.local_storage import KeyValueStore
from telemetry.logging_utils import get_logger

logger = get_logger(__name__)

SELECTED_CAMPUS_KEY = "selectedCampus"

CITIES_ERROR = "Failed to load cities. Please try again."
CAMPUSES_ERROR = "Failed to load campuses. Please try again."
UNEXPECTED_ERROR = "An unexpected error occurred. Please try again."


class SelectorState(str, Enum):
    LOADING_CITIES = "loading_cities"
    CITIES_READY = "cities_ready"
    LOADING_CAMPUSES = "loading_campuses"
    CAMPUSES_READY = "campuses_ready"
    LOAD_ERROR = "load_error"
    CAMPUS_SELECTED = "campus_selected"


class InvalidTransition(RuntimeError):
    pass


class CampusSource(Protocol):
    def fetch_campuses(self) -> QueryResult[List[Campus]]:
        ...

    def fetch_campuses_by_city(self, city: str) -> QueryResult[List[Campus]]:
        ...


def derive_cities(campuses: Iterable[Campus]) -> Set[str]:
    return {campus.city for campus in campuses}


def dashboard_path(campus_id: Any) -> str:
    return f"/dashboard/{campus_id}"


async def _call(fn: Callable[..., Any], *args: Any) -> Any:
    if inspect.iscoroutinefunction(fn):
        return await fn(*args)
    return await asyncio.to_thread(fn, *args)


class CampusSelector:
    """View state for one picker.

    ``navigate`` is a plain callable taking the dashboard path. It is called
    once, fire-and-forget, so coroutine functions are rejected up front.
    """

    def __init__(
        self,
        source: CampusSource,
        storage: KeyValueStore,
        navigate: Callable[[str], None],
    ) -> None:
        if inspect.iscoroutinefunction(navigate):
            raise TypeError("navigate must be a synchronous callable")
        self.source = source
        self.storage = storage
        self.navigate = navigate
        self.state = SelectorState.LOADING_CITIES
        self.cities: Set[str] = set()
        self.selected_city: Optional[str] = None
        self.campuses: List[Campus] = []
        self.selected_campus: Optional[Campus] = None
        self.error: Optional[str] = None
        self._generation = 0
        self._started = False

    @property
    def sorted_cities(self) -> List[str]:
        return sorted(self.cities)

    def _require(self, action: str, *allowed: SelectorState) -> None:
        if self.state not in allowed:
            raise InvalidTransition(f"{action} is not allowed while {self.state.value}")

    def _fail(self, message: str, error: Optional[CatalogError] = None) -> None:
        self.state = SelectorState.LOAD_ERROR
        self.error = message
        extra = {"city": self.selected_city}
        if error is not None:
            extra.update(error.log_fields())
        logger.warning("campus_selector_failed", extra=extra)

    async def start(self) -> None:
        """Initial load; runs once per selector."""
        if self._started:
            raise InvalidTransition("start() already ran; call reload() to restart the flow")
        self._started = True
        await self._load_cities()

    async def reload(self) -> None:
        """Restart the whole flow from the city load."""
        self._generation += 1
        self._started = True
        self.cities = set()
        self.selected_city = None
        self.campuses = []
        self.selected_campus = None
        self.error = None
        await self._load_cities()

    async def _load_cities(self) -> None:
        generation = self._generation
        self.state = SelectorState.LOADING_CITIES
        try:
            result = await _call(self.source.fetch_campuses)
        except Exception:
            if generation == self._generation:
                logger.exception("campus_selector_unexpected_error", extra={"stage": "cities"})
                self._fail(UNEXPECTED_ERROR)
            return
        if generation != self._generation:
            return
        if not result.ok:
            self._fail(CITIES_ERROR, result.error)
            return
        self.cities = derive_cities(result.data or [])
        self.state = SelectorState.CITIES_READY
        logger.info("cities_loaded", extra={"count": len(self.cities)})

    async def choose_city(self, city: str) -> None:
        self._require("choose_city", SelectorState.CITIES_READY)
        self._generation += 1
        generation = self._generation
        self.selected_city = city
        self.campuses = []
        self.state = SelectorState.LOADING_CAMPUSES
        try:
            result = await _call(self.source.fetch_campuses_by_city, city)
        except Exception:
            if generation != self._generation:
                logger.info("stale_campus_result_discarded", extra={"city": city, "failed": True})
                return
            logger.exception("campus_selector_unexpected_error", extra={"stage": "campuses", "city": city})
            self._fail(UNEXPECTED_ERROR)
            return
        if generation != self._generation:
            logger.info("stale_campus_result_discarded", extra={"city": city})
            return
        if not result.ok:
            self._fail(CAMPUSES_ERROR, result.error)
            return
        self.campuses = list(result.data or [])
        self.state = SelectorState.CAMPUSES_READY

    def back(self) -> None:
        """Return to the city list; the loaded city set is kept, nothing is re-fetched."""
        self._require("back", SelectorState.LOADING_CAMPUSES, SelectorState.CAMPUSES_READY)
        self._generation += 1
        self.selected_city = None
        self.campuses = []
        self.state = SelectorState.CITIES_READY

    def select_campus(self, campus: Campus) -> Optional[str]:
        """Persist the campus and hand off to the dashboard. Returns the path, or None on failure."""
        self._require("select_campus", SelectorState.CAMPUSES_READY)
        try:
            self.storage.put(SELECTED_CAMPUS_KEY, json.dumps(campus.model_dump(mode="json")))
        except Exception:
            logger.exception("campus_selection_persist_failed", extra={"campus_id": campus.id})
            self._fail(UNEXPECTED_ERROR)
            return None
        path = dashboard_path(campus.id)
        self.selected_campus = campus
        self.state = SelectorState.CAMPUS_SELECTED
        logger.info("campus_selected", extra={"campus_id": campus.id, "city": campus.city, "path": path})
        self.navigate(path)
        return path
