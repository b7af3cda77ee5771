from __future__ import annotations

import time
from typing import Any, List, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel, ValidationError

from catalog import queries
from catalog.errors import NotFound, QueryResult, RemoteError
from catalog.filters import AccommodationFilter, ClinicFilter, RestaurantFilter
from catalog.schemas import (
    Accommodation,
    Appointment,
    AppointmentCreate,
    Campus,
    Clinic,
    Restaurant,
    parse_review,
    validate_rows,
)
from telemetry.logging_utils import get_logger

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


class CatalogStore(Protocol):
    def fetch(self, query: queries.TableQuery) -> QueryResult[Any]:
        ...

    def insert(self, table: str, payload: dict) -> QueryResult[Any]:
        ...

    def update(self, table: str, values: dict, *, match: dict) -> QueryResult[Any]:
        ...


class CatalogClient:
    """Typed reads and the few writes the app performs, one store call each.

    Nothing here raises for backend failures: every method returns a
    ``QueryResult`` whose ``error`` is a ``RemoteError`` or, for detail reads
    with no matching row, a ``NotFound``.
    """

    def __init__(self, store: CatalogStore) -> None:
        self.store = store

    # Plumbing -----------------------------------------------------------------------

    def _run(self, query: queries.TableQuery) -> QueryResult[Any]:
        started = time.perf_counter()
        result = self.store.fetch(query)
        latency_ms = round((time.perf_counter() - started) * 1000, 3)
        if result.ok:
            logger.debug(
                "query_complete",
                extra={"table": query.table, "predicates": len(query.predicates), "latency_ms": latency_ms},
            )
        elif result.not_found:
            logger.info("query_no_rows", extra={"table": query.table, "latency_ms": latency_ms})
        else:
            logger.warning(
                "query_failed",
                extra={"table": query.table, "latency_ms": latency_ms, **result.error.log_fields()},
            )
        return result

    def _list(self, model: Type[M], query: queries.TableQuery) -> QueryResult[List[M]]:
        result = self._run(query)
        if not result.ok:
            return result
        return QueryResult.success(validate_rows(model, result.data, table=query.table))

    def _one(self, model: Type[M], query: queries.TableQuery) -> QueryResult[M]:
        result = self._run(query)
        if not result.ok:
            return result
        try:
            return QueryResult.success(model.model_validate(result.data))
        except ValidationError as exc:
            logger.warning("row_validation_failed", extra={"table": query.table, "error": str(exc)[:200]})
            return QueryResult.failure(RemoteError("Malformed row returned", code="invalid_row", details=str(exc)[:200]))

    def _write(self, table: str, result: QueryResult[Any]) -> QueryResult[Any]:
        if not result.ok:
            logger.warning("write_failed", extra={"table": table, **result.error.log_fields()})
        return result

    # Campuses -----------------------------------------------------------------------

    def fetch_campuses(self) -> QueryResult[List[Campus]]:
        return self._list(Campus, queries.campuses_query())

    def fetch_campuses_by_city(self, city: str) -> QueryResult[List[Campus]]:
        return self._list(Campus, queries.campuses_by_city_query(city))

    # Listings -----------------------------------------------------------------------

    def fetch_accommodations(self, filters: Optional[AccommodationFilter] = None) -> QueryResult[List[Accommodation]]:
        return self._list(Accommodation, queries.accommodations_query(filters))

    def fetch_accommodation_details(self, accommodation_id: Any) -> QueryResult[Accommodation]:
        return self._one(Accommodation, queries.accommodation_detail_query(accommodation_id))

    def fetch_restaurants(self, filters: Optional[RestaurantFilter] = None) -> QueryResult[List[Restaurant]]:
        return self._list(Restaurant, queries.restaurants_query(filters))

    def fetch_restaurant_details(self, restaurant_id: Any) -> QueryResult[Restaurant]:
        return self._one(Restaurant, queries.restaurant_detail_query(restaurant_id))

    def fetch_clinics(self, filters: Optional[ClinicFilter] = None) -> QueryResult[List[Clinic]]:
        return self._list(Clinic, queries.clinics_query(filters))

    def fetch_clinic_details(self, clinic_id: Any) -> QueryResult[Clinic]:
        return self._one(Clinic, queries.clinic_detail_query(clinic_id))

    # Appointments -------------------------------------------------------------------

    def create_appointment(self, appointment: AppointmentCreate) -> QueryResult[List[Appointment]]:
        payload = appointment.model_dump(mode="json", exclude_none=True)
        result = self._write("appointments", self.store.insert("appointments", payload))
        if not result.ok:
            return result
        logger.info(
            "appointment_created",
            extra={"clinic_id": appointment.clinic_id, "doctor_id": appointment.doctor_id, "date": str(appointment.date)},
        )
        return QueryResult.success(validate_rows(Appointment, result.data, table="appointments"))

    def fetch_user_appointments(self, user_id: str) -> QueryResult[List[Appointment]]:
        return self._list(Appointment, queries.user_appointments_query(user_id))

    # Reviews ------------------------------------------------------------------------

    @staticmethod
    def _reviews(rows: Any) -> List[Any]:
        parsed = []
        for row in rows or []:
            try:
                parsed.append(parse_review(row))
            except ValidationError as exc:
                logger.warning("row_validation_failed", extra={"table": "reviews", "error": str(exc)[:200]})
        return parsed

    def create_review(self, review: BaseModel) -> QueryResult[List[Any]]:
        """Insert one review; ``review`` is any of the ``*ReviewCreate`` variants."""
        payload = review.model_dump(mode="json", exclude_none=True)
        result = self._write("reviews", self.store.insert("reviews", payload))
        if not result.ok:
            return result
        return QueryResult.success(self._reviews(result.data))

    def update_review_helpful(self, review_id: int, helpful: int) -> QueryResult[List[Any]]:
        result = self._write(
            "reviews", self.store.update("reviews", {"helpful": helpful}, match={"id": review_id})
        )
        if not result.ok:
            return result
        if not result.data:
            return QueryResult.failure(NotFound(f"Review {review_id} not found"))
        logger.info("review_helpful_updated", extra={"review_id": review_id, "helpful": helpful})
        return QueryResult.success(self._reviews(result.data))
