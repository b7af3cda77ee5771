"""
Query composition for the hosted campus-services tables.

Builders here are pure: they return an immutable ``TableQuery`` describing one
PostgREST read. Stores turn that description into a network call (Supabase) or
evaluate it against seeded rows (in-memory demo store).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, List, Optional, Tuple

from catalog.filters import AccommodationFilter, ClinicFilter, RestaurantFilter

SUPPORTED_OPS = ("eq", "gte", "lte", "contains")

CAMPUS_COLUMNS = "*"
ACCOMMODATION_COLUMNS = "*, room_types (*), reviews (*)"
RESTAURANT_COLUMNS = "*, menu_categories (*, menu_items (*)), reviews (*)"
CLINIC_COLUMNS = "*, doctors (*, schedules (*)), reviews (*)"
CLINIC_DETAIL_COLUMNS = "*, doctors (*, schedules (*), reviews (*)), reviews (*)"
APPOINTMENT_COLUMNS = "*, clinic:clinics (*), doctor:doctors (*)"


@dataclass(frozen=True)
class Predicate:
    op: str
    column: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in SUPPORTED_OPS:
            raise ValueError(f"Unsupported predicate operator: {self.op}")


@dataclass(frozen=True)
class Ordering:
    column: str
    desc: bool = False


@dataclass(frozen=True)
class TableQuery:
    table: str
    columns: str = "*"
    predicates: Tuple[Predicate, ...] = ()
    order: Optional[Ordering] = None
    single: bool = False

    def where(self, op: str, column: str, value: Any) -> "TableQuery":
        return replace(self, predicates=self.predicates + (Predicate(op, column, value),))

    def order_by(self, column: str, *, desc: bool = False) -> "TableQuery":
        return replace(self, order=Ordering(column, desc))

    def one(self) -> "TableQuery":
        return replace(self, single=True)


def campuses_query() -> TableQuery:
    return TableQuery("campuses", CAMPUS_COLUMNS)


def campuses_by_city_query(city: str) -> TableQuery:
    return campuses_query().where("eq", "city", city)


def accommodations_query(filters: Optional[AccommodationFilter] = None) -> TableQuery:
    filters = filters or AccommodationFilter()
    query = TableQuery("accommodations", ACCOMMODATION_COLUMNS)
    if filters.campus_id is not None:
        query = query.where("eq", "campus_id", filters.campus_id)
    if filters.gender:
        query = query.where("eq", "gender", filters.gender)
    if filters.min_price is not None:
        query = query.where("gte", "price", filters.min_price)
    if filters.max_price is not None:
        query = query.where("lte", "price", filters.max_price)
    # One containment check per facility: every listed facility must be present.
    for facility in filters.facilities or ():
        query = query.where("contains", "facilities", [facility])
    return query


def accommodation_detail_query(accommodation_id: Any) -> TableQuery:
    return TableQuery("accommodations", ACCOMMODATION_COLUMNS).where("eq", "id", accommodation_id).one()


def restaurants_query(filters: Optional[RestaurantFilter] = None) -> TableQuery:
    filters = filters or RestaurantFilter()
    query = TableQuery("restaurants", RESTAURANT_COLUMNS)
    if filters.campus_id is not None:
        query = query.where("eq", "campus_id", filters.campus_id)
    if filters.price_range:
        query = query.where("eq", "price_range", filters.price_range)
    if filters.cuisine:
        query = query.where("eq", "cuisine", filters.cuisine)
    return query


def restaurant_detail_query(restaurant_id: Any) -> TableQuery:
    return TableQuery("restaurants", RESTAURANT_COLUMNS).where("eq", "id", restaurant_id).one()


def clinics_query(filters: Optional[ClinicFilter] = None) -> TableQuery:
    filters = filters or ClinicFilter()
    query = TableQuery("clinics", CLINIC_COLUMNS)
    if filters.campus_id is not None:
        query = query.where("eq", "campus_id", filters.campus_id)
    if filters.has_emergency:
        query = query.where("eq", "has_emergency_service", True)
    return query


def clinic_detail_query(clinic_id: Any) -> TableQuery:
    return TableQuery("clinics", CLINIC_DETAIL_COLUMNS).where("eq", "id", clinic_id).one()


def user_appointments_query(user_id: str) -> TableQuery:
    return TableQuery("appointments", APPOINTMENT_COLUMNS).where("eq", "user_id", user_id).order_by("date")


# Select-string parsing ----------------------------------------------------------


@dataclass
class Embed:
    """One embedded relation in a select string, e.g. ``clinic:clinics (*)``."""

    alias: str
    table: str
    embeds: List["Embed"] = field(default_factory=list)


def parse_select(columns: str) -> List[Embed]:
    """Return the embedded relations named in a PostgREST select string.

    Plain columns (``*``, ``id``) are ignored; only ``name (...)`` groups are
    returned, nested as they appear.
    """
    embeds, pos = _parse_group(columns, 0)
    if pos != len(columns):
        raise ValueError(f"Unbalanced select string: {columns!r}")
    return embeds


def _parse_group(text: str, pos: int) -> Tuple[List[Embed], int]:
    embeds: List[Embed] = []
    token = ""
    while pos < len(text):
        ch = text[pos]
        if ch == "(":
            children, pos = _parse_group(text, pos + 1)
            if pos >= len(text) or text[pos] != ")":
                raise ValueError(f"Unbalanced select string: {text!r}")
            name = token.strip()
            if not name:
                raise ValueError(f"Embedded relation without a name in {text!r}")
            alias, _, table = name.partition(":")
            embeds.append(Embed(alias=alias.strip(), table=(table or alias).strip(), embeds=children))
            token = ""
            pos += 1
        elif ch == ")":
            return embeds, pos
        elif ch == ",":
            token = ""
            pos += 1
        else:
            token += ch
            pos += 1
    return embeds, pos
