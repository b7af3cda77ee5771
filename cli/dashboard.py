from __future__ import annotations

from typing import Callable

from catalog.client import CatalogClient
from catalog.filters import AccommodationFilter, ClinicFilter, RestaurantFilter


def render_dashboard(catalog: CatalogClient, campus_id: int, out: Callable[[str], None] = print) -> None:
    """Print the accommodations, restaurants and clinics attached to one campus."""
    out(f"\nCampus #{campus_id}")

    out("\nAccommodations")
    result = catalog.fetch_accommodations(AccommodationFilter(campus_id=campus_id))
    if not result.ok:
        out("  Could not load accommodations.")
    elif not result.data:
        out("  None listed yet.")
    else:
        for acc in result.data:
            rooms = len(acc.room_types)
            out(f"  - {acc.name} ({acc.gender}) from {acc.price:.0f}/month, {rooms} room type(s), rating {acc.rating:.1f}")

    out("\nRestaurants")
    result = catalog.fetch_restaurants(RestaurantFilter(campus_id=campus_id))
    if not result.ok:
        out("  Could not load restaurants.")
    elif not result.data:
        out("  None listed yet.")
    else:
        for restaurant in result.data:
            out(f"  - {restaurant.name}: {restaurant.cuisine or 'various'}, {restaurant.price_range} prices")

    out("\nClinics")
    result = catalog.fetch_clinics(ClinicFilter(campus_id=campus_id))
    if not result.ok:
        out("  Could not load clinics.")
    elif not result.data:
        out("  None listed yet.")
    else:
        for clinic in result.data:
            open_slots = sum(s.remaining for d in clinic.doctors for s in d.schedules if s.available)
            emergency = ", 24h emergency" if clinic.has_emergency_service else ""
            out(f"  - {clinic.name}: {len(clinic.doctors)} doctor(s), {open_slots} open slot(s){emergency}")
