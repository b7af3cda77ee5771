import pytest

from catalog.client import CatalogClient
from catalog.errors import CatalogError, NotFound, QueryResult, RemoteError
from catalog.filters import AccommodationFilter, ClinicFilter, RestaurantFilter
from catalog.schemas import (
    AccommodationReviewCreate,
    AppointmentCreate,
    DoctorReview,
    RestaurantReview,
)
from storage.memory_store import InMemoryStore


def test_fetch_campuses_returns_typed_rows(catalog_client):
    result = catalog_client.fetch_campuses()
    assert result.ok
    assert [c.id for c in result.data] == [1, 2, 7]
    assert result.data[2].city == "Penang"


def test_fetch_campuses_by_city(catalog_client):
    result = catalog_client.fetch_campuses_by_city("Kuala Lumpur")
    assert {c.id for c in result.data} == {1, 2}
    assert catalog_client.fetch_campuses_by_city("Ipoh").data == []


def test_every_listed_facility_is_required(catalog_client):
    result = catalog_client.fetch_accommodations(AccommodationFilter(facilities=["wifi", "parking"]))
    assert [a.id for a in result.data] == [2]


def test_inverted_price_bounds_return_nothing(catalog_client):
    result = catalog_client.fetch_accommodations(AccommodationFilter(min_price=900, max_price=100))
    assert result.ok
    assert result.data == []


def test_price_bounds_are_inclusive(catalog_client):
    result = catalog_client.fetch_accommodations(AccommodationFilter(min_price=500, max_price=700))
    assert sorted(a.id for a in result.data) == [1, 3]


def test_gender_and_campus_filters(catalog_client):
    result = catalog_client.fetch_accommodations(AccommodationFilter(campus_id=1, gender="female"))
    assert [a.id for a in result.data] == [1]


def test_accommodation_details_embed_rooms_and_reviews(catalog_client):
    result = catalog_client.fetch_accommodation_details(2)
    assert result.ok
    accommodation = result.data
    assert [r.name for r in accommodation.room_types] == ["Twin sharing", "Single"]
    assert len(accommodation.reviews) == 1
    assert accommodation.reviews[0].entity_type == "accommodation"


def test_restaurant_details_embed_menu(catalog_client):
    restaurant = catalog_client.fetch_restaurant_details(1).data
    assert restaurant.menu_categories[0].name == "Rice"
    assert len(restaurant.menu_categories[0].menu_items) == 2


def test_restaurant_filters(catalog_client):
    result = catalog_client.fetch_restaurants(RestaurantFilter(price_range="high"))
    assert [r.name for r in result.data] == ["Campus Sushi Bar"]


def test_clinic_details_embed_doctor_schedules_and_reviews(catalog_client):
    clinic = catalog_client.fetch_clinic_details(1).data
    doctor = clinic.doctors[0]
    assert [s.remaining for s in doctor.schedules] == [7, 0]
    assert isinstance(doctor.reviews[0], DoctorReview)
    assert clinic.reviews[0].entity_type == "clinic"


def test_emergency_clinic_filter(catalog_client):
    result = catalog_client.fetch_clinics(ClinicFilter(has_emergency=True))
    assert [c.id for c in result.data] == [2]


def test_missing_id_is_not_found(catalog_client):
    result = catalog_client.fetch_accommodation_details(999)
    assert not result.ok
    assert result.not_found
    assert isinstance(result.error, NotFound)
    assert result.data is None


def test_malformed_id_is_remote_error(catalog_client):
    result = catalog_client.fetch_clinic_details("abc")
    assert isinstance(result.error, RemoteError)
    assert result.error.code == "22P02"
    assert not result.not_found


def test_unwrap_raises_the_error(catalog_client):
    with pytest.raises(NotFound):
        catalog_client.fetch_restaurant_details(999).unwrap()


def test_invalid_rows_are_dropped(catalog_tables):
    catalog_tables["campuses"].append({"id": 9, "name": "No City"})
    client = CatalogClient(InMemoryStore(catalog_tables))
    assert [c.id for c in client.fetch_campuses().data] == [1, 2, 7]


def test_backend_errors_pass_through_unchanged():
    class FailingStore:
        def fetch(self, query):
            return QueryResult.failure(RemoteError("connection reset", code="network"))

    result = CatalogClient(FailingStore()).fetch_campuses()
    assert result.error.code == "network"
    assert result.data is None


def _appointment(**overrides):
    values = {
        "user_id": "user-1",
        "clinic_id": 1,
        "doctor_id": 1,
        "schedule_id": 1,
        "date": "2026-11-20",
        "time": "10:00",
        "symptoms": "cough",
    }
    values.update(overrides)
    return AppointmentCreate(**values)


def test_create_appointment_defaults_to_pending(catalog_client):
    result = catalog_client.create_appointment(_appointment())
    assert result.ok
    created = result.data[0]
    assert created.status == "pending"
    assert created.user_id == "user-1"
    assert created.created_at is not None


def test_user_appointments_sorted_by_date_with_embeds(catalog_client):
    catalog_client.create_appointment(_appointment(date="2026-11-20"))
    catalog_client.create_appointment(_appointment(date="2026-11-05", time="09:30"))
    catalog_client.create_appointment(_appointment(user_id="someone-else"))

    result = catalog_client.fetch_user_appointments("user-1")
    assert [str(a.date) for a in result.data] == ["2026-11-05", "2026-11-20"]
    assert result.data[0].clinic.name == "Klinik Pelajar"
    assert result.data[0].doctor.name == "Dr. Aminah Yusof"


def test_appointment_for_unknown_clinic_is_rejected(catalog_client):
    result = catalog_client.create_appointment(_appointment(clinic_id=404))
    assert isinstance(result.error, RemoteError)
    assert result.error.code == "23503"


def test_create_review_and_mark_helpful(catalog_client):
    review = AccommodationReviewCreate(
        entity_type="accommodation", entity_id=1, rating=5, comment="Quiet", user_id="user-1", user_name="Mei"
    )
    created = catalog_client.create_review(review).data[0]
    assert created.helpful == 0
    assert created.date is not None

    updated = catalog_client.update_review_helpful(created.id, 4)
    assert updated.data[0].helpful == 4
    details = catalog_client.fetch_accommodation_details(1).data
    assert [r.comment for r in details.reviews] == ["Quiet"]


def test_helpful_update_for_missing_review(catalog_client):
    result = catalog_client.update_review_helpful(999, 1)
    assert result.not_found


def test_review_rows_parse_into_their_variant():
    reviews = CatalogClient._reviews(
        [
            {"entity_type": "restaurant", "entity_id": 1, "rating": 3, "comment": "ok"},
            {"entity_type": "unknown", "entity_id": 1, "rating": 3},
        ]
    )
    assert len(reviews) == 1
    assert isinstance(reviews[0], RestaurantReview)


def test_error_classes_share_a_base():
    for cls in (RemoteError, NotFound):
        err = cls("boom", code="X")
        assert isinstance(err, CatalogError)
        assert err.log_fields() == {"error_type": cls.__name__, "error": "boom", "error_code": "X"}
