import pytest
from fastapi.testclient import TestClient

from catalog.errors import QueryResult, RemoteError
from server.app import GENERIC_REMOTE_ERROR, app, get_store


@pytest.fixture()
def client(memory_store):
    app.dependency_overrides[get_store] = lambda: memory_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _register(client, email="student@example.com"):
    resp = client.post(
        "/api/auth/register",
        json={"email": email, "password": "secret-pass", "first_name": "Test", "last_name": "Student"},
    )
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['token']}"}


def test_cities_are_sorted_and_unique(client):
    resp = client.get("/api/cities")
    assert resp.status_code == 200
    assert resp.json() == {"cities": ["Kuala Lumpur", "Penang"]}


def test_campuses_by_city(client):
    resp = client.get("/api/campuses", params={"city": "Penang"})
    assert [c["id"] for c in resp.json()["campuses"]] == [7]


def test_accommodation_filters(client):
    resp = client.get("/api/accommodations", params={"facilities": ["wifi", "parking"]})
    assert [a["id"] for a in resp.json()["accommodations"]] == [2]

    resp = client.get("/api/accommodations", params={"min_price": 900, "max_price": 100})
    assert resp.json() == {"accommodations": []}


def test_invalid_query_params_are_rejected(client):
    assert client.get("/api/accommodations", params={"min_price": -5}).status_code == 422
    assert client.get("/api/accommodations", params={"gender": "other"}).status_code == 422


def test_detail_routes(client):
    resp = client.get("/api/accommodations/2")
    assert resp.status_code == 200
    assert len(resp.json()["accommodation"]["room_types"]) == 2
    assert client.get("/api/restaurants/1").json()["restaurant"]["menu_categories"][0]["name"] == "Rice"
    assert client.get("/api/clinics/1").json()["clinic"]["doctors"][0]["reviews"][0]["entity_type"] == "doctor"


def test_missing_detail_is_404(client):
    resp = client.get("/api/clinics/404")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Clinic not found."


def test_list_filters_for_restaurants_and_clinics(client):
    assert [r["id"] for r in client.get("/api/restaurants", params={"cuisine": "japanese"}).json()["restaurants"]] == [2]
    assert [c["id"] for c in client.get("/api/clinics", params={"has_emergency": "true"}).json()["clinics"]] == [2]


def test_backend_failure_is_502(client, memory_store):
    memory_store.fetch = lambda query: QueryResult.failure(RemoteError("relation missing", code="42P01"))
    resp = client.get("/api/cities")
    assert resp.status_code == 502
    assert resp.json()["detail"] == GENERIC_REMOTE_ERROR


def test_register_login_and_me(client):
    headers = _register(client)
    me = client.get("/api/auth/me", headers=headers)
    assert me.json()["user"]["email"] == "student@example.com"

    login = client.post("/api/auth/login", json={"email": "student@example.com", "password": "secret-pass"})
    assert login.status_code == 200
    bad = client.post("/api/auth/login", json={"email": "student@example.com", "password": "nope-nope"})
    assert bad.status_code == 401

    duplicate = client.post(
        "/api/auth/register",
        json={"email": "student@example.com", "password": "secret-pass", "first_name": "T", "last_name": "S"},
    )
    assert duplicate.status_code == 400


def test_logout_invalidates_token(client):
    headers = _register(client)
    assert client.post("/api/auth/logout", headers=headers).json() == {"ok": True}
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_forgot_password(client, memory_store):
    resp = client.post("/api/auth/forgot-password", json={"email": "student@example.com"})
    assert resp.json() == {"ok": True}
    assert memory_store.password_reset_requests == ["student@example.com"]


def test_appointments_require_auth(client):
    assert client.get("/api/appointments").status_code == 401
    assert client.get("/api/appointments", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_book_and_list_appointments(client):
    headers = _register(client)
    body = {"clinic_id": 1, "doctor_id": 1, "schedule_id": 1, "date": "2026-11-20", "time": "10:00", "symptoms": "cough"}
    resp = client.post("/api/appointments", json=body, headers=headers)
    assert resp.status_code == 201
    created = resp.json()["appointment"]
    assert created["status"] == "pending"

    listed = client.get("/api/appointments", headers=headers).json()["appointments"]
    assert [a["id"] for a in listed] == [created["id"]]
    assert listed[0]["clinic"]["name"] == "Klinik Pelajar"


def test_appointment_for_unknown_doctor_is_400(client):
    headers = _register(client)
    body = {"clinic_id": 1, "doctor_id": 99, "schedule_id": 1, "date": "2026-11-20", "time": "10:00"}
    assert client.post("/api/appointments", json=body, headers=headers).status_code == 400


def test_appointment_rejects_unknown_fields(client):
    headers = _register(client)
    body = {"clinic_id": 1, "doctor_id": 1, "schedule_id": 1, "date": "2026-11-20", "time": "10:00", "priority": 1}
    assert client.post("/api/appointments", json=body, headers=headers).status_code == 422


def test_review_flow(client):
    headers = _register(client)
    resp = client.post(
        "/api/reviews",
        json={"entity_type": "restaurant", "entity_id": 1, "rating": 4, "comment": "Cheap and quick"},
        headers=headers,
    )
    assert resp.status_code == 201
    review = resp.json()["review"]
    assert review["user_name"] == "Test Student"
    assert review["helpful"] == 0

    helpful = client.post(f"/api/reviews/{review['id']}/helpful", json={"helpful": 1}, headers=headers)
    assert helpful.json()["review"]["helpful"] == 1
    assert client.post("/api/reviews/999/helpful", json={"helpful": 1}, headers=headers).status_code == 404


def test_doctor_reviews_do_not_take_images(client):
    headers = _register(client)
    resp = client.post(
        "/api/reviews",
        json={"entity_type": "doctor", "entity_id": 1, "rating": 5, "comment": "Kind", "images": ["a.jpg"]},
        headers=headers,
    )
    assert resp.status_code == 422


def test_health(client):
    assert client.get("/api/health").json() == {"ok": True}
