from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, ValidationError

from catalog.client import CatalogClient
from catalog.errors import AuthFailure, QueryResult
from catalog.filters import AccommodationFilter, ClinicFilter, RestaurantFilter
from catalog.schemas import AppointmentCreate, Gender, PriceRange, parse_review_create
from catalog.selection import derive_cities
from server.security import bearer_token
from storage.factory import Store, create_store

load_dotenv()

GENERIC_REMOTE_ERROR = "The campus service is unavailable. Please try again."
# Postgres errors caused by the request itself: bad literal, missing foreign row, duplicate key.
_CLIENT_ERROR_CODES = {"22P02", "23503", "23505"}

_store: Optional[Store] = None


def get_store() -> Store:
    global _store
    if _store is None:
        _store = create_store()
    return _store


def get_catalog(store: Store = Depends(get_store)) -> CatalogClient:
    return CatalogClient(store)


class RegisterPayload(BaseModel):
    email: str
    password: str
    first_name: str
    last_name: str


class LoginPayload(BaseModel):
    email: str
    password: str


class ForgotPasswordPayload(BaseModel):
    email: str


class HelpfulPayload(BaseModel):
    helpful: int = Field(..., ge=0)


app = FastAPI(title="Campus Services API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_current_user(request: Request, store: Store = Depends(get_store)) -> Dict[str, Any]:
    token = bearer_token(request.headers.get("Authorization") or "")
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    user = store.get_user(token)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    request.state.access_token = token
    return user


def _unwrap(result: QueryResult[Any], *, what: str) -> Any:
    if result.ok:
        return result.data
    if result.not_found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} not found.")
    if result.error.code in _CLIENT_ERROR_CODES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {what.lower()} request.")
    raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=GENERIC_REMOTE_ERROR)


def _dump(items: List[BaseModel]) -> List[Dict[str, Any]]:
    return [item.model_dump(mode="json") for item in items]


# Auth ---------------------------------------------------------------------------------


@app.post("/api/auth/register")
def register_user(payload: RegisterPayload, store: Store = Depends(get_store)):
    try:
        session = store.sign_up(
            payload.email.strip(),
            payload.password,
            profile={"first_name": payload.first_name.strip(), "last_name": payload.last_name.strip()},
        )
    except AuthFailure as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    return {"token": session["access_token"], "user": session["user"]}


@app.post("/api/auth/login")
def login_user(payload: LoginPayload, store: Store = Depends(get_store)):
    try:
        session = store.sign_in(payload.email.strip(), payload.password)
    except AuthFailure:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials.")
    return {"token": session["access_token"], "user": session["user"]}


@app.post("/api/auth/logout")
def logout_user(request: Request, user: Dict[str, Any] = Depends(get_current_user), store: Store = Depends(get_store)):
    try:
        store.sign_out(request.state.access_token)
    except AuthFailure as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message)
    return {"ok": True}


@app.post("/api/auth/forgot-password")
def forgot_password(payload: ForgotPasswordPayload, store: Store = Depends(get_store)):
    try:
        store.reset_password(payload.email.strip())
    except AuthFailure as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    return {"ok": True}


@app.get("/api/auth/me")
def get_me(user: Dict[str, Any] = Depends(get_current_user)):
    return {"user": user}


# Campuses -----------------------------------------------------------------------------


@app.get("/api/cities")
def list_cities(catalog: CatalogClient = Depends(get_catalog)):
    campuses = _unwrap(catalog.fetch_campuses(), what="Cities")
    return {"cities": sorted(derive_cities(campuses))}


@app.get("/api/campuses")
def list_campuses(city: Optional[str] = None, catalog: CatalogClient = Depends(get_catalog)):
    result = catalog.fetch_campuses_by_city(city) if city else catalog.fetch_campuses()
    return {"campuses": _dump(_unwrap(result, what="Campuses"))}


# Listings -----------------------------------------------------------------------------


@app.get("/api/accommodations")
def list_accommodations(
    campus_id: Optional[int] = None,
    gender: Optional[Gender] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    facilities: Optional[List[str]] = Query(None),
    catalog: CatalogClient = Depends(get_catalog),
):
    filters = AccommodationFilter(
        campus_id=campus_id, gender=gender, min_price=min_price, max_price=max_price, facilities=facilities
    )
    return {"accommodations": _dump(_unwrap(catalog.fetch_accommodations(filters), what="Accommodations"))}


@app.get("/api/accommodations/{accommodation_id}")
def get_accommodation(accommodation_id: int, catalog: CatalogClient = Depends(get_catalog)):
    found = _unwrap(catalog.fetch_accommodation_details(accommodation_id), what="Accommodation")
    return {"accommodation": found.model_dump(mode="json")}


@app.get("/api/restaurants")
def list_restaurants(
    campus_id: Optional[int] = None,
    price_range: Optional[PriceRange] = None,
    cuisine: Optional[str] = None,
    catalog: CatalogClient = Depends(get_catalog),
):
    filters = RestaurantFilter(campus_id=campus_id, price_range=price_range, cuisine=cuisine)
    return {"restaurants": _dump(_unwrap(catalog.fetch_restaurants(filters), what="Restaurants"))}


@app.get("/api/restaurants/{restaurant_id}")
def get_restaurant(restaurant_id: int, catalog: CatalogClient = Depends(get_catalog)):
    found = _unwrap(catalog.fetch_restaurant_details(restaurant_id), what="Restaurant")
    return {"restaurant": found.model_dump(mode="json")}


@app.get("/api/clinics")
def list_clinics(
    campus_id: Optional[int] = None,
    has_emergency: Optional[bool] = None,
    catalog: CatalogClient = Depends(get_catalog),
):
    filters = ClinicFilter(campus_id=campus_id, has_emergency=has_emergency)
    return {"clinics": _dump(_unwrap(catalog.fetch_clinics(filters), what="Clinics"))}


@app.get("/api/clinics/{clinic_id}")
def get_clinic(clinic_id: int, catalog: CatalogClient = Depends(get_catalog)):
    found = _unwrap(catalog.fetch_clinic_details(clinic_id), what="Clinic")
    return {"clinic": found.model_dump(mode="json")}


# Appointments -------------------------------------------------------------------------


@app.post("/api/appointments", status_code=status.HTTP_201_CREATED)
def create_appointment(
    payload: AppointmentCreate,
    user: Dict[str, Any] = Depends(get_current_user),
    catalog: CatalogClient = Depends(get_catalog),
):
    appointment = payload.model_copy(update={"user_id": user["id"], "status": "pending"})
    created = _unwrap(catalog.create_appointment(appointment), what="Appointment")
    return {"appointment": created[0].model_dump(mode="json") if created else None}


@app.get("/api/appointments")
def list_appointments(user: Dict[str, Any] = Depends(get_current_user), catalog: CatalogClient = Depends(get_catalog)):
    return {"appointments": _dump(_unwrap(catalog.fetch_user_appointments(user["id"]), what="Appointments"))}


# Reviews ------------------------------------------------------------------------------


@app.post("/api/reviews", status_code=status.HTTP_201_CREATED)
def create_review(
    payload: Dict[str, Any] = Body(...),
    user: Dict[str, Any] = Depends(get_current_user),
    catalog: CatalogClient = Depends(get_catalog),
):
    raw = {**payload, "user_id": user["id"]}
    raw.setdefault("user_name", _display_name(user))
    try:
        review = parse_review_create(raw)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=json.loads(exc.json()))
    created = _unwrap(catalog.create_review(review), what="Review")
    return {"review": created[0].model_dump(mode="json") if created else None}


@app.post("/api/reviews/{review_id}/helpful")
def mark_review_helpful(
    review_id: int,
    payload: HelpfulPayload,
    user: Dict[str, Any] = Depends(get_current_user),
    catalog: CatalogClient = Depends(get_catalog),
):
    updated = _unwrap(catalog.update_review_helpful(review_id, payload.helpful), what="Review")
    return {"review": updated[0].model_dump(mode="json") if updated else None}


@app.get("/api/health")
def health(store: Store = Depends(get_store)):
    return {"ok": store.ping()}


def _display_name(user: Dict[str, Any]) -> str:
    parts = [user.get("first_name"), user.get("last_name")]
    name = " ".join(p for p in parts if p)
    if name:
        return name
    email = user.get("email") or ""
    return email.split("@")[0] or "Student"


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.app:app", host="0.0.0.0", port=8000, reload=False)
