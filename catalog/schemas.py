"""
Row shapes for the hosted campus-services tables.

Column names follow the backend (snake_case). Models keep unknown columns so a
record read from the backend can be written back out unchanged.
"""

from __future__ import annotations

from datetime import date as Date
from typing import Annotated, Any, Dict, List, Literal, Optional, Type, TypeVar, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from telemetry.logging_utils import get_logger

logger = get_logger(__name__)

Gender = Literal["male", "female", "mixed"]
PriceRange = Literal["low", "medium", "high"]
AppointmentStatus = Literal["pending", "confirmed", "completed", "cancelled"]


class Record(BaseModel):
    model_config = {"extra": "allow"}


class Campus(Record):
    id: int
    name: str
    address: str = ""
    city: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    image: Optional[str] = None


class ReviewReply(BaseModel):
    comment: str
    date: Optional[str] = None
    name: Optional[str] = None


class _ReviewBase(Record):
    id: Optional[int] = None
    user_id: Optional[str] = None
    entity_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""
    date: Optional[str] = None
    user_name: Optional[str] = None
    user_image: Optional[str] = None
    helpful: int = 0
    reply: Optional[ReviewReply] = None


class AccommodationReview(_ReviewBase):
    entity_type: Literal["accommodation"] = "accommodation"
    images: Optional[List[str]] = None


class RestaurantReview(_ReviewBase):
    entity_type: Literal["restaurant"] = "restaurant"
    images: Optional[List[str]] = None


class ClinicReview(_ReviewBase):
    entity_type: Literal["clinic"] = "clinic"
    images: Optional[List[str]] = None


class DoctorReview(_ReviewBase):
    entity_type: Literal["doctor"] = "doctor"


Review = Annotated[
    Union[AccommodationReview, RestaurantReview, ClinicReview, DoctorReview],
    Field(discriminator="entity_type"),
]


class RoomType(Record):
    id: int
    accommodation_id: Optional[int] = None
    name: str
    description: str = ""
    price: float = 0.0
    size: Optional[str] = None
    availability: int = 0
    images: List[str] = Field(default_factory=list)
    videos: Optional[List[str]] = None
    facilities: List[str] = Field(default_factory=list)


class Accommodation(Record):
    id: int
    campus_id: int
    name: str
    address: str = ""
    distance: Optional[float] = None
    price: float = 0.0
    gender: Gender = "mixed"
    has_ac: bool = False
    has_private_bathroom: bool = False
    has_furnished_bed: bool = False
    has_wifi: bool = False
    has_parking: bool = False
    images: List[str] = Field(default_factory=list)
    videos: Optional[List[str]] = None
    description: str = ""
    rules: List[str] = Field(default_factory=list)
    facilities: List[str] = Field(default_factory=list)
    benefits: List[str] = Field(default_factory=list)
    rating: float = 0.0
    review_count: int = 0
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    has_promotion: bool = False
    promotion_details: Optional[str] = None
    availability: int = 0
    room_types: List[RoomType] = Field(default_factory=list)
    reviews: List[AccommodationReview] = Field(default_factory=list)


class MenuItem(Record):
    id: int
    category_id: Optional[int] = None
    name: str
    description: str = ""
    price: float = 0.0
    image: Optional[str] = None
    is_popular: bool = False
    is_available: bool = True


class MenuCategory(Record):
    id: int
    restaurant_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    menu_items: List[MenuItem] = Field(default_factory=list)


class Restaurant(Record):
    id: int
    campus_id: int
    name: str
    address: str = ""
    distance: Optional[float] = None
    cuisine: str = ""
    price_range: PriceRange = "medium"
    images: List[str] = Field(default_factory=list)
    opening_hours: Optional[str] = None
    rating: float = 0.0
    review_count: int = 0
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    has_promotion: bool = False
    promotion_details: Optional[str] = None
    menu_categories: List[MenuCategory] = Field(default_factory=list)
    reviews: List[RestaurantReview] = Field(default_factory=list)


class Schedule(Record):
    id: int
    doctor_id: Optional[int] = None
    day: str
    start_time: str
    end_time: str
    available: bool = True
    max_patients: int = 0
    booked_patients: int = 0

    @property
    def remaining(self) -> int:
        return max(0, self.max_patients - self.booked_patients)


class Doctor(Record):
    id: int
    clinic_id: Optional[int] = None
    name: str
    specialization: str = ""
    image: Optional[str] = None
    education: List[str] = Field(default_factory=list)
    experience: List[str] = Field(default_factory=list)
    rating: float = 0.0
    is_available: bool = True
    schedules: List[Schedule] = Field(default_factory=list)
    reviews: List[DoctorReview] = Field(default_factory=list)


class Clinic(Record):
    id: int
    campus_id: int
    name: str
    address: str = ""
    distance: Optional[float] = None
    images: List[str] = Field(default_factory=list)
    services: List[str] = Field(default_factory=list)
    opening_hours: Optional[str] = None
    has_emergency_service: bool = False
    emergency_contact: Optional[str] = None
    rating: float = 0.0
    review_count: int = 0
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    insurance_accepted: List[str] = Field(default_factory=list)
    facilities: List[str] = Field(default_factory=list)
    doctors: List[Doctor] = Field(default_factory=list)
    reviews: List[ClinicReview] = Field(default_factory=list)


class AppointmentCreate(BaseModel):
    model_config = {"extra": "forbid"}

    user_id: Optional[str] = None
    clinic_id: int
    doctor_id: int
    schedule_id: int
    date: Date
    time: str
    status: AppointmentStatus = "pending"
    symptoms: Optional[str] = None
    notes: Optional[str] = None


class Appointment(Record):
    id: int
    user_id: str
    clinic_id: int
    doctor_id: int
    schedule_id: int
    date: Date
    time: str
    status: AppointmentStatus = "pending"
    symptoms: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    clinic: Optional[Clinic] = None
    doctor: Optional[Doctor] = None


class _ReviewCreateBase(BaseModel):
    model_config = {"extra": "forbid"}

    user_id: Optional[str] = None
    entity_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: str
    user_name: Optional[str] = None
    user_image: Optional[str] = None


class AccommodationReviewCreate(_ReviewCreateBase):
    entity_type: Literal["accommodation"]
    images: Optional[List[str]] = None


class RestaurantReviewCreate(_ReviewCreateBase):
    entity_type: Literal["restaurant"]
    images: Optional[List[str]] = None


class ClinicReviewCreate(_ReviewCreateBase):
    entity_type: Literal["clinic"]
    images: Optional[List[str]] = None


class DoctorReviewCreate(_ReviewCreateBase):
    entity_type: Literal["doctor"]


ReviewCreate = Annotated[
    Union[AccommodationReviewCreate, RestaurantReviewCreate, ClinicReviewCreate, DoctorReviewCreate],
    Field(discriminator="entity_type"),
]

_review_adapter: TypeAdapter = TypeAdapter(Review)
_review_create_adapter: TypeAdapter = TypeAdapter(ReviewCreate)

M = TypeVar("M", bound=BaseModel)


def parse_review(raw: Dict[str, Any]) -> Any:
    """Validate a review row into the variant its ``entity_type`` names."""
    return _review_adapter.validate_python(raw)


def parse_review_create(raw: Dict[str, Any]) -> Any:
    return _review_create_adapter.validate_python(raw)


def validate_rows(model: Type[M], rows: Any, *, table: Optional[str] = None) -> List[M]:
    """Validate and coerce result rows, logging and dropping invalid entries."""
    if isinstance(rows, dict):
        rows = [rows]
    if not isinstance(rows, list):
        return []
    cleaned: List[M] = []
    for row in rows:
        try:
            cleaned.append(model.model_validate(row))
        except ValidationError as exc:
            logger.warning(
                "row_validation_failed",
                extra={"table": table, "row_id": row.get("id") if isinstance(row, dict) else None, "error": str(exc)[:200]},
            )
            continue
    return cleaned

