"""
Closed filter structures, one per listing category.

Every field defaults to ``None`` meaning "no constraint". Unknown keys are
rejected so a misspelt filter never silently widens a query.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from catalog.schemas import Gender, PriceRange


class _Filter(BaseModel):
    model_config = {"extra": "forbid", "frozen": True}

    campus_id: Optional[int] = None

    @field_validator("*", mode="before")
    @classmethod
    def _blank_means_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class AccommodationFilter(_Filter):
    gender: Optional[Gender] = None
    min_price: Optional[float] = Field(default=None, ge=0)
    max_price: Optional[float] = Field(default=None, ge=0)
    facilities: Optional[List[str]] = None

    @field_validator("facilities")
    @classmethod
    def _drop_blank_facilities(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        return [item.strip() for item in value if item and item.strip()]


class RestaurantFilter(_Filter):
    price_range: Optional[PriceRange] = None
    cuisine: Optional[str] = None


class ClinicFilter(_Filter):
    has_emergency: Optional[bool] = None
