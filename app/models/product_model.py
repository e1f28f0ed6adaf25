import math
from enum import Enum
from typing import Optional, List, Union

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, field_validator
from pydantic import ValidationError as PydanticValidationError

from app.core.errors import ValidationError


class ProductStatus(str, Enum):
    ACTIVE = "active"
    SOLD = "sold"
    INACTIVE = "inactive"
    RESERVED = "reserved"
    RESTRICTED = "restricted"


class ModerationStatus(str, Enum):
    ACTIVE = "active"
    REVIEW = "review"
    FLAGGED = "flagged"
    SUSPENDED = "suspended"
    PERMANENTLY_SUSPENDED = "permanently_suspended"


class LocationCoords(BaseModel):
    model_config = ConfigDict(extra="forbid")

    latitude: Union[StrictInt, StrictFloat]
    longitude: Union[StrictInt, StrictFloat]

    @field_validator("latitude", "longitude")
    def validate_finite(cls, v):
        if isinstance(v, float) and math.isnan(v):
            raise ValueError("Coordinates must be valid numbers")
        return v


def validate_location_coords(value) -> Optional[dict]:
    """Return the coordinates as a plain dict, rejecting anything but latitude/longitude numbers."""
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValidationError("location_coords must be an object", {"field": "location_coords"})
    try:
        return LocationCoords(**value).model_dump()
    except PydanticValidationError as e:
        raise ValidationError(
            "location_coords must have exactly numeric latitude and longitude",
            {"field": "location_coords", "errors": [err["msg"] for err in e.errors()]},
        )


class ProductCreate(BaseModel):
    title: str
    description: str
    price: float
    category_id: str
    location: Optional[str] = None
    location_coords: Optional[dict] = None

    @field_validator("price")
    def validate_price(cls, price: float):
        if price < 0:
            raise ValueError("Price must be a positive number")
        return price


class ProductUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    category_id: Optional[str] = None
    status: Optional[ProductStatus] = None
    location: Optional[str] = None
    location_coords: Optional[dict] = None
    remove_urls: Optional[List[str]] = None

    @field_validator("price")
    def validate_price(cls, price: float):
        if price is not None and price < 0:
            raise ValueError("Price must be a positive number")
        return price


class ProductStatusUpdate(BaseModel):
    status: str


class ModerationStatusUpdate(BaseModel):
    moderation_status: str
