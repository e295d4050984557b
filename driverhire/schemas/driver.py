import uuid
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator


class DriverPublicResponse(BaseModel):
    id: uuid.UUID
    full_name: str
    city: str | None
    description: str | None
    vehicle_brand: str
    vehicle_type: str | None
    vehicle_color: str | None
    seat_capacity: int
    price_per_day: Decimal
    rating_avg: Decimal
    total_reviews: int
    is_available: bool
    verification_status: str


class DriverListResponse(BaseModel):
    items: list[DriverPublicResponse]
    total: int
    limit: int
    offset: int


REQUIRED_PROFILE_FIELDS = {"price_per_day", "is_available", "vehicle_brand", "seat_capacity"}


class DriverProfileUpdateRequest(BaseModel):
    price_per_day: Decimal | None = Field(None, gt=0, max_digits=14, decimal_places=2)
    is_available: bool | None = None
    city: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=2000)
    vehicle_brand: str | None = Field(None, min_length=1, max_length=100)
    vehicle_type: str | None = Field(None, max_length=50)
    vehicle_color: str | None = Field(None, max_length=30)
    seat_capacity: int | None = Field(None, ge=1, le=60)

    @model_validator(mode="after")
    def check_fields(self) -> "DriverProfileUpdateRequest":
        if not self.model_fields_set:
            raise ValueError("No profile fields to update")
        for field in REQUIRED_PROFILE_FIELDS & self.model_fields_set:
            if getattr(self, field) is None:
                raise ValueError(f"{field} cannot be null")
        return self


class DriverProfileResponse(BaseModel):
    id: uuid.UUID
    city: str | None
    description: str | None
    vehicle_brand: str
    vehicle_type: str | None
    vehicle_plate: str
    vehicle_color: str | None
    seat_capacity: int
    price_per_day: Decimal
    is_available: bool
    verification_status: str

    model_config = {"from_attributes": True}


class AvailabilityUpdateRequest(BaseModel):
    is_available: bool


class AvailabilityResponse(BaseModel):
    id: uuid.UUID
    is_available: bool

    model_config = {"from_attributes": True}
