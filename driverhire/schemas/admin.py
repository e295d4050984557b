import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field


class VerifyDriverRequest(BaseModel):
    decision: Literal["verified", "rejected"]
    notes: str | None = Field(None, max_length=500)


class PendingDriverResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    full_name: str
    email: str
    phone: str | None
    vehicle_brand: str
    vehicle_type: str | None
    vehicle_plate: str
    seat_capacity: int
    price_per_day: Decimal
    verification_status: str
    created_at: datetime


class PendingDriverListResponse(BaseModel):
    items: list[PendingDriverResponse]
    total: int
    limit: int
    offset: int
