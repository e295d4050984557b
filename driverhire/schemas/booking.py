import uuid
from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, Field

from driverhire.models.enums import (
    BookingPaymentStatus,
    BookingStatus,
    ServiceKind,
    TrackingStage,
)
from driverhire.schemas.payment import PaymentResponse


class BookingCreateRequest(BaseModel):
    driver_id: uuid.UUID
    service_kind: ServiceKind
    start_date: date
    end_date: date
    start_time: time
    pickup_location: str = Field(min_length=1, max_length=500)
    destination: str = Field(min_length=1, max_length=500)
    passenger_count: int | None = Field(None, ge=1, le=60)
    cargo_details: str | None = Field(None, max_length=1000)
    notes: str | None = Field(None, max_length=1000)


class DriverContact(BaseModel):
    driver_id: uuid.UUID
    full_name: str
    phone: str | None
    vehicle_brand: str
    vehicle_plate: str


class CustomerContact(BaseModel):
    customer_id: uuid.UUID
    full_name: str
    phone: str | None


class BookingCreatedResponse(BaseModel):
    id: uuid.UUID
    code: str
    status: BookingStatus
    day_count: int
    price_per_day: Decimal
    total_price: Decimal
    driver: DriverContact


class BookingResponse(BaseModel):
    id: uuid.UUID
    code: str
    customer_id: uuid.UUID
    driver_id: uuid.UUID
    service_kind: ServiceKind
    start_date: date
    end_date: date
    start_time: time
    pickup_location: str
    destination: str
    passenger_count: int | None
    cargo_details: str | None
    notes: str | None
    day_count: int
    price_per_day: Decimal
    total_price: Decimal
    status: BookingStatus
    payment_status: BookingPaymentStatus
    cancelled_by: str | None = None
    confirmed_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingListResponse(BaseModel):
    items: list[BookingResponse]
    total: int
    limit: int
    offset: int


class TrackingPointResponse(BaseModel):
    latitude: float
    longitude: float
    stage: TrackingStage | None
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingDetailResponse(BookingResponse):
    driver: DriverContact
    customer: CustomerContact
    payments: list[PaymentResponse]
    latest_tracking: TrackingPointResponse | None = None


class StatusUpdateRequest(BaseModel):
    status: BookingStatus
    reason: str | None = Field(None, max_length=500)


class CancelRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)
