import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from driverhire.models.enums import BookingPaymentStatus, PaymentKind, PaymentMethod, PaymentStatus


class PaymentResponse(BaseModel):
    id: uuid.UUID
    booking_id: uuid.UUID
    amount: Decimal
    kind: PaymentKind
    method: PaymentMethod
    proof_ref: str | None
    status: PaymentStatus
    verified_by: uuid.UUID | None
    verified_at: datetime | None
    notes: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class PaymentSummary(BaseModel):
    total_price: Decimal
    total_paid: Decimal
    remaining: Decimal
    payment_status: BookingPaymentStatus


class PaymentSubmitResponse(BaseModel):
    payment: PaymentResponse
    booking_payment_status: BookingPaymentStatus


class PaymentHistoryResponse(BaseModel):
    payments: list[PaymentResponse]
    summary: PaymentSummary


class PaymentVerifyRequest(BaseModel):
    decision: Literal["verified", "rejected"]
    notes: str | None = Field(None, max_length=500)


class PaymentVerifyResponse(BaseModel):
    payment: PaymentResponse
    booking_payment_status: BookingPaymentStatus


class PendingPaymentResponse(PaymentResponse):
    booking_code: str
    proof_url: str | None = None


class PendingPaymentListResponse(BaseModel):
    items: list[PendingPaymentResponse]
    total: int
    limit: int
    offset: int
