import uuid
from datetime import date, datetime, time
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from driverhire.database import Base
from driverhire.models.enums import BookingPaymentStatus, BookingStatus, ServiceKind
from driverhire.models.types import GUID, utcnow


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint("code", name="uq_booking_code"),
        CheckConstraint("end_date >= start_date", name="ck_booking_date_range"),
        CheckConstraint("day_count >= 1", name="ck_booking_day_count_positive"),
        CheckConstraint("price_per_day > 0", name="ck_booking_price_per_day_positive"),
        CheckConstraint("total_price > 0", name="ck_booking_total_price_positive"),
        Index("ix_booking_driver_dates", "driver_id", "start_date", "end_date"),
        Index("ix_booking_customer_created", "customer_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(10), nullable=False)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    driver_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("driver_profiles.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    service_kind: Mapped[ServiceKind] = mapped_column(String(20), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    pickup_location: Mapped[str] = mapped_column(Text, nullable=False)
    destination: Mapped[str] = mapped_column(Text, nullable=False)
    passenger_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cargo_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Pricing is snapshotted at creation; later driver price changes never touch it.
    day_count: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_day: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        String(20), nullable=False, default=BookingStatus.PENDING.value, index=True
    )
    # Derived from verified payments; written only by the payment ledger.
    payment_status: Mapped[BookingPaymentStatus] = mapped_column(
        String(20), nullable=False, default=BookingPaymentStatus.UNPAID.value
    )
    cancelled_by: Mapped[str | None] = mapped_column(String(10), nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    customer: Mapped["User"] = relationship("User", foreign_keys=[customer_id], lazy="raise")
    driver: Mapped["DriverProfile"] = relationship("DriverProfile", lazy="raise")
    payments: Mapped[list["Payment"]] = relationship(
        "Payment", back_populates="booking", lazy="raise", order_by="Payment.created_at.desc()"
    )
    review: Mapped["Review | None"] = relationship(
        "Review", back_populates="booking", uselist=False, lazy="raise"
    )
