import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from driverhire.database import Base
from driverhire.models.enums import DriverVerificationStatus
from driverhire.models.types import GUID, utcnow


class DriverProfile(Base):
    __tablename__ = "driver_profiles"
    __table_args__ = (
        CheckConstraint("price_per_day > 0", name="ck_driver_price_per_day_positive"),
        CheckConstraint("rating_avg >= 0 AND rating_avg <= 5", name="ck_driver_rating_avg_range"),
        CheckConstraint("total_reviews >= 0", name="ck_driver_total_reviews_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="RESTRICT"), unique=True, nullable=False
    )
    vehicle_brand: Mapped[str] = mapped_column(String(100), nullable=False)
    vehicle_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    vehicle_plate: Mapped[str] = mapped_column(String(20), nullable=False)
    vehicle_color: Mapped[str | None] = mapped_column(String(30), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    seat_capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    price_per_day: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    verification_status: Mapped[DriverVerificationStatus] = mapped_column(
        String(20), nullable=False, default=DriverVerificationStatus.PENDING.value, index=True
    )
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    rating_avg: Mapped[Decimal] = mapped_column(
        Numeric(3, 2), nullable=False, default=Decimal("0.00"), index=True
    )
    total_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )

    user: Mapped["User"] = relationship("User", back_populates="driver_profile", lazy="raise")
