import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from driverhire.database import Base
from driverhire.models.enums import TrackingStage
from driverhire.models.types import GUID, utcnow


class TrackingPoint(Base):
    """Append-only GPS log written by the tracking service; read-only here."""

    __tablename__ = "tracking_points"
    __table_args__ = (
        CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_tracking_latitude_range"),
        CheckConstraint("longitude >= -180 AND longitude <= 180", name="ck_tracking_longitude_range"),
        Index("ix_tracking_booking_created", "booking_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    latitude: Mapped[float] = mapped_column(Numeric(9, 6), nullable=False)
    longitude: Mapped[float] = mapped_column(Numeric(9, 6), nullable=False)
    stage: Mapped[TrackingStage | None] = mapped_column(String(30), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
