"""Incident model for reported emergencies."""

from datetime import datetime

from sqlalchemy import DateTime, Float, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from firelink.database import Base


class Incident(Base):
    """
    Emergency reported by a member of the public.

    Lives in storage only; the realtime core receives incidents by value
    and reads nothing but the location and category.
    """

    __tablename__ = "incidents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    # Location
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)

    # Classification
    category: Mapped[str] = mapped_column(String(20), nullable=False, default="general")
    note: Mapped[str | None] = mapped_column(Text)

    # Reporter contact (optional)
    reporter_name: Mapped[str | None] = mapped_column(String(255))
    reporter_phone: Mapped[str | None] = mapped_column(String(50))

    # Lifecycle: active, in_progress, resolved
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)
    assigned_responder_id: Mapped[str | None] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        # Bounding box pre-filter for nearby queries
        Index("idx_incidents_lat_lng", lat, lng),
    )

    def __repr__(self) -> str:
        return f"<Incident {self.id}: {self.category} ({self.status})>"
