from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class RFQ(Base):
    __tablename__ = "rfqs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    rfq_number: Mapped[Optional[str]] = mapped_column(String(40), nullable=True, index=True)
    seller_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    buyer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", server_default="pending")
    quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    estimated_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    estimated_margin: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    # Extension bag for priority/tags; see app.core.extension_bag.
    metadata_json: Mapped[Optional[str]] = mapped_column("metadata", Text, nullable=True)
    viewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_rfqs_status_viewed_created_at", "status", "viewed_at", "created_at"),
    )
