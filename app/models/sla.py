from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class SLARecord(Base):
    __tablename__ = "sla_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    seller_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False, default="order", server_default="order")
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    sla_type: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    expected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    actual_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_breach: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_sla_records_open_expected_at", "is_breach", "actual_at", "expected_at"),
    )
