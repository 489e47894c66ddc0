from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class AutomationRule(Base):
    __tablename__ = "automation_rules"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    seller_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    rule_type: Mapped[str] = mapped_column(String(30), nullable=False)
    trigger_type: Mapped[str] = mapped_column(String(40), nullable=False)
    # Serialized TriggerConditions / ActionConfig (camelCase JSON text).
    trigger_conditions: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    action_type: Mapped[str] = mapped_column(String(40), nullable=False)
    action_config: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=100, server_default="100")
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")
    trigger_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_triggered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index(
            "ix_automation_rules_seller_type_enabled_priority",
            "seller_id",
            "rule_type",
            "is_enabled",
            "priority",
        ),
        Index("ix_automation_rules_seller_trigger_type", "seller_id", "trigger_type"),
    )


class AutomationExecution(Base):
    __tablename__ = "automation_executions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    # No foreign key: system scans log under synthetic rule ids.
    rule_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    seller_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    trigger_data: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    action_taken: Mapped[str] = mapped_column(String(255), nullable=False)
    action_result: Mapped[str] = mapped_column(String(20), nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    executed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_automation_executions_seller_executed_at", "seller_id", "executed_at"),
        Index("ix_automation_executions_rule_executed_at", "rule_id", "executed_at"),
        Index("ix_automation_executions_entity", "entity_type", "entity_id"),
    )
