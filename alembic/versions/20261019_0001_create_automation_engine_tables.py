"""create automation engine tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "automation_rules",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("seller_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("rule_type", sa.String(length=30), nullable=False),
        sa.Column("trigger_type", sa.String(length=40), nullable=False),
        sa.Column("trigger_conditions", sa.Text(), nullable=False),
        sa.Column("action_type", sa.String(length=40), nullable=False),
        sa.Column("action_config", sa.Text(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("trigger_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_triggered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_automation_rules_seller_id", "automation_rules", ["seller_id"], unique=False)
    op.create_index(
        "ix_automation_rules_seller_type_enabled_priority",
        "automation_rules",
        ["seller_id", "rule_type", "is_enabled", "priority"],
        unique=False,
    )
    op.create_index(
        "ix_automation_rules_seller_trigger_type",
        "automation_rules",
        ["seller_id", "trigger_type"],
        unique=False,
    )

    op.create_table(
        "automation_executions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("rule_id", sa.String(length=64), nullable=False),
        sa.Column("seller_id", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=20), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("entity_number", sa.String(length=64), nullable=True),
        sa.Column("trigger_data", sa.Text(), nullable=False),
        sa.Column("action_taken", sa.String(length=255), nullable=False),
        sa.Column("action_result", sa.String(length=20), nullable=False),
        sa.Column("error_message", sa.String(length=255), nullable=True),
        sa.Column("executed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_automation_executions_rule_id", "automation_executions", ["rule_id"], unique=False)
    op.create_index("ix_automation_executions_seller_id", "automation_executions", ["seller_id"], unique=False)
    op.create_index(
        "ix_automation_executions_seller_executed_at",
        "automation_executions",
        ["seller_id", "executed_at"],
        unique=False,
    )
    op.create_index(
        "ix_automation_executions_rule_executed_at",
        "automation_executions",
        ["rule_id", "executed_at"],
        unique=False,
    )
    op.create_index(
        "ix_automation_executions_entity",
        "automation_executions",
        ["entity_type", "entity_id"],
        unique=False,
    )

    op.create_table(
        "rfqs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("rfq_number", sa.String(length=40), nullable=True),
        sa.Column("seller_id", sa.String(length=64), nullable=True),
        sa.Column("buyer_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("estimated_value", sa.Float(), nullable=True),
        sa.Column("estimated_margin", sa.Float(), nullable=True),
        sa.Column("category", sa.String(length=80), nullable=True),
        sa.Column("metadata", sa.Text(), nullable=True),
        sa.Column("viewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_rfqs_rfq_number", "rfqs", ["rfq_number"], unique=False)
    op.create_index("ix_rfqs_seller_id", "rfqs", ["seller_id"], unique=False)
    op.create_index("ix_rfqs_buyer_id", "rfqs", ["buyer_id"], unique=False)
    op.create_index("ix_rfqs_status_viewed_created_at", "rfqs", ["status", "viewed_at", "created_at"], unique=False)

    op.create_table(
        "marketplace_orders",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("order_number", sa.String(length=40), nullable=False),
        sa.Column("seller_id", sa.String(length=64), nullable=False),
        sa.Column("buyer_id", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("health_status", sa.String(length=20), nullable=False, server_default="on_track"),
        sa.Column("total_amount", sa.Float(), nullable=False),
        sa.Column("expected_delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_marketplace_orders_order_number", "marketplace_orders", ["order_number"], unique=False)
    op.create_index("ix_marketplace_orders_seller_id", "marketplace_orders", ["seller_id"], unique=False)
    op.create_index("ix_marketplace_orders_buyer_id", "marketplace_orders", ["buyer_id"], unique=False)
    op.create_index(
        "ix_marketplace_orders_status_health",
        "marketplace_orders",
        ["status", "health_status"],
        unique=False,
    )
    op.create_index(
        "ix_marketplace_orders_seller_status",
        "marketplace_orders",
        ["seller_id", "status"],
        unique=False,
    )

    op.create_table(
        "items",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("seller_id", sa.String(length=64), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=True),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("category", sa.String(length=80), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("metadata", sa.Text(), nullable=True),
        sa.Column("last_order_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_items_seller_id", "items", ["seller_id"], unique=False)
    op.create_index("ix_items_status_stock", "items", ["status", "stock"], unique=False)
    op.create_index("ix_items_status_last_order_at", "items", ["status", "last_order_at"], unique=False)

    op.create_table(
        "disputes",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("dispute_number", sa.String(length=40), nullable=False),
        sa.Column("seller_id", sa.String(length=64), nullable=False),
        sa.Column("buyer_id", sa.String(length=64), nullable=True),
        sa.Column("order_id", sa.String(length=36), nullable=True),
        sa.Column("dispute_type", sa.String(length=40), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="open"),
        sa.Column("priority", sa.String(length=10), nullable=False, server_default="medium"),
        sa.Column("escalated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("escalated_to", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_disputes_dispute_number", "disputes", ["dispute_number"], unique=False)
    op.create_index("ix_disputes_seller_id", "disputes", ["seller_id"], unique=False)
    op.create_index("ix_disputes_buyer_id", "disputes", ["buyer_id"], unique=False)
    op.create_index("ix_disputes_order_id", "disputes", ["order_id"], unique=False)
    op.create_index("ix_disputes_status_created_at", "disputes", ["status", "created_at"], unique=False)

    op.create_table(
        "dispute_messages",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("dispute_id", sa.String(length=36), nullable=False),
        sa.Column("sender_id", sa.String(length=64), nullable=False),
        sa.Column("sender_type", sa.String(length=20), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_internal", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["dispute_id"], ["disputes.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_dispute_messages_dispute_id", "dispute_messages", ["dispute_id"], unique=False)

    op.create_table(
        "dispute_events",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("dispute_id", sa.String(length=36), nullable=False),
        sa.Column("actor_id", sa.String(length=64), nullable=False),
        sa.Column("actor_type", sa.String(length=20), nullable=False),
        sa.Column("event_type", sa.String(length=40), nullable=False),
        sa.Column("from_status", sa.String(length=20), nullable=True),
        sa.Column("to_status", sa.String(length=20), nullable=True),
        sa.Column("metadata", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["dispute_id"], ["disputes.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_dispute_events_dispute_id", "dispute_events", ["dispute_id"], unique=False)

    op.create_table(
        "trust_scores",
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("overall_score", sa.Float(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "sla_records",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("seller_id", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=20), nullable=False, server_default="order"),
        sa.Column("entity_id", sa.String(length=36), nullable=False),
        sa.Column("sla_type", sa.String(length=40), nullable=True),
        sa.Column("expected_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actual_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_breach", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sla_records_seller_id", "sla_records", ["seller_id"], unique=False)
    op.create_index("ix_sla_records_entity_id", "sla_records", ["entity_id"], unique=False)
    op.create_index(
        "ix_sla_records_open_expected_at",
        "sla_records",
        ["is_breach", "actual_at", "expected_at"],
        unique=False,
    )

    op.create_table(
        "seller_notifications",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("seller_id", sa.String(length=64), nullable=False),
        sa.Column("notification_type", sa.String(length=40), nullable=False),
        sa.Column("message", sa.String(length=500), nullable=False),
        sa.Column("entity_type", sa.String(length=20), nullable=True),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_seller_notifications_seller_id", "seller_notifications", ["seller_id"], unique=False)
    op.create_index(
        "ix_seller_notifications_seller_created_at",
        "seller_notifications",
        ["seller_id", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_seller_notifications_seller_created_at", table_name="seller_notifications")
    op.drop_index("ix_seller_notifications_seller_id", table_name="seller_notifications")
    op.drop_table("seller_notifications")

    op.drop_index("ix_sla_records_open_expected_at", table_name="sla_records")
    op.drop_index("ix_sla_records_entity_id", table_name="sla_records")
    op.drop_index("ix_sla_records_seller_id", table_name="sla_records")
    op.drop_table("sla_records")

    op.drop_table("trust_scores")

    op.drop_index("ix_dispute_events_dispute_id", table_name="dispute_events")
    op.drop_table("dispute_events")
    op.drop_index("ix_dispute_messages_dispute_id", table_name="dispute_messages")
    op.drop_table("dispute_messages")

    op.drop_index("ix_disputes_status_created_at", table_name="disputes")
    op.drop_index("ix_disputes_order_id", table_name="disputes")
    op.drop_index("ix_disputes_buyer_id", table_name="disputes")
    op.drop_index("ix_disputes_seller_id", table_name="disputes")
    op.drop_index("ix_disputes_dispute_number", table_name="disputes")
    op.drop_table("disputes")

    op.drop_index("ix_items_status_last_order_at", table_name="items")
    op.drop_index("ix_items_status_stock", table_name="items")
    op.drop_index("ix_items_seller_id", table_name="items")
    op.drop_table("items")

    op.drop_index("ix_marketplace_orders_seller_status", table_name="marketplace_orders")
    op.drop_index("ix_marketplace_orders_status_health", table_name="marketplace_orders")
    op.drop_index("ix_marketplace_orders_buyer_id", table_name="marketplace_orders")
    op.drop_index("ix_marketplace_orders_seller_id", table_name="marketplace_orders")
    op.drop_index("ix_marketplace_orders_order_number", table_name="marketplace_orders")
    op.drop_table("marketplace_orders")

    op.drop_index("ix_rfqs_status_viewed_created_at", table_name="rfqs")
    op.drop_index("ix_rfqs_buyer_id", table_name="rfqs")
    op.drop_index("ix_rfqs_seller_id", table_name="rfqs")
    op.drop_index("ix_rfqs_rfq_number", table_name="rfqs")
    op.drop_table("rfqs")

    op.drop_index("ix_automation_executions_entity", table_name="automation_executions")
    op.drop_index("ix_automation_executions_rule_executed_at", table_name="automation_executions")
    op.drop_index("ix_automation_executions_seller_executed_at", table_name="automation_executions")
    op.drop_index("ix_automation_executions_seller_id", table_name="automation_executions")
    op.drop_index("ix_automation_executions_rule_id", table_name="automation_executions")
    op.drop_table("automation_executions")

    op.drop_index("ix_automation_rules_seller_trigger_type", table_name="automation_rules")
    op.drop_index("ix_automation_rules_seller_type_enabled_priority", table_name="automation_rules")
    op.drop_index("ix_automation_rules_seller_id", table_name="automation_rules")
    op.drop_table("automation_rules")
