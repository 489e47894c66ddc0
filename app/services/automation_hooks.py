from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

from pydantic.alias_generators import to_camel
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from app.core.observability import automation_logger, log_failure
from app.models.dispute import Dispute
from app.models.item import Item
from app.models.order import MarketplaceOrder
from app.models.rfq import RFQ
from app.models.trust import TrustScore
from app.schemas.automation import EntityType, RuleContext
from app.services.automation_history import as_utc
from app.services.automation_service import EvaluationResult, evaluate_rules_for_entity
from app.services.notification_provider import NotificationProvider

TERMINAL_ORDER_STATUSES = {"delivered", "closed"}


def entity_snapshot(entity: Any) -> dict[str, Any]:
    """Column values of a mapped row keyed by camelCase column name, JSON-safe."""
    snapshot: dict[str, Any] = {}
    for attr in inspect(entity).mapper.column_attrs:
        value = getattr(entity, attr.key)
        if isinstance(value, datetime):
            value = as_utc(value).isoformat()
        elif isinstance(value, Decimal):
            value = float(value)
        snapshot[to_camel(attr.columns[0].name)] = value
    return snapshot


def on_rfq_received(
    db: Session,
    rfq_id: str,
    seller_id: str,
    *,
    notifier: NotificationProvider | None = None,
) -> EvaluationResult:
    try:
        rfq = db.get(RFQ, rfq_id)
        if not rfq:
            return EvaluationResult(success=False, error="RFQ not found")

        trust_score = db.get(TrustScore, rfq.buyer_id) if rfq.buyer_id else None
        context = RuleContext(
            entity_id=rfq_id,
            entity_number=rfq.rfq_number,
            entity_data=entity_snapshot(rfq),
            seller_id=seller_id,
            buyer_id=rfq.buyer_id,
            buyer_trust_score=trust_score.overall_score if trust_score else None,
            margin=rfq.estimated_margin,
            total_value=rfq.estimated_value,
            quantity=rfq.quantity,
        )
        return evaluate_rules_for_entity(db, EntityType.RFQ, rfq_id, seller_id, context, notifier=notifier)
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        log_failure(automation_logger, "automation_hook_failed", exc, hook="rfq_received", entity_id=rfq_id)
        return EvaluationResult(success=False, error="Failed to process RFQ automation")


def on_order_status_change(
    db: Session,
    order_id: str,
    seller_id: str,
    new_status: str,
    *,
    notifier: NotificationProvider | None = None,
) -> EvaluationResult:
    try:
        order = db.get(MarketplaceOrder, order_id)
        if not order:
            return EvaluationResult(success=False, error="Order not found")

        days_overdue: int | None = None
        if order.expected_delivery_date and new_status not in TERMINAL_ORDER_STATUSES:
            now = datetime.now(timezone.utc)
            expected = as_utc(order.expected_delivery_date)
            if now > expected:
                days_overdue = (now - expected) // timedelta(days=1)

        context = RuleContext(
            entity_id=order_id,
            entity_number=order.order_number,
            entity_data={**entity_snapshot(order), "status": new_status},
            seller_id=seller_id,
            total_value=order.total_amount,
            days_overdue=days_overdue,
        )
        return evaluate_rules_for_entity(db, EntityType.ORDER, order_id, seller_id, context, notifier=notifier)
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        log_failure(automation_logger, "automation_hook_failed", exc, hook="order_status_change", entity_id=order_id)
        return EvaluationResult(success=False, error="Failed to process order automation")


def on_sla_warning(
    db: Session,
    entity_type: EntityType | str,
    entity_id: str,
    seller_id: str,
    hours_until_breach: float,
    *,
    notifier: NotificationProvider | None = None,
) -> EvaluationResult:
    try:
        entity_data: dict[str, Any] = {}
        entity_number: str | None = None
        if EntityType(entity_type) == EntityType.ORDER:
            order = db.get(MarketplaceOrder, entity_id)
            if order:
                entity_data = entity_snapshot(order)
                entity_number = order.order_number

        context = RuleContext(
            entity_id=entity_id,
            entity_number=entity_number,
            entity_data=entity_data,
            seller_id=seller_id,
            hours_until_sla_breach=hours_until_breach,
        )
        return evaluate_rules_for_entity(db, entity_type, entity_id, seller_id, context, notifier=notifier)
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        log_failure(automation_logger, "automation_hook_failed", exc, hook="sla_warning", entity_id=entity_id)
        return EvaluationResult(success=False, error="Failed to process SLA warning automation")


def on_stock_change(
    db: Session,
    item_id: str,
    seller_id: str,
    new_stock: int,
    max_stock: int | None = None,
    *,
    notifier: NotificationProvider | None = None,
) -> EvaluationResult:
    try:
        item = db.get(Item, item_id)
        if not item:
            return EvaluationResult(success=False, error="Item not found")

        context = RuleContext(
            entity_id=item_id,
            entity_data=entity_snapshot(item),
            seller_id=seller_id,
            current_stock=new_stock,
            stock_percent=(new_stock / max_stock) * 100 if max_stock and max_stock > 0 else None,
        )
        return evaluate_rules_for_entity(db, EntityType.ITEM, item_id, seller_id, context, notifier=notifier)
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        log_failure(automation_logger, "automation_hook_failed", exc, hook="stock_change", entity_id=item_id)
        return EvaluationResult(success=False, error="Failed to process stock change automation")


def on_dispute_opened(
    db: Session,
    dispute_id: str,
    seller_id: str,
    *,
    notifier: NotificationProvider | None = None,
) -> EvaluationResult:
    try:
        dispute = db.get(Dispute, dispute_id)
        if not dispute:
            return EvaluationResult(success=False, error="Dispute not found")

        context = RuleContext(
            entity_id=dispute_id,
            entity_number=dispute.dispute_number,
            entity_data=entity_snapshot(dispute),
            seller_id=seller_id,
        )
        return evaluate_rules_for_entity(db, EntityType.DISPUTE, dispute_id, seller_id, context, notifier=notifier)
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        log_failure(automation_logger, "automation_hook_failed", exc, hook="dispute_opened", entity_id=dispute_id)
        return EvaluationResult(success=False, error="Failed to process dispute automation")
