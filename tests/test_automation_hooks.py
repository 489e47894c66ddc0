import json
from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from app.models.automation import AutomationExecution
from app.models.dispute import Dispute
from app.models.item import Item
from app.models.order import MarketplaceOrder
from app.models.rfq import RFQ
from app.models.trust import TrustScore
from app.schemas.automation import (
    ActionConfig,
    ActionType,
    RuleCreate,
    RuleType,
    TemplateOverrides,
    TriggerConditions,
    TriggerType,
)
from app.services.automation_hooks import (
    entity_snapshot,
    on_dispute_opened,
    on_order_status_change,
    on_rfq_received,
    on_sla_warning,
    on_stock_change,
)
from app.services.automation_service import create_rule, create_rule_from_template

SELLER = "seller-1"


def _notify_rule(db, rule_type, trigger_type, conditions, message="Heads up"):
    return create_rule(
        db,
        SELLER,
        RuleCreate(
            name=f"{rule_type.value} watcher",
            rule_type=rule_type,
            trigger_type=trigger_type,
            trigger_conditions=conditions,
            action_type=ActionType.AUTO_NOTIFY,
            action_config=ActionConfig(notification_message=message),
        ),
    ).rule


def _trigger_data(db):
    execution = db.execute(select(AutomationExecution)).scalar_one()
    return json.loads(execution.trigger_data)


def test_hooks_report_missing_entities(db, notifier):
    assert on_rfq_received(db, "nope", SELLER, notifier=notifier).error == "RFQ not found"
    assert on_order_status_change(db, "nope", SELLER, "shipped", notifier=notifier).error == "Order not found"
    assert on_stock_change(db, "nope", SELLER, 3, notifier=notifier).error == "Item not found"
    assert on_dispute_opened(db, "nope", SELLER, notifier=notifier).error == "Dispute not found"


def test_rfq_hook_loads_buyer_trust_score(db, notifier):
    db.add(
        RFQ(
            id="rfq-1",
            rfq_number="RFQ-0001",
            seller_id=SELLER,
            buyer_id="buyer-1",
            status="pending",
            quantity=40,
            estimated_value=60000.0,
            estimated_margin=12.5,
            category="fabrics",
        )
    )
    db.add(TrustScore(user_id="buyer-1", overall_score=91.0))
    db.commit()
    rule = create_rule_from_template(db, SELLER, "rfq-trusted-buyer").rule

    result = on_rfq_received(db, "rfq-1", SELLER, notifier=notifier)

    assert result.success
    assert result.results[0].rule_id == rule.id
    assert result.results[0].matched
    data = _trigger_data(db)
    assert data["buyerTrustScore"] == 91.0
    assert data["totalValue"] == 60000.0
    assert data["margin"] == 12.5
    assert data["quantity"] == 40
    assert data["entityData"]["category"] == "fabrics"
    assert data["entityData"]["rfqNumber"] == "RFQ-0001"


def test_rfq_hook_without_trust_score_skips_trust_condition(db, notifier):
    db.add(RFQ(id="rfq-1", seller_id=SELLER, buyer_id="buyer-9", status="pending"))
    db.commit()
    create_rule_from_template(db, SELLER, "rfq-trusted-buyer")

    result = on_rfq_received(db, "rfq-1", SELLER, notifier=notifier)

    assert result.success
    assert result.results[0].matched
    assert "buyerTrustScore" not in _trigger_data(db)


def test_order_hook_computes_days_overdue(db, notifier):
    db.add(
        MarketplaceOrder(
            id="ord-1",
            order_number="ORD-1",
            seller_id=SELLER,
            status="shipped",
            total_amount=250.0,
            expected_delivery_date=datetime.now(timezone.utc) - timedelta(days=3, hours=2),
        )
    )
    db.commit()
    create_rule_from_template(db, SELLER, "order-delayed")

    result = on_order_status_change(db, "ord-1", SELLER, "processing", notifier=notifier)

    assert result.success
    assert result.results[0].matched
    assert notifier.messages == ["Order is overdue by 3 days"]
    assert db.get(MarketplaceOrder, "ord-1").status == "flagged"
    data = _trigger_data(db)
    assert data["daysOverdue"] == 3
    assert data["entityData"]["status"] == "processing"


def test_order_hook_ignores_overdue_for_delivered_orders(db, notifier):
    db.add(
        MarketplaceOrder(
            id="ord-1",
            order_number="ORD-1",
            seller_id=SELLER,
            status="shipped",
            expected_delivery_date=datetime.now(timezone.utc) - timedelta(days=10),
        )
    )
    db.commit()
    _notify_rule(
        db,
        RuleType.ORDER_RULE,
        TriggerType.ORDER_STATUS_CHANGE,
        TriggerConditions(status_equals="delivered"),
    )

    result = on_order_status_change(db, "ord-1", SELLER, "delivered", notifier=notifier)

    assert result.success
    assert result.results[0].matched
    assert "daysOverdue" not in _trigger_data(db)


def test_sla_warning_hook_passes_hours_until_breach(db, notifier):
    db.add(MarketplaceOrder(id="ord-1", order_number="ORD-1", seller_id=SELLER, status="processing"))
    db.commit()
    create_rule_from_template(db, SELLER, "order-sla-warning")

    matched = on_sla_warning(db, "order", "ord-1", SELLER, 6.5, notifier=notifier)
    assert matched.results[0].matched
    assert notifier.messages == ["SLA deadline approaching in 24 hours"]
    assert _trigger_data(db)["hoursUntilSLABreach"] == 6.5

    too_early = on_sla_warning(db, "order", "ord-1", SELLER, 48, notifier=notifier)
    assert too_early.success
    assert not too_early.results[0].matched


def test_sla_warning_hook_rejects_unknown_entity_type(db, notifier):
    result = on_sla_warning(db, "invoice", "inv-1", SELLER, 2, notifier=notifier)

    assert not result.success
    assert result.error == "Failed to process SLA warning automation"


def test_stock_hook_computes_percent_only_with_positive_max(db, notifier):
    db.add(Item(id="item-1", seller_id=SELLER, name="Kente", status="active", stock=50))
    db.commit()
    _notify_rule(
        db,
        RuleType.INVENTORY_RULE,
        TriggerType.STOCK_LOW,
        TriggerConditions(stock_percent_below=20),
    )

    with_max = on_stock_change(db, "item-1", SELLER, 5, 50, notifier=notifier)
    assert with_max.results[0].matched

    zero_max = on_stock_change(db, "item-1", SELLER, 5, 0, notifier=notifier)
    assert zero_max.results[0].matched

    executions = db.execute(select(AutomationExecution).order_by(AutomationExecution.executed_at)).scalars().all()
    assert json.loads(executions[0].trigger_data)["stockPercent"] == 10
    assert "stockPercent" not in json.loads(executions[1].trigger_data)
    assert json.loads(executions[1].trigger_data)["currentStock"] == 5


def test_dispute_hook_runs_dispute_rules(db, notifier):
    db.add(Dispute(id="dsp-1", dispute_number="DSP-1", seller_id=SELLER, status="open", priority="medium"))
    db.commit()
    create_rule_from_template(db, SELLER, "dispute-auto-respond", TemplateOverrides(priority=1))

    result = on_dispute_opened(db, "dsp-1", SELLER, notifier=notifier)

    assert result.success
    assert result.results[0].result == "Sent auto-response"


def test_entity_snapshot_uses_camel_case_column_names():
    created = datetime(2026, 10, 1, 12, 0)
    rfq = RFQ(id="rfq-1", buyer_id="b-1", status="pending", metadata_json='{"tags": []}', created_at=created)

    snapshot = entity_snapshot(rfq)

    assert snapshot["buyerId"] == "b-1"
    assert snapshot["metadata"] == '{"tags": []}'
    assert snapshot["createdAt"] == "2026-10-01T12:00:00+00:00"
