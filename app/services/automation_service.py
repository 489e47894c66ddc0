from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.id_utils import generate_shortuuid
from app.core.observability import automation_logger, log_event, log_failure
from app.models.automation import AutomationExecution, AutomationRule
from app.schemas.automation import (
    RULE_TYPE_BY_ENTITY,
    ActionConfig,
    ActionResult,
    ActionType,
    EntityType,
    RuleContext,
    RuleCreate,
    RuleDetailOut,
    RuleEvaluationOut,
    RuleFilters,
    RuleListOut,
    RuleOut,
    RuleTemplate,
    RuleType,
    RuleUpdate,
    TemplateOverrides,
    TriggerConditions,
    TriggerType,
)
from app.schemas.common import PaginationMeta
from app.services import rule_store
from app.services.automation_actions import execute_action
from app.services.automation_conditions import evaluate_conditions
from app.services.automation_history import as_utc, execution_out
from app.services.notification_provider import NotificationProvider

RECENT_EXECUTIONS_LIMIT = 10


@dataclass(frozen=True)
class RuleMutationResult:
    success: bool
    rule: RuleOut | None = None
    error: str | None = None


@dataclass(frozen=True)
class EvaluationResult:
    success: bool
    results: list[RuleEvaluationOut] = field(default_factory=list)
    error: str | None = None


_RULE_TEMPLATES: list[RuleTemplate] = [
    RuleTemplate(
        id="rfq-low-margin",
        name="Auto-ignore Low Margin RFQs",
        description="Automatically ignore RFQs with profit margin below threshold",
        rule_type=RuleType.RFQ_RULE,
        trigger_type=TriggerType.RFQ_RECEIVED,
        trigger_conditions=TriggerConditions(margin_below=5),
        action_type=ActionType.AUTO_IGNORE,
        action_config=ActionConfig(set_status="ignored", send_notification=False),
        category="RFQ Management",
    ),
    RuleTemplate(
        id="rfq-high-value",
        name="Prioritize High-Value RFQs",
        description="Automatically flag high-value RFQs for priority handling",
        rule_type=RuleType.RFQ_RULE,
        trigger_type=TriggerType.RFQ_RECEIVED,
        trigger_conditions=TriggerConditions(value_above=50000),
        action_type=ActionType.AUTO_PRIORITIZE,
        action_config=ActionConfig(
            set_priority="high",
            send_notification=True,
            notification_message="High-value RFQ received",
        ),
        category="RFQ Management",
    ),
    RuleTemplate(
        id="rfq-trusted-buyer",
        name="Fast-track Trusted Buyer RFQs",
        description="Prioritize RFQs from buyers with high trust scores",
        rule_type=RuleType.RFQ_RULE,
        trigger_type=TriggerType.RFQ_RECEIVED,
        trigger_conditions=TriggerConditions(buyer_trust_above=85),
        action_type=ActionType.AUTO_PRIORITIZE,
        action_config=ActionConfig(set_priority="high", add_tag="trusted-buyer"),
        category="RFQ Management",
    ),
    RuleTemplate(
        id="order-delayed",
        name="Flag Delayed Orders",
        description="Automatically flag orders that are overdue",
        rule_type=RuleType.ORDER_RULE,
        trigger_type=TriggerType.ORDER_DELAYED,
        trigger_conditions=TriggerConditions(days_overdue=2),
        action_type=ActionType.AUTO_FLAG,
        action_config=ActionConfig(
            set_status="flagged",
            send_notification=True,
            notification_message="Order is overdue by {daysOverdue} days",
        ),
        category="Order Management",
    ),
    RuleTemplate(
        id="order-sla-warning",
        name="SLA Breach Warning",
        description="Send reminder before SLA deadline approaches",
        rule_type=RuleType.ORDER_RULE,
        trigger_type=TriggerType.SLA_WARNING,
        trigger_conditions=TriggerConditions(hours_until_breach=24),
        action_type=ActionType.AUTO_REMIND,
        action_config=ActionConfig(
            send_notification=True,
            notification_message="SLA deadline approaching in 24 hours",
        ),
        category="Order Management",
    ),
    RuleTemplate(
        id="inventory-low-stock",
        name="Low Stock Alert",
        description="Notify when item stock falls below threshold",
        rule_type=RuleType.INVENTORY_RULE,
        trigger_type=TriggerType.STOCK_LOW,
        trigger_conditions=TriggerConditions(stock_below=10),
        action_type=ActionType.AUTO_NOTIFY,
        action_config=ActionConfig(
            send_notification=True,
            notification_message="Stock running low for {itemName}",
        ),
        category="Inventory Management",
    ),
    RuleTemplate(
        id="inventory-out-of-stock",
        name="Auto-hide Out of Stock Items",
        description="Automatically hide items when stock reaches zero",
        rule_type=RuleType.INVENTORY_RULE,
        trigger_type=TriggerType.STOCK_LOW,
        trigger_conditions=TriggerConditions(stock_below=1),
        action_type=ActionType.AUTO_HIDE,
        action_config=ActionConfig(
            hide_item=True,
            send_notification=True,
            notification_message="Item hidden due to zero stock",
        ),
        category="Inventory Management",
    ),
    RuleTemplate(
        id="dispute-auto-respond",
        name="Auto-respond to Disputes",
        description="Send automatic acknowledgment when dispute is opened",
        rule_type=RuleType.DISPUTE_RULE,
        trigger_type=TriggerType.DISPUTE_OPENED,
        trigger_conditions=TriggerConditions(),
        action_type=ActionType.AUTO_RESPOND,
        action_config=ActionConfig(
            response_template="dispute_acknowledgment",
            response_message="We have received your dispute and will review it within 24 hours.",
        ),
        category="Dispute Management",
    ),
    RuleTemplate(
        id="dispute-escalate-old",
        name="Escalate Stale Disputes",
        description="Escalate disputes that remain unresolved for too long",
        rule_type=RuleType.DISPUTE_RULE,
        trigger_type=TriggerType.DISPUTE_OPENED,
        trigger_conditions=TriggerConditions(dispute_age_above=7),
        action_type=ActionType.AUTO_ESCALATE,
        action_config=ActionConfig(
            escalate_to="admin",
            escalation_reason="Dispute unresolved after 7 days",
            send_notification=True,
        ),
        category="Dispute Management",
    ),
]


def rule_out(rule: AutomationRule, *, execution_count: int | None = None) -> RuleOut:
    return RuleOut(
        id=rule.id,
        seller_id=rule.seller_id,
        name=rule.name,
        description=rule.description,
        rule_type=rule.rule_type,
        trigger_type=rule.trigger_type,
        trigger_conditions=TriggerConditions.parse_json(rule.trigger_conditions).to_public(),
        action_type=rule.action_type,
        action_config=ActionConfig.parse_json(rule.action_config).to_public(),
        priority=rule.priority,
        is_enabled=rule.is_enabled,
        trigger_count=rule.trigger_count,
        last_triggered_at=as_utc(rule.last_triggered_at) if rule.last_triggered_at else None,
        created_at=as_utc(rule.created_at),
        updated_at=as_utc(rule.updated_at),
        execution_count=execution_count,
    )


def create_rule(db: Session, seller_id: str, payload: RuleCreate) -> RuleMutationResult:
    try:
        rule = rule_store.create_rule(db, seller_id=seller_id, payload=payload)
        db.commit()
        db.refresh(rule)
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        log_failure(automation_logger, "automation_rule_create_failed", exc, seller_id=seller_id)
        return RuleMutationResult(success=False, error="Failed to create automation rule")

    log_event(automation_logger, "automation_rule_created", seller_id=seller_id, rule_id=rule.id)
    return RuleMutationResult(success=True, rule=rule_out(rule))


def update_rule(db: Session, seller_id: str, rule_id: str, payload: RuleUpdate) -> RuleMutationResult:
    try:
        rule = rule_store.update_rule(db, seller_id=seller_id, rule_id=rule_id, payload=payload)
        if not rule:
            return RuleMutationResult(success=False, error="Rule not found")
        db.commit()
        db.refresh(rule)
        out = rule_out(rule)
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        log_failure(automation_logger, "automation_rule_update_failed", exc, seller_id=seller_id, rule_id=rule_id)
        return RuleMutationResult(success=False, error="Failed to update automation rule")

    return RuleMutationResult(success=True, rule=out)


def delete_rule(db: Session, seller_id: str, rule_id: str) -> RuleMutationResult:
    try:
        deleted = rule_store.delete_rule(db, seller_id=seller_id, rule_id=rule_id)
        if not deleted:
            return RuleMutationResult(success=False, error="Rule not found")
        db.commit()
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        log_failure(automation_logger, "automation_rule_delete_failed", exc, seller_id=seller_id, rule_id=rule_id)
        return RuleMutationResult(success=False, error="Failed to delete automation rule")

    log_event(automation_logger, "automation_rule_deleted", seller_id=seller_id, rule_id=rule_id)
    return RuleMutationResult(success=True)


def toggle_rule(db: Session, seller_id: str, rule_id: str, enabled: bool) -> RuleMutationResult:
    try:
        rule = rule_store.set_rule_enabled(db, seller_id=seller_id, rule_id=rule_id, enabled=enabled)
        if not rule:
            return RuleMutationResult(success=False, error="Rule not found")
        db.commit()
        db.refresh(rule)
        out = rule_out(rule)
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        log_failure(automation_logger, "automation_rule_toggle_failed", exc, seller_id=seller_id, rule_id=rule_id)
        return RuleMutationResult(success=False, error="Failed to toggle rule")

    return RuleMutationResult(success=True, rule=out)


def get_seller_rules(db: Session, seller_id: str, filters: RuleFilters | None = None) -> RuleListOut:
    filters = filters or RuleFilters()
    try:
        rows, total, execution_counts = rule_store.list_rules(db, seller_id=seller_id, filters=filters)
        rules = [rule_out(row, execution_count=execution_counts.get(row.id, 0)) for row in rows]
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        log_failure(automation_logger, "automation_rules_list_failed", exc, seller_id=seller_id)
        return RuleListOut(
            rules=[],
            pagination=PaginationMeta(page=1, limit=50, total=0, total_pages=0),
        )

    return RuleListOut(
        rules=rules,
        pagination=PaginationMeta.build(page=filters.page, limit=filters.limit, total=total),
    )


def get_rule(db: Session, seller_id: str, rule_id: str) -> RuleDetailOut | None:
    try:
        rule = rule_store.find_rule(db, seller_id=seller_id, rule_id=rule_id)
        if not rule:
            return None
        executions = db.execute(
            select(AutomationExecution)
            .where(AutomationExecution.rule_id == rule.id)
            .order_by(AutomationExecution.executed_at.desc())
            .limit(RECENT_EXECUTIONS_LIMIT)
        ).scalars().all()
        detail = RuleDetailOut(
            **rule_out(rule).model_dump(),
            executions=[execution_out(item) for item in executions],
        )
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        log_failure(automation_logger, "automation_rule_fetch_failed", exc, seller_id=seller_id, rule_id=rule_id)
        return None

    return detail


def evaluate_rules_for_entity(
    db: Session,
    entity_type: EntityType | str,
    entity_id: str,
    seller_id: str,
    context: RuleContext,
    *,
    notifier: NotificationProvider | None = None,
) -> EvaluationResult:
    """Run the seller's enabled rules for one entity in ascending priority.

    Matched rules execute their action, append an execution row and bump the
    rule's trigger stats, then commit. Action failures are recorded and do not
    stop the loop. A store failure rolls back only the rule in progress; rules
    already committed keep their effects.
    """
    results: list[RuleEvaluationOut] = []
    try:
        entity_type = EntityType(entity_type)
        rules = rule_store.list_enabled_rules_for_evaluation(
            db,
            seller_id=seller_id,
            rule_type=RULE_TYPE_BY_ENTITY[entity_type],
        )
        trigger_data = context.dump_json()

        for rule in rules:
            rule_id, rule_name = rule.id, rule.name
            conditions = TriggerConditions.parse_json(rule.trigger_conditions)
            if not evaluate_conditions(conditions, context):
                results.append(
                    RuleEvaluationOut(rule_id=rule_id, rule_name=rule_name, matched=False, executed=False)
                )
                continue

            outcome = execute_action(
                db,
                rule=rule,
                context=context,
                entity_type=entity_type,
                notifier=notifier,
            )
            now = datetime.now(timezone.utc)
            db.add(
                AutomationExecution(
                    id=generate_shortuuid(),
                    rule_id=rule_id,
                    seller_id=seller_id,
                    entity_type=entity_type.value,
                    entity_id=entity_id,
                    entity_number=context.entity_number,
                    trigger_data=trigger_data,
                    action_taken=outcome.action_taken[:255],
                    action_result=(ActionResult.SUCCESS if outcome.success else ActionResult.FAILED).value,
                    error_message=outcome.error,
                    executed_at=now,
                )
            )
            db.flush()
            rule_store.increment_trigger_stats(db, rule_id=rule_id, now=now)
            db.commit()
            results.append(
                RuleEvaluationOut(
                    rule_id=rule_id,
                    rule_name=rule_name,
                    matched=True,
                    executed=True,
                    result=outcome.action_taken,
                    error=outcome.error,
                )
            )
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        log_failure(
            automation_logger,
            "automation_evaluation_failed",
            exc,
            seller_id=seller_id,
            entity_type=getattr(entity_type, "value", entity_type),
            entity_id=entity_id,
        )
        return EvaluationResult(success=False, results=[], error="Failed to evaluate rules")

    log_event(
        automation_logger,
        "automation_rules_evaluated",
        seller_id=seller_id,
        entity_type=entity_type.value,
        entity_id=entity_id,
        evaluated=len(results),
        executed=sum(1 for item in results if item.executed),
    )
    return EvaluationResult(success=True, results=results)


def get_default_rule_templates() -> list[RuleTemplate]:
    return [template.model_copy(deep=True) for template in _RULE_TEMPLATES]


def get_rule_template(template_id: str) -> RuleTemplate | None:
    for template in _RULE_TEMPLATES:
        if template.id == template_id:
            return template.model_copy(deep=True)
    return None


def create_rule_from_template(
    db: Session,
    seller_id: str,
    template_id: str,
    overrides: TemplateOverrides | None = None,
) -> RuleMutationResult:
    template = get_rule_template(template_id)
    if not template:
        return RuleMutationResult(success=False, error="Template not found")

    overrides = overrides or TemplateOverrides()
    payload = RuleCreate(
        name=overrides.name if overrides.name is not None else template.name,
        description=overrides.description if overrides.description is not None else template.description,
        rule_type=template.rule_type,
        trigger_type=template.trigger_type,
        trigger_conditions=(
            overrides.trigger_conditions
            if overrides.trigger_conditions is not None
            else template.trigger_conditions
        ),
        action_type=template.action_type,
        action_config=overrides.action_config if overrides.action_config is not None else template.action_config,
        priority=overrides.priority,
        is_enabled=overrides.is_enabled,
    )
    return create_rule(db, seller_id, payload)
