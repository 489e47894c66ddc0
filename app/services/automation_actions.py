import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.extension_bag import add_extension_tag, update_extension_bag
from app.core.id_utils import generate_shortuuid
from app.core.observability import automation_logger, log_failure
from app.models.automation import AutomationRule
from app.models.dispute import Dispute, DisputeEvent, DisputeMessage
from app.models.item import Item
from app.models.order import MarketplaceOrder
from app.models.rfq import RFQ
from app.schemas.automation import ActionConfig, ActionType, EntityType, RuleContext
from app.services.notification_provider import (
    NotificationProvider,
    NotificationRequest,
    get_notification_provider,
)

SYSTEM_ACTOR = "system"

_STATUS_MODELS = {
    EntityType.RFQ: RFQ,
    EntityType.ORDER: MarketplaceOrder,
    EntityType.DISPUTE: Dispute,
}


@dataclass(frozen=True)
class ActionOutcome:
    success: bool
    action_taken: str
    error: str | None = None


@dataclass(frozen=True)
class _ActionCall:
    config: ActionConfig
    context: RuleContext
    entity_type: EntityType
    notifier: NotificationProvider


def execute_action(
    db: Session,
    *,
    rule: AutomationRule,
    context: RuleContext,
    entity_type: EntityType,
    notifier: NotificationProvider | None = None,
) -> ActionOutcome:
    try:
        action_type = ActionType(rule.action_type)
    except ValueError:
        return ActionOutcome(
            success=False,
            action_taken="Unknown action type",
            error=f"Unknown action type: {rule.action_type}",
        )

    call = _ActionCall(
        config=ActionConfig.parse_json(rule.action_config),
        context=context,
        entity_type=entity_type,
        notifier=notifier or get_notification_provider(settings.notification_provider_default),
    )
    handler = _ACTION_HANDLERS[action_type]
    try:
        with db.begin_nested():
            action_taken = handler(db, call)
    except Exception as exc:  # noqa: BLE001
        log_failure(
            automation_logger,
            "automation_action_failed",
            exc,
            rule_id=rule.id,
            action_type=action_type.value,
            entity_type=entity_type.value,
            entity_id=context.entity_id,
        )
        return ActionOutcome(success=False, action_taken=action_type.value, error=_short_error(exc))
    return ActionOutcome(success=True, action_taken=action_taken)


def _auto_ignore(db: Session, call: _ActionCall) -> str:
    status = call.config.set_status or "ignored"
    _update_entity_status(db, call.entity_type, call.context.entity_id, status)
    return f"Set status to {status}"


def _auto_flag(db: Session, call: _ActionCall) -> str:
    _update_entity_status(db, call.entity_type, call.context.entity_id, call.config.set_status or "flagged")
    if call.config.send_notification:
        _notify(db, call, call.config.notification_message or "Entity flagged by automation")
        return "Flagged entity and sent notification"
    return "Flagged entity"


def _auto_prioritize(db: Session, call: _ActionCall) -> str:
    priority = call.config.set_priority or "high"
    _update_entity_priority(db, call.entity_type, call.context.entity_id, priority)
    if call.config.add_tag:
        _add_entity_tag(db, call.entity_type, call.context.entity_id, call.config.add_tag)
    if call.config.send_notification:
        _notify(db, call, call.config.notification_message or "High priority item")
    return f"Set priority to {priority}"


def _auto_remind(db: Session, call: _ActionCall) -> str:
    if call.config.send_notification:
        _notify(
            db,
            call,
            call.config.notification_message or call.config.reminder_message or "Reminder",
        )
    return "Sent reminder notification"


def _auto_respond(db: Session, call: _ActionCall) -> str:
    if call.entity_type == EntityType.DISPUTE:
        db.add(
            DisputeMessage(
                id=generate_shortuuid(),
                dispute_id=call.context.entity_id,
                sender_id=SYSTEM_ACTOR,
                sender_type=SYSTEM_ACTOR,
                message=call.config.response_message or call.config.response_template or "",
                is_internal=False,
            )
        )
        db.flush()
    return "Sent auto-response"


def _auto_hide(db: Session, call: _ActionCall) -> str:
    if call.entity_type == EntityType.ITEM and call.config.hide_item:
        item = _require_entity(db, Item, call.entity_type, call.context.entity_id)
        item.status = "draft"
        db.flush()
        if call.config.send_notification:
            _notify(db, call, call.config.notification_message or "Item hidden")
    return "Hidden item from marketplace"


def _auto_notify(db: Session, call: _ActionCall) -> str:
    _notify(db, call, call.config.notification_message or "Automation notification")
    return "Sent notification"


def _auto_escalate(db: Session, call: _ActionCall) -> str:
    escalate_to = call.config.escalate_to or "admin"
    if call.entity_type == EntityType.DISPUTE:
        dispute = _require_entity(db, Dispute, call.entity_type, call.context.entity_id)
        dispute.status = "escalated"
        dispute.escalated_at = datetime.now(timezone.utc)
        dispute.escalated_to = escalate_to
        db.add(
            DisputeEvent(
                id=generate_shortuuid(),
                dispute_id=dispute.id,
                actor_id=SYSTEM_ACTOR,
                actor_type=SYSTEM_ACTOR,
                event_type="ESCALATED",
                from_status="open",
                to_status="escalated",
                metadata_json=json.dumps(
                    {"escalateTo": escalate_to, "reason": call.config.escalation_reason}
                ),
            )
        )
        db.flush()
    if call.config.send_notification:
        _notify(db, call, call.config.notification_message or "Entity escalated")
    return f"Escalated to {escalate_to}"


_ACTION_HANDLERS: dict[ActionType, Callable[[Session, _ActionCall], str]] = {
    ActionType.AUTO_IGNORE: _auto_ignore,
    ActionType.AUTO_FLAG: _auto_flag,
    ActionType.AUTO_PRIORITIZE: _auto_prioritize,
    ActionType.AUTO_REMIND: _auto_remind,
    ActionType.AUTO_RESPOND: _auto_respond,
    ActionType.AUTO_HIDE: _auto_hide,
    ActionType.AUTO_NOTIFY: _auto_notify,
    ActionType.AUTO_ESCALATE: _auto_escalate,
}


def _require_entity(db: Session, model, entity_type: EntityType, entity_id: str):
    entity = db.get(model, entity_id)
    if entity is None:
        raise LookupError(f"{entity_type.value} {entity_id} not found")
    return entity


def _update_entity_status(db: Session, entity_type: EntityType, entity_id: str, status: str) -> None:
    model = _STATUS_MODELS.get(entity_type)
    if model is None:
        # Items are hidden through auto_hide, not a status write.
        return
    entity = _require_entity(db, model, entity_type, entity_id)
    entity.status = status
    db.flush()


def _update_entity_priority(db: Session, entity_type: EntityType, entity_id: str, priority: str) -> None:
    if entity_type == EntityType.DISPUTE:
        dispute = _require_entity(db, Dispute, entity_type, entity_id)
        dispute.priority = priority
        db.flush()
    elif entity_type == EntityType.RFQ:
        rfq = db.get(RFQ, entity_id)
        if rfq is not None:
            update_extension_bag(rfq, priority=priority)
            db.flush()


def _add_entity_tag(db: Session, entity_type: EntityType, entity_id: str, tag: str) -> None:
    if entity_type != EntityType.RFQ:
        return
    rfq = db.get(RFQ, entity_id)
    if rfq is not None and add_extension_tag(rfq, tag):
        db.flush()


def render_notification_message(message: str, context: RuleContext) -> str:
    rendered = message
    if context.days_overdue is not None:
        rendered = rendered.replace("{daysOverdue}", str(context.days_overdue))
    item_name = context.entity_data.get("name")
    if item_name:
        rendered = rendered.replace("{itemName}", str(item_name))
    return rendered


def _notify(db: Session, call: _ActionCall, message: str) -> None:
    call.notifier.send(
        db,
        NotificationRequest(
            seller_id=call.context.seller_id,
            message=render_notification_message(message, call.context),
            notification_type=call.config.notification_type or "automation",
            entity_type=call.entity_type.value,
            entity_id=call.context.entity_id,
        ),
    )


def _short_error(value: Exception | str) -> str:
    text = str(value).strip() or "Automation action failed"
    return text[:255]
