from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from app.core.id_utils import generate_shortuuid
from app.models.automation import AutomationExecution, AutomationRule
from app.schemas.automation import RuleCreate, RuleFilters, RuleType, RuleUpdate

DEFAULT_RULE_PRIORITY = 100


def create_rule(db: Session, *, seller_id: str, payload: RuleCreate) -> AutomationRule:
    rule = AutomationRule(
        id=generate_shortuuid(),
        seller_id=seller_id,
        name=payload.name,
        description=payload.description,
        rule_type=payload.rule_type.value,
        trigger_type=payload.trigger_type.value,
        trigger_conditions=payload.trigger_conditions.dump_json(),
        action_type=payload.action_type.value,
        action_config=payload.action_config.dump_json(),
        priority=payload.priority if payload.priority is not None else DEFAULT_RULE_PRIORITY,
        is_enabled=payload.is_enabled if payload.is_enabled is not None else True,
        trigger_count=0,
    )
    db.add(rule)
    db.flush()
    return rule


def find_rule(db: Session, *, seller_id: str, rule_id: str) -> AutomationRule | None:
    return db.execute(
        select(AutomationRule).where(
            AutomationRule.id == rule_id,
            AutomationRule.seller_id == seller_id,
        )
    ).scalar_one_or_none()


def update_rule(
    db: Session,
    *,
    seller_id: str,
    rule_id: str,
    payload: RuleUpdate,
) -> AutomationRule | None:
    rule = find_rule(db, seller_id=seller_id, rule_id=rule_id)
    if not rule:
        return None

    provided = payload.model_fields_set
    if "name" in provided and payload.name is not None:
        rule.name = payload.name
    if "description" in provided:
        rule.description = payload.description
    if "trigger_conditions" in provided and payload.trigger_conditions is not None:
        rule.trigger_conditions = payload.trigger_conditions.dump_json()
    if "action_config" in provided and payload.action_config is not None:
        rule.action_config = payload.action_config.dump_json()
    if "priority" in provided and payload.priority is not None:
        rule.priority = payload.priority
    db.flush()
    return rule


def delete_rule(db: Session, *, seller_id: str, rule_id: str) -> bool:
    rule = find_rule(db, seller_id=seller_id, rule_id=rule_id)
    if not rule:
        return False
    db.execute(delete(AutomationExecution).where(AutomationExecution.rule_id == rule.id))
    db.delete(rule)
    db.flush()
    return True


def set_rule_enabled(
    db: Session,
    *,
    seller_id: str,
    rule_id: str,
    enabled: bool,
) -> AutomationRule | None:
    rule = find_rule(db, seller_id=seller_id, rule_id=rule_id)
    if not rule:
        return None
    rule.is_enabled = enabled
    db.flush()
    return rule


def list_rules(
    db: Session,
    *,
    seller_id: str,
    filters: RuleFilters,
) -> tuple[list[AutomationRule], int, dict[str, int]]:
    stmt = select(AutomationRule).where(AutomationRule.seller_id == seller_id)
    count_stmt = select(func.count(AutomationRule.id)).where(AutomationRule.seller_id == seller_id)
    if filters.rule_type is not None:
        stmt = stmt.where(AutomationRule.rule_type == filters.rule_type.value)
        count_stmt = count_stmt.where(AutomationRule.rule_type == filters.rule_type.value)
    if filters.trigger_type is not None:
        stmt = stmt.where(AutomationRule.trigger_type == filters.trigger_type.value)
        count_stmt = count_stmt.where(AutomationRule.trigger_type == filters.trigger_type.value)
    if filters.is_enabled is not None:
        stmt = stmt.where(AutomationRule.is_enabled == filters.is_enabled)
        count_stmt = count_stmt.where(AutomationRule.is_enabled == filters.is_enabled)

    total = int(db.execute(count_stmt).scalar_one() or 0)
    rows = db.execute(
        stmt.order_by(AutomationRule.priority.asc(), AutomationRule.created_at.desc())
        .offset((filters.page - 1) * filters.limit)
        .limit(filters.limit)
    ).scalars().all()

    return list(rows), total, count_executions_by_rule(db, rule_ids=[row.id for row in rows])


def count_executions_by_rule(db: Session, *, rule_ids: list[str]) -> dict[str, int]:
    if not rule_ids:
        return {}
    rows = db.execute(
        select(AutomationExecution.rule_id, func.count(AutomationExecution.id))
        .where(AutomationExecution.rule_id.in_(rule_ids))
        .group_by(AutomationExecution.rule_id)
    ).all()
    counts = {rule_id: 0 for rule_id in rule_ids}
    for rule_id, count in rows:
        counts[rule_id] = int(count or 0)
    return counts


def list_enabled_rules_for_evaluation(
    db: Session,
    *,
    seller_id: str,
    rule_type: RuleType,
) -> list[AutomationRule]:
    return list(
        db.execute(
            select(AutomationRule)
            .where(
                AutomationRule.seller_id == seller_id,
                AutomationRule.rule_type == rule_type.value,
                AutomationRule.is_enabled.is_(True),
            )
            .order_by(AutomationRule.priority.asc())
        ).scalars().all()
    )


def increment_trigger_stats(db: Session, *, rule_id: str, now: datetime) -> None:
    db.execute(
        update(AutomationRule)
        .where(AutomationRule.id == rule_id)
        .values(
            trigger_count=AutomationRule.trigger_count + 1,
            last_triggered_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    db.flush()
