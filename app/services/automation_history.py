import json
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.observability import automation_logger, log_failure
from app.models.automation import AutomationExecution, AutomationRule
from app.schemas.automation import (
    ActionResult,
    ExecutionFilters,
    ExecutionListOut,
    ExecutionOut,
    ExecutionRuleOut,
    ExecutionStatsOut,
    StatsPeriod,
)
from app.schemas.common import PaginationMeta

_PERIOD_WINDOWS: dict[str, timedelta] = {
    "day": timedelta(hours=24),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def load_trigger_data(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def execution_out(
    execution: AutomationExecution,
    *,
    rule: AutomationRule | None = None,
) -> ExecutionOut:
    return ExecutionOut(
        id=execution.id,
        rule_id=execution.rule_id,
        seller_id=execution.seller_id,
        entity_type=execution.entity_type,
        entity_id=execution.entity_id,
        entity_number=execution.entity_number,
        trigger_data=load_trigger_data(execution.trigger_data),
        action_taken=execution.action_taken,
        action_result=execution.action_result,
        error_message=execution.error_message,
        executed_at=as_utc(execution.executed_at),
        rule=(
            ExecutionRuleOut(name=rule.name, rule_type=rule.rule_type, action_type=rule.action_type)
            if rule
            else None
        ),
    )


def get_execution_history(
    db: Session,
    seller_id: str,
    filters: ExecutionFilters | None = None,
) -> ExecutionListOut:
    filters = filters or ExecutionFilters()
    try:
        conditions = [AutomationExecution.seller_id == seller_id]
        if filters.rule_id:
            conditions.append(AutomationExecution.rule_id == filters.rule_id)
        if filters.entity_type is not None:
            conditions.append(AutomationExecution.entity_type == filters.entity_type.value)
        if filters.action_result is not None:
            conditions.append(AutomationExecution.action_result == filters.action_result.value)
        if filters.date_from is not None:
            conditions.append(AutomationExecution.executed_at >= as_utc(filters.date_from))
        if filters.date_to is not None:
            conditions.append(AutomationExecution.executed_at <= as_utc(filters.date_to))

        total = int(
            db.execute(select(func.count(AutomationExecution.id)).where(*conditions)).scalar_one() or 0
        )
        rows = db.execute(
            select(AutomationExecution, AutomationRule)
            .outerjoin(AutomationRule, AutomationRule.id == AutomationExecution.rule_id)
            .where(*conditions)
            .order_by(AutomationExecution.executed_at.desc())
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        ).all()
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        log_failure(automation_logger, "automation_history_failed", exc, seller_id=seller_id)
        return ExecutionListOut(
            executions=[],
            pagination=PaginationMeta(page=1, limit=50, total=0, total_pages=0),
        )

    return ExecutionListOut(
        executions=[execution_out(execution, rule=rule) for execution, rule in rows],
        pagination=PaginationMeta.build(page=filters.page, limit=filters.limit, total=total),
    )


def get_execution_stats(
    db: Session,
    seller_id: str,
    period: StatsPeriod = "week",
) -> ExecutionStatsOut:
    start = datetime.now(timezone.utc) - _PERIOD_WINDOWS.get(period, _PERIOD_WINDOWS["week"])
    in_window = (
        AutomationExecution.seller_id == seller_id,
        AutomationExecution.executed_at >= start,
    )
    try:
        counts = dict(
            db.execute(
                select(AutomationExecution.action_result, func.count(AutomationExecution.id))
                .where(*in_window)
                .group_by(AutomationExecution.action_result)
            ).all()
        )
        by_entity_type = {
            str(entity_type): int(count or 0)
            for entity_type, count in db.execute(
                select(AutomationExecution.entity_type, func.count(AutomationExecution.id))
                .where(*in_window)
                .group_by(AutomationExecution.entity_type)
            ).all()
        }
    except Exception as exc:  # noqa: BLE001
        db.rollback()
        log_failure(automation_logger, "automation_stats_failed", exc, seller_id=seller_id, period=period)
        return ExecutionStatsOut(
            period=period,
            total=0,
            successful=0,
            failed=0,
            skipped=0,
            success_rate=0,
            by_entity_type={},
        )

    total = sum(int(count or 0) for count in counts.values())
    successful = int(counts.get(ActionResult.SUCCESS.value) or 0)
    failed = int(counts.get(ActionResult.FAILED.value) or 0)
    return ExecutionStatsOut(
        period=period,
        total=total,
        successful=successful,
        failed=failed,
        skipped=total - successful - failed,
        success_rate=(successful / total) * 100 if total > 0 else 0,
        by_entity_type=by_entity_type,
    )
