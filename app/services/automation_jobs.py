"""Periodic automation scans.

Each job opens its own session from ``session_factory``, logs through the jobs
logger and never raises: a failure on one entity is logged and the scan moves
on to the next one. Thresholds come from ``settings``.
"""

import json
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Callable

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.extension_bag import add_extension_tag
from app.core.id_utils import generate_shortuuid
from app.core.observability import bind_request_id, get_request_id, jobs_logger, log_event, log_failure
from app.db.session import SessionLocal
from app.models.automation import AutomationExecution
from app.models.dispute import Dispute
from app.models.item import Item
from app.models.order import MarketplaceOrder
from app.models.rfq import RFQ
from app.models.sla import SLARecord
from app.schemas.automation import ActionResult, EntityType
from app.services.automation_history import as_utc
from app.services.automation_hooks import (
    on_dispute_opened,
    on_order_status_change,
    on_rfq_received,
    on_sla_warning,
    on_stock_change,
)
from app.services.automation_service import EvaluationResult

SessionFactory = Callable[[], Session]

UNREAD_RFQ_RULE_ID = "system-unread-rfq-alert"
SLOW_MOVING_RULE_ID = "system-slow-moving-flag"
SLOW_MOVING_TAG = "slow-moving"

ACTIVE_ORDER_STATUSES = ("confirmed", "processing", "shipped")
DELAYED_HEALTH_STATUSES = ("at_risk", "delayed", "critical")
OPEN_DISPUTE_STATUSES = ("open", "under_review")


def _job_run(func: Callable[[SessionFactory], None]) -> Callable[..., None]:
    """Bind a per-run id for log correlation unless a caller already bound one."""

    @wraps(func)
    def wrapper(session_factory: SessionFactory = SessionLocal) -> None:
        if get_request_id() != "-":
            return func(session_factory)
        with bind_request_id(f"job-{generate_shortuuid()}"):
            return func(session_factory)

    return wrapper


def _log_hook_result(job: str, entity_id: str, result: EvaluationResult) -> None:
    if result.success:
        return
    log_event(jobs_logger, "job_entity_failed", job=job, entity_id=entity_id, error=result.error)


@_job_run
def check_sla_breaches(session_factory: SessionFactory = SessionLocal) -> None:
    job = "check_sla_breaches"
    try:
        with session_factory() as db:
            now = datetime.now(timezone.utc)
            horizon = now + timedelta(hours=settings.sla_warning_window_hours)
            records = db.execute(
                select(SLARecord).where(
                    SLARecord.is_breach.is_(False),
                    SLARecord.actual_at.is_(None),
                    SLARecord.expected_at > now,
                    SLARecord.expected_at <= horizon,
                )
            ).scalars().all()
            targets = [
                (
                    record.entity_id,
                    record.seller_id,
                    max(0.0, (as_utc(record.expected_at) - now).total_seconds() / 3600),
                )
                for record in records
            ]
            log_event(jobs_logger, "sla_breaches_found", job=job, count=len(targets))

            for entity_id, seller_id, hours_left in targets:
                result = on_sla_warning(db, EntityType.ORDER, entity_id, seller_id, hours_left)
                _log_hook_result(job, entity_id, result)
    except Exception as exc:  # noqa: BLE001
        log_failure(jobs_logger, "job_failed", exc, job=job)


@_job_run
def process_delayed_orders(session_factory: SessionFactory = SessionLocal) -> None:
    job = "process_delayed_orders"
    try:
        with session_factory() as db:
            orders = db.execute(
                select(MarketplaceOrder.id, MarketplaceOrder.seller_id, MarketplaceOrder.health_status).where(
                    MarketplaceOrder.status.in_(ACTIVE_ORDER_STATUSES),
                    MarketplaceOrder.health_status.in_(DELAYED_HEALTH_STATUSES),
                )
            ).all()
            log_event(jobs_logger, "delayed_orders_found", job=job, count=len(orders))

            for order_id, seller_id, health_status in orders:
                result = on_order_status_change(db, order_id, seller_id, health_status)
                _log_hook_result(job, order_id, result)
    except Exception as exc:  # noqa: BLE001
        log_failure(jobs_logger, "job_failed", exc, job=job)


@_job_run
def check_low_stock(session_factory: SessionFactory = SessionLocal) -> None:
    job = "check_low_stock"
    try:
        with session_factory() as db:
            items = db.execute(
                select(Item.id, Item.seller_id, Item.stock)
                .where(Item.status == "active", Item.stock <= settings.low_stock_threshold)
                .limit(settings.automation_batch_size)
            ).all()
            log_event(jobs_logger, "low_stock_items_found", job=job, count=len(items))

            for item_id, seller_id, stock in items:
                result = on_stock_change(db, item_id, seller_id, stock)
                _log_hook_result(job, item_id, result)
    except Exception as exc:  # noqa: BLE001
        log_failure(jobs_logger, "job_failed", exc, job=job)


@_job_run
def check_unread_rfqs(session_factory: SessionFactory = SessionLocal) -> None:
    job = "check_unread_rfqs"
    threshold_hours = settings.unread_rfq_hours
    try:
        with session_factory() as db:
            now = datetime.now(timezone.utc)
            rfqs = db.execute(
                select(RFQ)
                .where(
                    RFQ.status == "pending",
                    RFQ.viewed_at.is_(None),
                    RFQ.created_at < now - timedelta(hours=threshold_hours),
                    RFQ.seller_id.is_not(None),
                )
                .limit(settings.automation_batch_size)
            ).scalars().all()
            targets = [
                {
                    "rfq_id": rfq.id,
                    "rfq_number": rfq.rfq_number,
                    "seller_id": rfq.seller_id,
                    "buyer_id": rfq.buyer_id,
                    "quantity": rfq.quantity,
                    "hours_unread": int((now - as_utc(rfq.created_at)) // timedelta(hours=1)),
                }
                for rfq in rfqs
            ]
            log_event(
                jobs_logger,
                "unread_rfqs_found",
                job=job,
                count=len(targets),
                hours_threshold=threshold_hours,
            )

            for target in targets:
                try:
                    result = on_rfq_received(db, target["rfq_id"], target["seller_id"])
                    _log_hook_result(job, target["rfq_id"], result)
                    _record_system_execution(
                        db,
                        rule_id=UNREAD_RFQ_RULE_ID,
                        seller_id=target["seller_id"],
                        entity_type=EntityType.RFQ,
                        entity_id=target["rfq_id"],
                        entity_number=target["rfq_number"],
                        trigger_data={
                            "hoursUnread": target["hours_unread"],
                            "threshold": threshold_hours,
                            "buyerId": target["buyer_id"],
                            "quantity": target["quantity"],
                        },
                        action_taken=f"Alert: RFQ unread for {target['hours_unread']} hours",
                    )
                    db.commit()
                except Exception as exc:  # noqa: BLE001
                    db.rollback()
                    log_failure(jobs_logger, "job_entity_failed", exc, job=job, entity_id=target["rfq_id"])
    except Exception as exc:  # noqa: BLE001
        log_failure(jobs_logger, "job_failed", exc, job=job)


@_job_run
def flag_slow_moving_listings(session_factory: SessionFactory = SessionLocal) -> None:
    job = "flag_slow_moving_listings"
    threshold_days = settings.slow_moving_days
    try:
        with session_factory() as db:
            now = datetime.now(timezone.utc)
            cutoff = now - timedelta(days=threshold_days)
            stale = db.execute(
                select(Item)
                .where(Item.status == "active", Item.last_order_at < cutoff)
                .limit(settings.automation_batch_size)
            ).scalars().all()
            never_ordered = db.execute(
                select(Item)
                .where(Item.status == "active", Item.last_order_at.is_(None), Item.created_at < cutoff)
                .limit(settings.automation_batch_size)
            ).scalars().all()
            items = [*stale, *never_ordered]
            log_event(
                jobs_logger,
                "slow_moving_items_found",
                job=job,
                count=len(items),
                days_threshold=threshold_days,
            )

            flagged = 0
            for item in items:
                item_id = item.id
                try:
                    last_activity = as_utc(item.last_order_at or item.created_at)
                    days_since_activity = int((now - last_activity) // timedelta(days=1))
                    tagged = add_extension_tag(
                        item,
                        SLOW_MOVING_TAG,
                        flaggedAsSlowAt=now.isoformat(),
                        daysSinceActivity=days_since_activity,
                    )
                    if not tagged:
                        continue
                    _record_system_execution(
                        db,
                        rule_id=SLOW_MOVING_RULE_ID,
                        seller_id=item.seller_id,
                        entity_type=EntityType.ITEM,
                        entity_id=item_id,
                        entity_number=item.sku,
                        trigger_data={
                            "daysSinceActivity": days_since_activity,
                            "threshold": threshold_days,
                            "lastOrderAt": as_utc(item.last_order_at).isoformat() if item.last_order_at else None,
                            "itemName": item.name,
                        },
                        action_taken=f"Tagged as slow-moving ({days_since_activity} days inactive)",
                    )
                    db.commit()
                    flagged += 1
                except Exception as exc:  # noqa: BLE001
                    db.rollback()
                    log_failure(jobs_logger, "job_entity_failed", exc, job=job, entity_id=item_id)
            log_event(jobs_logger, "slow_moving_items_flagged", job=job, count=flagged)
    except Exception as exc:  # noqa: BLE001
        log_failure(jobs_logger, "job_failed", exc, job=job)


@_job_run
def process_stale_disputes(session_factory: SessionFactory = SessionLocal) -> None:
    job = "process_stale_disputes"
    try:
        with session_factory() as db:
            cutoff = datetime.now(timezone.utc) - timedelta(days=settings.stale_dispute_days)
            disputes = db.execute(
                select(Dispute.id, Dispute.seller_id).where(
                    Dispute.status.in_(OPEN_DISPUTE_STATUSES),
                    Dispute.created_at < cutoff,
                )
            ).all()
            log_event(jobs_logger, "stale_disputes_found", job=job, count=len(disputes))

            for dispute_id, seller_id in disputes:
                result = on_dispute_opened(db, dispute_id, seller_id)
                _log_hook_result(job, dispute_id, result)
    except Exception as exc:  # noqa: BLE001
        log_failure(jobs_logger, "job_failed", exc, job=job)


@_job_run
def cleanup_old_logs(session_factory: SessionFactory = SessionLocal) -> None:
    job = "cleanup_old_logs"
    try:
        with session_factory() as db:
            cutoff = datetime.now(timezone.utc) - timedelta(days=settings.execution_retention_days)
            result = db.execute(delete(AutomationExecution).where(AutomationExecution.executed_at < cutoff))
            db.commit()
            log_event(jobs_logger, "old_execution_logs_deleted", job=job, count=result.rowcount)
    except Exception as exc:  # noqa: BLE001
        log_failure(jobs_logger, "job_failed", exc, job=job)


def run_daily_automation_scan(session_factory: SessionFactory = SessionLocal) -> None:
    with bind_request_id(f"scan-{generate_shortuuid()}"):
        log_event(jobs_logger, "daily_automation_scan_started")
        for scan in (
            check_sla_breaches,
            process_delayed_orders,
            check_low_stock,
            check_unread_rfqs,
            flag_slow_moving_listings,
            process_stale_disputes,
        ):
            scan(session_factory)
        log_event(jobs_logger, "daily_automation_scan_completed")


def _record_system_execution(
    db: Session,
    *,
    rule_id: str,
    seller_id: str,
    entity_type: EntityType,
    entity_id: str,
    entity_number: str | None,
    trigger_data: dict[str, Any],
    action_taken: str,
) -> None:
    db.add(
        AutomationExecution(
            id=generate_shortuuid(),
            rule_id=rule_id,
            seller_id=seller_id,
            entity_type=entity_type.value,
            entity_id=entity_id,
            entity_number=entity_number,
            trigger_data=json.dumps(trigger_data, default=str),
            action_taken=action_taken[:255],
            action_result=ActionResult.SUCCESS.value,
            executed_at=datetime.now(timezone.utc),
        )
    )
    db.flush()
