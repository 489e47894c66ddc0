from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.api_docs import error_responses
from app.core.deps import get_db
from app.core.security_current import get_current_seller_id
from app.schemas.automation import (
    ActionResult,
    EntityType,
    EvaluateIn,
    EvaluationOut,
    ExecutionFilters,
    ExecutionListOut,
    ExecutionStatsOut,
    RuleContext,
    RuleCreate,
    RuleDeleteOut,
    RuleDetailOut,
    RuleFilters,
    RuleListOut,
    RuleOut,
    RuleToggleIn,
    RuleType,
    RuleUpdate,
    StatsPeriod,
    TemplateCatalogOut,
    TemplateCreateIn,
    TriggerType,
)
from app.services.automation_history import get_execution_history, get_execution_stats
from app.services.automation_service import (
    RuleMutationResult,
    create_rule,
    create_rule_from_template,
    delete_rule,
    evaluate_rules_for_entity,
    get_default_rule_templates,
    get_rule,
    get_seller_rules,
    toggle_rule,
    update_rule,
)

router = APIRouter(prefix="/automation", tags=["automation"])


def _rule_or_400(result: RuleMutationResult) -> RuleOut:
    if not result.success or result.rule is None:
        raise HTTPException(status_code=400, detail=result.error or "Automation rule request failed")
    return result.rule


@router.get(
    "/rules",
    response_model=RuleListOut,
    summary="List automation rules",
    responses=error_responses(401, 422, 500),
)
def list_rules(
    rule_type: RuleType | None = Query(default=None, alias="ruleType"),
    trigger_type: TriggerType | None = Query(default=None, alias="triggerType"),
    is_enabled: bool | None = Query(default=None, alias="isEnabled"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    db: Session = Depends(get_db),
    seller_id: str = Depends(get_current_seller_id),
):
    return get_seller_rules(
        db,
        seller_id,
        RuleFilters(
            rule_type=rule_type,
            trigger_type=trigger_type,
            is_enabled=is_enabled,
            page=page,
            limit=limit,
        ),
    )


@router.post(
    "/rules",
    response_model=RuleOut,
    status_code=201,
    summary="Create automation rule",
    responses=error_responses(400, 401, 422, 500),
)
def create_rule_endpoint(
    payload: RuleCreate,
    db: Session = Depends(get_db),
    seller_id: str = Depends(get_current_seller_id),
):
    return _rule_or_400(create_rule(db, seller_id, payload))


@router.get(
    "/rules/{rule_id}",
    response_model=RuleDetailOut,
    summary="Get automation rule with recent executions",
    responses=error_responses(401, 404, 500),
)
def get_rule_endpoint(
    rule_id: str,
    db: Session = Depends(get_db),
    seller_id: str = Depends(get_current_seller_id),
):
    rule = get_rule(db, seller_id, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Rule not found")
    return rule


@router.put(
    "/rules/{rule_id}",
    response_model=RuleOut,
    summary="Update automation rule",
    responses=error_responses(400, 401, 422, 500),
)
def update_rule_endpoint(
    rule_id: str,
    payload: RuleUpdate,
    db: Session = Depends(get_db),
    seller_id: str = Depends(get_current_seller_id),
):
    return _rule_or_400(update_rule(db, seller_id, rule_id, payload))


@router.delete(
    "/rules/{rule_id}",
    response_model=RuleDeleteOut,
    summary="Delete automation rule and its executions",
    responses=error_responses(400, 401, 500),
)
def delete_rule_endpoint(
    rule_id: str,
    db: Session = Depends(get_db),
    seller_id: str = Depends(get_current_seller_id),
):
    result = delete_rule(db, seller_id, rule_id)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    return RuleDeleteOut(success=True)


@router.post(
    "/rules/{rule_id}/toggle",
    response_model=RuleOut,
    summary="Enable or disable automation rule",
    responses=error_responses(400, 401, 422, 500),
)
def toggle_rule_endpoint(
    rule_id: str,
    payload: RuleToggleIn,
    db: Session = Depends(get_db),
    seller_id: str = Depends(get_current_seller_id),
):
    return _rule_or_400(toggle_rule(db, seller_id, rule_id, payload.enabled))


@router.get(
    "/executions",
    response_model=ExecutionListOut,
    summary="List automation execution history",
    responses=error_responses(401, 422, 500, path="/automation/executions"),
)
def list_executions(
    rule_id: str | None = Query(default=None, alias="ruleId"),
    entity_type: EntityType | None = Query(default=None, alias="entityType"),
    action_result: ActionResult | None = Query(default=None, alias="actionResult"),
    date_from: datetime | None = Query(default=None, alias="dateFrom"),
    date_to: datetime | None = Query(default=None, alias="dateTo"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    db: Session = Depends(get_db),
    seller_id: str = Depends(get_current_seller_id),
):
    return get_execution_history(
        db,
        seller_id,
        ExecutionFilters(
            rule_id=rule_id,
            entity_type=entity_type,
            action_result=action_result,
            date_from=date_from,
            date_to=date_to,
            page=page,
            limit=limit,
        ),
    )


@router.get(
    "/executions/stats",
    response_model=ExecutionStatsOut,
    summary="Automation execution statistics",
    responses=error_responses(401, 422, 500, path="/automation/executions/stats"),
)
def execution_stats(
    period: StatsPeriod = Query(default="week"),
    db: Session = Depends(get_db),
    seller_id: str = Depends(get_current_seller_id),
):
    return get_execution_stats(db, seller_id, period)


@router.get(
    "/templates",
    response_model=TemplateCatalogOut,
    response_model_exclude_none=True,
    summary="List automation rule templates",
    responses=error_responses(401, 500, path="/automation/templates"),
)
def list_templates(
    _: str = Depends(get_current_seller_id),
):
    return TemplateCatalogOut(templates=get_default_rule_templates())


@router.post(
    "/templates/create",
    response_model=RuleOut,
    status_code=201,
    summary="Create automation rule from template",
    responses=error_responses(400, 401, 422, 500, path="/automation/templates/create"),
)
def create_from_template(
    payload: TemplateCreateIn,
    db: Session = Depends(get_db),
    seller_id: str = Depends(get_current_seller_id),
):
    return _rule_or_400(create_rule_from_template(db, seller_id, payload.template_id, payload.overrides))


@router.post(
    "/evaluate",
    response_model=EvaluationOut,
    summary="Evaluate rules for an entity",
    responses=error_responses(400, 401, 422, 500, path="/automation/evaluate"),
)
def evaluate_entity(
    payload: EvaluateIn,
    db: Session = Depends(get_db),
    seller_id: str = Depends(get_current_seller_id),
):
    context = RuleContext(
        entity_id=payload.entity_id,
        seller_id=seller_id,
        **payload.context.model_dump(),
    )
    result = evaluate_rules_for_entity(db, payload.entity_type, payload.entity_id, seller_id, context)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    return EvaluationOut(success=True, results=result.results)
