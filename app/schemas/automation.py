from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from app.schemas.common import PaginationMeta


class RuleType(str, Enum):
    RFQ_RULE = "rfq_rule"
    ORDER_RULE = "order_rule"
    INVENTORY_RULE = "inventory_rule"
    DISPUTE_RULE = "dispute_rule"


class TriggerType(str, Enum):
    RFQ_RECEIVED = "rfq_received"
    ORDER_DELAYED = "order_delayed"
    STOCK_LOW = "stock_low"
    SLA_WARNING = "sla_warning"
    DISPUTE_OPENED = "dispute_opened"
    ORDER_STATUS_CHANGE = "order_status_change"


class ActionType(str, Enum):
    AUTO_IGNORE = "auto_ignore"
    AUTO_FLAG = "auto_flag"
    AUTO_REMIND = "auto_remind"
    AUTO_RESPOND = "auto_respond"
    AUTO_PRIORITIZE = "auto_prioritize"
    AUTO_HIDE = "auto_hide"
    AUTO_NOTIFY = "auto_notify"
    AUTO_ESCALATE = "auto_escalate"


class EntityType(str, Enum):
    RFQ = "rfq"
    ORDER = "order"
    ITEM = "item"
    DISPUTE = "dispute"


class ActionResult(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


RULE_TYPE_BY_ENTITY: dict[EntityType, RuleType] = {
    EntityType.RFQ: RuleType.RFQ_RULE,
    EntityType.ORDER: RuleType.ORDER_RULE,
    EntityType.ITEM: RuleType.INVENTORY_RULE,
    EntityType.DISPUTE: RuleType.DISPUTE_RULE,
}

StatsPeriod = Literal["day", "week", "month"]
Number = int | float


class StoredBlobError(ValueError):
    pass


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _StoredBlob(CamelModel):
    """A camelCase JSON document kept in a text column."""

    def dump_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    def to_public(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def parse_json(cls, raw: str | None):
        if not raw:
            return cls()
        try:
            return cls.model_validate_json(raw)
        except ValidationError as exc:
            raise StoredBlobError(f"Stored {cls.__name__} is invalid") from exc


class TriggerConditions(_StoredBlob):
    margin_below: Number | None = None
    margin_above: Number | None = None
    quantity_below: Number | None = None
    quantity_above: Number | None = None
    value_below: Number | None = None
    value_above: Number | None = None
    days_overdue: Number | None = None
    status_equals: str | None = None
    status_not_equals: str | None = None
    stock_below: Number | None = None
    stock_percent_below: Number | None = None
    sla_breach_risk: bool | None = None
    sla_breach_type: str | None = None
    hours_until_breach: Number | None = None
    dispute_type: str | None = None
    dispute_age_above: Number | None = None
    buyer_trust_below: Number | None = None
    buyer_trust_above: Number | None = None
    category_in: list[str] | None = None
    category_not_in: list[str] | None = None


class ActionConfig(_StoredBlob):
    set_status: str | None = None
    set_priority: Literal["high", "medium", "low"] | None = None
    add_tag: str | None = None
    send_notification: bool | None = None
    notification_type: str | None = None
    notification_message: str | None = None
    response_template: str | None = None
    response_message: str | None = None
    hide_item: bool | None = None
    escalate_to: str | None = None
    escalation_reason: str | None = None
    reminder_days: Number | None = None
    reminder_message: str | None = None


class RuleContext(_StoredBlob):
    entity_id: str
    entity_number: str | None = None
    entity_data: dict[str, Any] = Field(default_factory=dict)
    seller_id: str

    buyer_id: str | None = None
    buyer_trust_score: Number | None = None
    margin: Number | None = None
    total_value: Number | None = None
    quantity: Number | None = None
    days_overdue: int | None = None
    current_stock: Number | None = None
    stock_percent: Number | None = None
    hours_until_sla_breach: Number | None = Field(default=None, alias="hoursUntilSLABreach")


class RuleTemplate(CamelModel):
    id: str
    name: str
    description: str
    rule_type: RuleType
    trigger_type: TriggerType
    trigger_conditions: TriggerConditions
    action_type: ActionType
    action_config: ActionConfig
    category: str


class RuleCreate(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    rule_type: RuleType
    trigger_type: TriggerType
    trigger_conditions: TriggerConditions = Field(default_factory=TriggerConditions)
    action_type: ActionType
    action_config: ActionConfig = Field(default_factory=ActionConfig)
    priority: int | None = Field(default=None, ge=1, le=1000)
    is_enabled: bool | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Auto-ignore Low Margin RFQs",
                "ruleType": "rfq_rule",
                "triggerType": "rfq_received",
                "triggerConditions": {"marginBelow": 5},
                "actionType": "auto_ignore",
                "actionConfig": {"setStatus": "ignored"},
                "priority": 10,
            }
        }
    )


class RuleUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    trigger_conditions: TriggerConditions | None = None
    action_config: ActionConfig | None = None
    priority: int | None = Field(default=None, ge=1, le=1000)

    @model_validator(mode="after")
    def validate_has_updates(self) -> "RuleUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class RuleToggleIn(CamelModel):
    enabled: bool


class TemplateOverrides(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    trigger_conditions: TriggerConditions | None = None
    action_config: ActionConfig | None = None
    priority: int | None = Field(default=None, ge=1, le=1000)
    is_enabled: bool | None = None


class TemplateCreateIn(CamelModel):
    template_id: str = Field(min_length=1, max_length=60)
    overrides: TemplateOverrides | None = None


class RuleFilters(CamelModel):
    rule_type: RuleType | None = None
    trigger_type: TriggerType | None = None
    is_enabled: bool | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1)


class ExecutionFilters(CamelModel):
    rule_id: str | None = None
    entity_type: EntityType | None = None
    action_result: ActionResult | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1)


class EvaluationSignalsIn(CamelModel):
    entity_number: str | None = None
    entity_data: dict[str, Any] = Field(default_factory=dict)
    buyer_id: str | None = None
    buyer_trust_score: Number | None = None
    margin: Number | None = None
    total_value: Number | None = None
    quantity: Number | None = None
    days_overdue: int | None = None
    current_stock: Number | None = None
    stock_percent: Number | None = None
    hours_until_sla_breach: Number | None = Field(default=None, alias="hoursUntilSLABreach")


class EvaluateIn(CamelModel):
    entity_type: EntityType
    entity_id: str = Field(min_length=1, max_length=64)
    context: EvaluationSignalsIn = Field(default_factory=EvaluationSignalsIn)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "entityType": "rfq",
                "entityId": "rfq-123",
                "context": {"margin": 3, "entityData": {"status": "pending"}},
            }
        }
    )


class RuleOut(CamelModel):
    id: str
    seller_id: str
    name: str
    description: str | None = None
    rule_type: str
    trigger_type: str
    trigger_conditions: dict[str, Any]
    action_type: str
    action_config: dict[str, Any]
    priority: int
    is_enabled: bool
    trigger_count: int
    last_triggered_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    execution_count: int | None = None


class ExecutionRuleOut(CamelModel):
    name: str
    rule_type: str
    action_type: str


class ExecutionOut(CamelModel):
    id: str
    rule_id: str
    seller_id: str
    entity_type: str
    entity_id: str
    entity_number: str | None = None
    trigger_data: dict[str, Any]
    action_taken: str
    action_result: str
    error_message: str | None = None
    executed_at: datetime
    rule: ExecutionRuleOut | None = None


class RuleDetailOut(RuleOut):
    executions: list[ExecutionOut] = Field(default_factory=list)


class RuleDeleteOut(CamelModel):
    success: bool


class RuleListOut(CamelModel):
    rules: list[RuleOut]
    pagination: PaginationMeta


class ExecutionListOut(CamelModel):
    executions: list[ExecutionOut]
    pagination: PaginationMeta


class ExecutionStatsOut(CamelModel):
    period: StatsPeriod
    total: int
    successful: int
    failed: int
    skipped: int
    success_rate: float
    by_entity_type: dict[str, int]


class TemplateCatalogOut(CamelModel):
    templates: list[RuleTemplate]


class RuleEvaluationOut(CamelModel):
    rule_id: str
    rule_name: str
    matched: bool
    executed: bool
    result: str | None = None
    error: str | None = None


class EvaluationOut(CamelModel):
    success: bool
    results: list[RuleEvaluationOut]
    error: str | None = None
