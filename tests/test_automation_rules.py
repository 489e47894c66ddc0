from sqlalchemy import select

from app.models.automation import AutomationExecution, AutomationRule
from app.schemas.automation import (
    ActionConfig,
    ActionType,
    ExecutionFilters,
    RuleCreate,
    RuleFilters,
    RuleType,
    RuleUpdate,
    TemplateOverrides,
    TriggerConditions,
    TriggerType,
)
from app.services.automation_service import (
    create_rule,
    create_rule_from_template,
    delete_rule,
    get_default_rule_templates,
    get_rule,
    get_rule_template,
    get_seller_rules,
    toggle_rule,
    update_rule,
)

SELLER = "seller-1"
OTHER_SELLER = "seller-2"


def _low_margin_rule(**overrides) -> RuleCreate:
    fields = {
        "name": "Ignore thin margins",
        "rule_type": RuleType.RFQ_RULE,
        "trigger_type": TriggerType.RFQ_RECEIVED,
        "trigger_conditions": TriggerConditions(margin_below=5),
        "action_type": ActionType.AUTO_IGNORE,
        "action_config": ActionConfig(set_status="ignored"),
    }
    fields.update(overrides)
    return RuleCreate(**fields)


def test_create_rule_applies_defaults(db):
    result = create_rule(db, SELLER, _low_margin_rule())

    assert result.success
    rule = result.rule
    assert rule.seller_id == SELLER
    assert rule.priority == 100
    assert rule.is_enabled is True
    assert rule.trigger_count == 0
    assert rule.last_triggered_at is None
    assert rule.trigger_conditions == {"marginBelow": 5}
    assert rule.action_config == {"setStatus": "ignored"}


def test_rule_round_trip_preserves_conditions_and_config(db):
    conditions = TriggerConditions(value_above=1000, category_in=["fabrics", "leather"], status_equals="pending")
    config = ActionConfig(set_priority="high", add_tag="vip", send_notification=True, notification_message="Hot lead")
    created = create_rule(
        db,
        SELLER,
        _low_margin_rule(
            trigger_conditions=conditions,
            action_type=ActionType.AUTO_PRIORITIZE,
            action_config=config,
            priority=5,
            is_enabled=False,
        ),
    ).rule

    fetched = get_rule(db, SELLER, created.id)

    assert fetched is not None
    assert TriggerConditions.model_validate(fetched.trigger_conditions) == conditions
    assert ActionConfig.model_validate(fetched.action_config) == config
    assert fetched.priority == 5
    assert fetched.is_enabled is False
    assert fetched.executions == []


def test_rules_are_scoped_to_their_seller(db):
    rule = create_rule(db, SELLER, _low_margin_rule()).rule

    assert get_rule(db, OTHER_SELLER, rule.id) is None
    assert update_rule(db, OTHER_SELLER, rule.id, RuleUpdate(name="Hijack")).error == "Rule not found"
    assert toggle_rule(db, OTHER_SELLER, rule.id, False).error == "Rule not found"
    assert delete_rule(db, OTHER_SELLER, rule.id).error == "Rule not found"
    assert get_seller_rules(db, OTHER_SELLER).rules == []

    still_there = get_rule(db, SELLER, rule.id)
    assert still_there.name == "Ignore thin margins"
    assert still_there.is_enabled is True


def test_update_rule_changes_only_provided_fields(db):
    rule = create_rule(db, SELLER, _low_margin_rule(description="keep me")).rule

    result = update_rule(
        db,
        SELLER,
        rule.id,
        RuleUpdate(priority=7, trigger_conditions=TriggerConditions(margin_below=2)),
    )

    assert result.success
    assert result.rule.priority == 7
    assert result.rule.trigger_conditions == {"marginBelow": 2}
    assert result.rule.name == "Ignore thin margins"
    assert result.rule.description == "keep me"
    assert result.rule.action_config == {"setStatus": "ignored"}


def test_toggle_rule_flips_enabled_flag(db):
    rule = create_rule(db, SELLER, _low_margin_rule()).rule

    disabled = toggle_rule(db, SELLER, rule.id, False)
    assert disabled.success
    assert disabled.rule.is_enabled is False

    enabled = toggle_rule(db, SELLER, rule.id, True)
    assert enabled.rule.is_enabled is True


def test_delete_rule_removes_its_executions(db):
    rule = create_rule(db, SELLER, _low_margin_rule()).rule
    db.add(
        AutomationExecution(
            id="exec-1",
            rule_id=rule.id,
            seller_id=SELLER,
            entity_type="rfq",
            entity_id="rfq-1",
            trigger_data="{}",
            action_taken="Set status to ignored",
            action_result="success",
        )
    )
    db.commit()

    result = delete_rule(db, SELLER, rule.id)

    assert result.success
    assert db.get(AutomationRule, rule.id) is None
    assert db.execute(select(AutomationExecution)).scalars().all() == []


def test_list_rules_orders_by_priority_and_filters(db):
    create_rule(db, SELLER, _low_margin_rule(name="Late", priority=50))
    create_rule(db, SELLER, _low_margin_rule(name="Early", priority=1))
    create_rule(
        db,
        SELLER,
        _low_margin_rule(
            name="Stock",
            rule_type=RuleType.INVENTORY_RULE,
            trigger_type=TriggerType.STOCK_LOW,
            action_type=ActionType.AUTO_NOTIFY,
            action_config=ActionConfig(),
            priority=10,
        ),
    )

    listing = get_seller_rules(db, SELLER)
    assert [rule.name for rule in listing.rules] == ["Early", "Stock", "Late"]
    assert all(rule.execution_count == 0 for rule in listing.rules)
    assert listing.pagination.total == 3
    assert listing.pagination.total_pages == 1

    rfq_only = get_seller_rules(db, SELLER, RuleFilters(rule_type=RuleType.RFQ_RULE))
    assert [rule.name for rule in rfq_only.rules] == ["Early", "Late"]

    page_two = get_seller_rules(db, SELLER, RuleFilters(page=2, limit=2))
    assert [rule.name for rule in page_two.rules] == ["Late"]
    assert page_two.pagination.total_pages == 2


def test_python_listing_accepts_large_page_size(db):
    for index in range(3):
        create_rule(db, SELLER, _low_margin_rule(name=f"Rule {index}", priority=index + 1))

    listing = get_seller_rules(db, SELLER, RuleFilters(limit=200))

    assert [rule.name for rule in listing.rules] == ["Rule 0", "Rule 1", "Rule 2"]
    assert listing.pagination.limit == 200
    assert listing.pagination.total_pages == 1
    assert ExecutionFilters(limit=500).limit == 500


def test_template_catalog_is_complete_and_copied():
    templates = get_default_rule_templates()

    assert [template.id for template in templates] == [
        "rfq-low-margin",
        "rfq-high-value",
        "rfq-trusted-buyer",
        "order-delayed",
        "order-sla-warning",
        "inventory-low-stock",
        "inventory-out-of-stock",
        "dispute-auto-respond",
        "dispute-escalate-old",
    ]

    templates[0].trigger_conditions.margin_below = 99
    assert get_rule_template("rfq-low-margin").trigger_conditions.margin_below == 5


def test_create_rule_from_template_copies_template(db):
    result = create_rule_from_template(db, SELLER, "rfq-low-margin")

    assert result.success
    assert result.rule.name == "Auto-ignore Low Margin RFQs"
    assert result.rule.rule_type == "rfq_rule"
    assert result.rule.trigger_type == "rfq_received"
    assert result.rule.action_type == "auto_ignore"
    assert result.rule.trigger_conditions == {"marginBelow": 5}
    assert result.rule.action_config == {"setStatus": "ignored", "sendNotification": False}


def test_create_rule_from_template_applies_overrides(db):
    result = create_rule_from_template(
        db,
        SELLER,
        "inventory-low-stock",
        TemplateOverrides(name="Fabric stock alert", trigger_conditions=TriggerConditions(stock_below=3), priority=2),
    )

    assert result.success
    assert result.rule.name == "Fabric stock alert"
    assert result.rule.trigger_conditions == {"stockBelow": 3}
    assert result.rule.priority == 2
    assert result.rule.action_config["notificationMessage"] == "Stock running low for {itemName}"


def test_create_rule_from_unknown_template_fails(db):
    result = create_rule_from_template(db, SELLER, "does-not-exist")

    assert not result.success
    assert result.error == "Template not found"
    assert db.execute(select(AutomationRule)).scalars().all() == []
