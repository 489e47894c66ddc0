from app.schemas.automation import RuleContext, TriggerConditions

# (threshold field, context field)
_BELOW_CHECKS: tuple[tuple[str, str], ...] = (
    ("margin_below", "margin"),
    ("quantity_below", "quantity"),
    ("value_below", "total_value"),
    ("stock_below", "current_stock"),
    ("stock_percent_below", "stock_percent"),
    ("buyer_trust_below", "buyer_trust_score"),
)
_ABOVE_CHECKS: tuple[tuple[str, str], ...] = (
    ("margin_above", "margin"),
    ("quantity_above", "quantity"),
    ("value_above", "total_value"),
    ("buyer_trust_above", "buyer_trust_score"),
)


def evaluate_conditions(conditions: TriggerConditions, context: RuleContext) -> bool:
    """Return True when every condition that applies to ``context`` passes.

    A condition applies only when both its threshold and the matching context
    signal are present. Below/above thresholds are strict; ``daysOverdue`` and
    ``hoursUntilBreach`` are inclusive.
    """
    for threshold_name, signal_name in _BELOW_CHECKS:
        threshold = getattr(conditions, threshold_name)
        value = getattr(context, signal_name)
        if threshold is not None and value is not None and value >= threshold:
            return False

    for threshold_name, signal_name in _ABOVE_CHECKS:
        threshold = getattr(conditions, threshold_name)
        value = getattr(context, signal_name)
        if threshold is not None and value is not None and value <= threshold:
            return False

    if (
        conditions.days_overdue is not None
        and context.days_overdue is not None
        and context.days_overdue < conditions.days_overdue
    ):
        return False

    if (
        conditions.hours_until_breach is not None
        and context.hours_until_sla_breach is not None
        and context.hours_until_sla_breach > conditions.hours_until_breach
    ):
        return False

    status = context.entity_data.get("status")
    if conditions.status_equals is not None and status != conditions.status_equals:
        return False
    if conditions.status_not_equals is not None and status == conditions.status_not_equals:
        return False

    category = context.entity_data.get("category")
    if conditions.category_in and category not in conditions.category_in:
        return False
    if conditions.category_not_in and category is not None and category in conditions.category_not_in:
        return False

    return True
