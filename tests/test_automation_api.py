from app.models.rfq import RFQ

SELLER = "seller-1"


def _create_rule(client, auth_headers, seller=SELLER, **overrides):
    payload = {
        "name": "Ignore thin margins",
        "ruleType": "rfq_rule",
        "triggerType": "rfq_received",
        "triggerConditions": {"marginBelow": 5},
        "actionType": "auto_ignore",
        "actionConfig": {"setStatus": "ignored"},
    }
    payload.update(overrides)
    return client.post("/automation/rules", json=payload, headers=auth_headers(seller))


def test_health_endpoints(test_context):
    client, _ = test_context

    assert client.get("/health").json() == {"ok": True}
    ready = client.get("/ready")
    assert ready.status_code == 200, ready.text
    assert ready.json() == {"ok": True, "database": "ok"}


def test_rules_require_bearer_token(test_context):
    client, _ = test_context

    res = client.get("/automation/rules")
    assert res.status_code == 401
    body = res.json()
    assert body["error"]["code"] == "unauthorized"
    assert body["error"]["path"] == "/automation/rules"

    bad = client.get("/automation/rules", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401


def test_rule_round_trip_over_http(test_context, auth_headers):
    client, _ = test_context

    created = _create_rule(client, auth_headers, description="Thin margins are not worth quoting", priority=5)
    assert created.status_code == 201, created.text
    rule = created.json()
    assert rule["triggerConditions"] == {"marginBelow": 5}
    assert rule["actionConfig"] == {"setStatus": "ignored"}
    assert rule["priority"] == 5
    assert rule["isEnabled"] is True
    assert rule["triggerCount"] == 0

    fetched = client.get(f"/automation/rules/{rule['id']}", headers=auth_headers(SELLER))
    assert fetched.status_code == 200, fetched.text
    assert fetched.json()["name"] == "Ignore thin margins"
    assert fetched.json()["executions"] == []

    updated = client.put(
        f"/automation/rules/{rule['id']}",
        json={"name": "Ignore very thin margins", "triggerConditions": {"marginBelow": 2}},
        headers=auth_headers(SELLER),
    )
    assert updated.status_code == 200, updated.text
    assert updated.json()["name"] == "Ignore very thin margins"
    assert updated.json()["triggerConditions"] == {"marginBelow": 2}
    assert updated.json()["priority"] == 5

    toggled = client.post(
        f"/automation/rules/{rule['id']}/toggle",
        json={"enabled": False},
        headers=auth_headers(SELLER),
    )
    assert toggled.status_code == 200, toggled.text
    assert toggled.json()["isEnabled"] is False

    listing = client.get("/automation/rules?isEnabled=false", headers=auth_headers(SELLER))
    assert listing.status_code == 200, listing.text
    assert [item["id"] for item in listing.json()["rules"]] == [rule["id"]]
    assert listing.json()["rules"][0]["executionCount"] == 0
    assert listing.json()["pagination"] == {"page": 1, "limit": 50, "total": 1, "totalPages": 1}

    deleted = client.delete(f"/automation/rules/{rule['id']}", headers=auth_headers(SELLER))
    assert deleted.status_code == 200, deleted.text
    assert deleted.json() == {"success": True}

    missing = client.get(f"/automation/rules/{rule['id']}", headers=auth_headers(SELLER))
    assert missing.status_code == 404
    assert missing.json()["error"]["message"] == "Rule not found"


def test_rules_are_invisible_to_other_sellers(test_context, auth_headers):
    client, _ = test_context
    rule_id = _create_rule(client, auth_headers).json()["id"]

    assert client.get(f"/automation/rules/{rule_id}", headers=auth_headers("seller-2")).status_code == 404

    res = client.put(
        f"/automation/rules/{rule_id}",
        json={"priority": 1},
        headers=auth_headers("seller-2"),
    )
    assert res.status_code == 400
    assert res.json()["error"]["message"] == "Rule not found"

    assert client.delete(f"/automation/rules/{rule_id}", headers=auth_headers("seller-2")).status_code == 400
    assert client.get("/automation/rules", headers=auth_headers("seller-2")).json()["rules"] == []


def test_invalid_rule_payload_uses_error_envelope(test_context, auth_headers):
    client, _ = test_context

    res = _create_rule(client, auth_headers, name="", actionType="auto_archive", priority=0)

    assert res.status_code == 422
    error = res.json()["error"]
    assert error["code"] == "validation_error"
    fields = {detail["field"] for detail in error["details"]}
    assert {"name", "actionType", "priority"} <= fields


def test_empty_update_is_rejected(test_context, auth_headers):
    client, _ = test_context
    rule_id = _create_rule(client, auth_headers).json()["id"]

    res = client.put(f"/automation/rules/{rule_id}", json={}, headers=auth_headers(SELLER))

    assert res.status_code == 422
    assert res.json()["error"]["code"] == "validation_error"


def test_templates_listing_and_install(test_context, auth_headers):
    client, _ = test_context

    listing = client.get("/automation/templates", headers=auth_headers(SELLER))
    assert listing.status_code == 200, listing.text
    templates = {item["id"]: item for item in listing.json()["templates"]}
    assert len(templates) == 9
    assert templates["rfq-high-value"]["triggerConditions"] == {"valueAbove": 50000}
    assert templates["dispute-auto-respond"]["triggerConditions"] == {}

    installed = client.post(
        "/automation/templates/create",
        json={"templateId": "order-delayed", "overrides": {"name": "Late orders", "priority": 3}},
        headers=auth_headers(SELLER),
    )
    assert installed.status_code == 201, installed.text
    assert installed.json()["name"] == "Late orders"
    assert installed.json()["priority"] == 3
    assert installed.json()["triggerConditions"] == {"daysOverdue": 2}

    unknown = client.post(
        "/automation/templates/create",
        json={"templateId": "nope"},
        headers=auth_headers(SELLER),
    )
    assert unknown.status_code == 400
    assert unknown.json()["error"]["message"] == "Template not found"


def test_evaluate_endpoint_runs_rules_and_records_history(test_context, auth_headers):
    client, session_local = test_context
    with session_local() as db:
        db.add(RFQ(id="rfq-1", rfq_number="RFQ-1", seller_id=SELLER, buyer_id="buyer-1", status="pending"))
        db.commit()
    rule_id = _create_rule(client, auth_headers).json()["id"]

    res = client.post(
        "/automation/evaluate",
        json={"entityType": "rfq", "entityId": "rfq-1", "context": {"margin": 3}},
        headers=auth_headers(SELLER),
    )
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["success"] is True
    assert body["results"] == [
        {
            "ruleId": rule_id,
            "ruleName": "Ignore thin margins",
            "matched": True,
            "executed": True,
            "result": "Set status to ignored",
            "error": None,
        }
    ]
    with session_local() as db:
        assert db.get(RFQ, "rfq-1").status == "ignored"

    history = client.get("/automation/executions?entityType=rfq", headers=auth_headers(SELLER))
    assert history.status_code == 200, history.text
    executions = history.json()["executions"]
    assert len(executions) == 1
    assert executions[0]["ruleId"] == rule_id
    assert executions[0]["actionResult"] == "success"
    assert executions[0]["triggerData"]["margin"] == 3
    assert executions[0]["rule"] == {
        "name": "Ignore thin margins",
        "ruleType": "rfq_rule",
        "actionType": "auto_ignore",
    }

    detail = client.get(f"/automation/rules/{rule_id}", headers=auth_headers(SELLER)).json()
    assert detail["triggerCount"] == 1
    assert detail["lastTriggeredAt"] is not None
    assert [item["id"] for item in detail["executions"]] == [executions[0]["id"]]

    stats = client.get("/automation/executions/stats?period=day", headers=auth_headers(SELLER))
    assert stats.status_code == 200, stats.text
    assert stats.json() == {
        "period": "day",
        "total": 1,
        "successful": 1,
        "failed": 0,
        "skipped": 0,
        "successRate": 100.0,
        "byEntityType": {"rfq": 1},
    }


def test_evaluate_rejects_unknown_entity_type(test_context, auth_headers):
    client, _ = test_context

    res = client.post(
        "/automation/evaluate",
        json={"entityType": "invoice", "entityId": "inv-1"},
        headers=auth_headers(SELLER),
    )

    assert res.status_code == 422


def test_stats_reject_unknown_period(test_context, auth_headers):
    client, _ = test_context

    res = client.get("/automation/executions/stats?period=year", headers=auth_headers(SELLER))

    assert res.status_code == 422
