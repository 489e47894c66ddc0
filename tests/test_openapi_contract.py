import json
from pathlib import Path

from app.main import app


def test_openapi_paths_snapshot():
    snapshot_path = Path(__file__).parent / "snapshots" / "openapi_paths_snapshot.json"
    expected_paths = json.loads(snapshot_path.read_text(encoding="utf-8"))
    actual_paths = sorted(app.openapi()["paths"].keys())
    assert actual_paths == expected_paths


def test_automation_operations_document_auth_errors():
    paths = app.openapi()["paths"]
    for path, operations in paths.items():
        if not path.startswith("/automation"):
            continue
        for method, operation in operations.items():
            assert "401" in operation["responses"], f"{method.upper()} {path}"
            assert operation["tags"] == ["automation"]


def test_rule_schema_uses_camel_case_fields():
    schemas = app.openapi()["components"]["schemas"]
    rule_fields = set(schemas["RuleOut"]["properties"])
    assert {"triggerConditions", "actionConfig", "isEnabled", "triggerCount", "lastTriggeredAt"} <= rule_fields
