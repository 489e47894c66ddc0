from typing import Any

from app.schemas.common import ErrorOut

EXAMPLE_REQUEST_ID = "8d8f2b00-6c79-4a45-8ff4-b0a5f2bc4bc2"

# status -> (error code, description, example message, example details)
_ERROR_EXAMPLES: dict[int, tuple[str, str, str, Any]] = {
    400: ("bad_request", "Rule or template operation rejected", "Rule not found", None),
    401: ("unauthorized", "Missing or invalid seller token", "Not authenticated", None),
    404: ("not_found", "Resource not found", "Rule not found", None),
    422: (
        "validation_error",
        "Request failed validation",
        "Validation failed",
        [{"field": "priority", "message": "Input should be less than or equal to 1000", "type": "less_than_equal"}],
    ),
    500: ("internal_error", "Internal server error", "Internal server error", None),
}


def error_responses(*status_codes: int, path: str = "/automation/rules") -> dict[int, dict]:
    responses: dict[int, dict] = {}
    for status_code in status_codes:
        code, description, message, details = _ERROR_EXAMPLES.get(
            status_code,
            ("http_error", "HTTP error", "HTTP error", None),
        )
        responses[status_code] = {
            "model": ErrorOut,
            "description": description,
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": code,
                            "message": message,
                            "request_id": EXAMPLE_REQUEST_ID,
                            "path": path,
                            "details": details,
                        }
                    }
                }
            },
        }
    return responses
