from clientdesk.schemas.common import ErrorOut


_ERROR_EXAMPLES: dict[int, tuple[str, str, str]] = {
    400: ("bad_request", "Bad request", "/clients/client-id/kpis"),
    401: ("unauthorized", "Invalid token", "/clients/client-id/risk"),
    404: ("not_found", "Client not found", "/clients/client-id/overview"),
    422: ("validation_error", "Validation failed", "/clients/client-id/timeline"),
    500: ("internal_error", "Internal server error", "/clients/client-id/profitability"),
}


def error_responses(*status_codes: int) -> dict[int, dict]:
    responses: dict[int, dict] = {}
    for status_code in status_codes:
        code, message, path = _ERROR_EXAMPLES.get(
            status_code, ("http_error", "HTTP error", "/clients/client-id")
        )
        responses[status_code] = {
            "model": ErrorOut,
            "description": message,
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": code,
                            "message": message,
                            "request_id": "request-id",
                            "path": path,
                            "details": None,
                        }
                    }
                }
            },
        }
    return responses
