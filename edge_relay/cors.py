from fastapi.responses import Response

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


def preflight_response() -> Response:
    """Answer a CORS preflight: status 200, no body, permissive headers."""
    return Response(status_code=200, headers=CORS_HEADERS)
