from typing import List, Set
import os

SERVICE_NAME = os.getenv("LAMBDA_REST_SERVICE", "lambda-rest")

# Standard HTTP headers (stored and looked up lower-cased)
HDR_AUTHORIZATION = "authorization"
HDR_CONTENT_TYPE = "content-type"
HDR_COOKIE = "cookie"
HDR_SET_COOKIE = "set-cookie"
HDR_ORIGIN = "origin"
HDR_LOCATION = "location"
HDR_CACHE_CONTROL = "cache-control"
HDR_VARY = "vary"
HDR_X_CORRELATION_ID = "x-correlation-id"

# CORS response headers
HDR_ACCESS_CONTROL_ALLOW_ORIGIN = "access-control-allow-origin"
HDR_ACCESS_CONTROL_ALLOW_METHODS = "access-control-allow-methods"
HDR_ACCESS_CONTROL_ALLOW_HEADERS = "access-control-allow-headers"
HDR_ACCESS_CONTROL_EXPOSE_HEADERS = "access-control-expose-headers"
HDR_ACCESS_CONTROL_ALLOW_CREDENTIALS = "access-control-allow-credentials"
HDR_ACCESS_CONTROL_MAX_AGE = "access-control-max-age"

# Media types parsed as JSON by Request.get_parsed_body()
MIMETYPE_JSON = "application/json"
JSON_MIMETYPES: Set[str] = {"application/json", "text/json", "text/x-json"}

# Bearer credential in the authorization header
BEARER_PATTERN = r"^Bearer +([^ ]+)$"

# JWT Configuration
SUPPORTED_ALGORITHMS = ["HS256", "HS384", "HS512", "RS256", "RS384", "RS512", "ES256", "ES384", "ES512"]


def _get_jwt_algorithms() -> List[str]:
    algorithms = [a.strip() for a in os.getenv("JWT_ALGORITHMS", "HS256").split(",") if a.strip()]
    # Validate algorithms are supported
    algorithms = [a for a in algorithms if a in SUPPORTED_ALGORITHMS]
    return algorithms or ["HS256"]


JWT_ALGORITHMS = _get_jwt_algorithms()

# Safe integer conversion, a bad value disables the leeway
try:
    JWT_LEEWAY_SECONDS = int(os.getenv("JWT_LEEWAY_SECONDS", "0"))
    if JWT_LEEWAY_SECONDS < 0:
        JWT_LEEWAY_SECONDS = 0
except (ValueError, TypeError):
    JWT_LEEWAY_SECONDS = 0

ANONYMOUS_NAME = "Anonymous"

# Upstream proxy timeouts in seconds
try:
    PROXY_TIMEOUT_SECONDS = float(os.getenv("PROXY_TIMEOUT_SECONDS", "30"))
except (ValueError, TypeError):
    PROXY_TIMEOUT_SECONDS = 30.0

try:
    PROXY_CONNECT_TIMEOUT_SECONDS = float(os.getenv("PROXY_CONNECT_TIMEOUT_SECONDS", "5"))
except (ValueError, TypeError):
    PROXY_CONNECT_TIMEOUT_SECONDS = 5.0

# Connection-level headers that are never relayed in either direction
HOP_BY_HOP_HEADERS: Set[str] = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
}
