"""HTTP constants for the transport layer.

Centralizes all HTTP-related constants to avoid duplication across modules.
"""

# HTTP Status Code Ranges
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300
HTTP_STATUS_NOT_MODIFIED = 304
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_UNAUTHORIZED = 401
HTTP_STATUS_FORBIDDEN = 403
HTTP_STATUS_NOT_FOUND = 404
HTTP_STATUS_REQUEST_TIMEOUT = 408
HTTP_STATUS_UNPROCESSABLE = 422
HTTP_STATUS_TOO_MANY_REQUESTS = 429
HTTP_STATUS_SERVER_ERROR_MIN = 500
HTTP_STATUS_SERVER_ERROR_MAX = 600
HTTP_STATUS_CLIENT_CLOSED = 499

# Statuses worth another attempt at the transport layer
TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

# Default request timeout
DEFAULT_TIMEOUT_MS = 5000

# Cache-Control directive values (seconds)
DEFAULT_CACHE_MAX_AGE_SECONDS = 300
DEFAULT_STALE_WHILE_REVALIDATE_SECONDS = 60

# Maximum retry delay cap for rate limiting (seconds)
MAX_RETRY_AFTER_SECONDS = 60
