"""Header redaction for request logging."""

import re


# Headers whose values never appear in logs
SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "cookie",
        "x-api-key",
        "x-auth-token",
        "proxy-authorization",
        "set-cookie",
    }
)

REDACTED_VALUE = "[REDACTED]"

_URL_CREDENTIALS = re.compile(r"(https?://)([^:/@]+):([^@/]+)@")


def redact_headers(headers: dict[str, str]) -> dict[str, str]:
    """Redact sensitive headers for logging.

    Args:
        headers: Original headers dictionary.

    Returns:
        New dictionary with sensitive values replaced by [REDACTED].
    """
    return {
        key: REDACTED_VALUE if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def redact_url_credentials(url: str) -> str:
    """Redact user:password credentials embedded in a URL."""
    return _URL_CREDENTIALS.sub(r"\1[REDACTED]:[REDACTED]@", url)
