"""Response shape validation.

Checks that a response is present and carries a usable JSON payload
before anything downstream touches it. Validation has no side effects.
"""

from typing import Any

import httpx

from product_fetch.products.errors import ResponseValidationError


def extract_payload(response: httpx.Response) -> Any:
    """Decode the JSON payload of a response.

    Raises:
        ResponseValidationError: If the body is empty or not JSON.
    """
    if not response.content:
        msg = "Malformed API response: missing data payload"
        raise ResponseValidationError(msg, validation_type="missing_data")

    try:
        return response.json()
    except ValueError as e:
        msg = "Malformed API response: payload is not valid JSON"
        raise ResponseValidationError(
            msg,
            validation_type="missing_data",
            details={"content_type": response.headers.get("content-type")},
        ) from e


def validate_response(
    response: httpx.Response | None,
    *,
    require_collection: bool = False,
    allow_empty: bool = True,
) -> Any:
    """Validate a response and return its payload.

    Args:
        response: The HTTP response (None when nothing was received).
        require_collection: Require the payload to be a JSON array.
        allow_empty: Accept null payloads and empty arrays/objects.

    Returns:
        The decoded payload. A null payload is returned as ``[]`` when a
        collection is required and as ``None`` otherwise.

    Raises:
        ResponseValidationError: When the response fails validation.
    """
    if response is None:
        msg = "No response received from server"
        raise ResponseValidationError(msg, validation_type="missing_response")

    data = extract_payload(response)

    if data is None:
        if not allow_empty:
            msg = "Invalid response: data is null"
            raise ResponseValidationError(msg, validation_type="null_data")
        return [] if require_collection else None

    if require_collection and not isinstance(data, list):
        msg = "Invalid response format: expected array"
        raise ResponseValidationError(
            msg,
            validation_type="type_mismatch",
            details={"expected_type": "array", "received_type": type(data).__name__},
        )

    if not allow_empty and isinstance(data, list | dict) and len(data) == 0:
        msg = "Empty response received when data was required"
        raise ResponseValidationError(
            msg,
            validation_type="empty_data",
            details={"data_type": type(data).__name__},
        )

    return data
