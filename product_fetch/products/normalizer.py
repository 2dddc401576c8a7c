"""Normalization of raw product records into the canonical display model."""

import math
import re
from collections.abc import Mapping
from typing import Any

from product_fetch.products.errors import TransformError


CanonicalRecord = dict[str, Any]

DEFAULT_ID = ""
DEFAULT_TITLE = "Untitled Product"
DEFAULT_DESCRIPTION = "No description available"
DEFAULT_CATEGORY = "Uncategorized"
ZERO_PRICE = "0.00"

CANONICAL_FIELDS = ("id", "title", "description", "price", "image", "category")

# Currency symbols ($, £, €), thousands separators and whitespace
_PRICE_NOISE = re.compile(r"[$£€,\s]")
_UNSIGNED_DECIMAL = re.compile(r"^\d*\.?\d+$")


def normalize_price(price: Any) -> str:
    """Normalize a price into a string with exactly two decimal places.

    Total function: any unrecognized input yields "0.00". Negative values
    are clamped to zero. Rounding is half-up on the cent value, so
    ``0.005`` becomes ``"0.01"`` and ``9.999`` becomes ``"10.00"``.

    Args:
        price: Raw price (number, string such as "$1,234.50", None, ...).

    Returns:
        Price formatted like "9.99".
    """
    if price is None or (isinstance(price, Mapping) and not price):
        return ZERO_PRICE

    if isinstance(price, str):
        cleaned = _PRICE_NOISE.sub("", price)
        if not _UNSIGNED_DECIMAL.match(cleaned):
            return ZERO_PRICE
        price = float(cleaned)

    # bool is an int subclass but never a price
    if isinstance(price, bool) or not isinstance(price, int | float):
        return ZERO_PRICE

    try:
        value = float(price)
    except OverflowError:
        return ZERO_PRICE

    cents = max(0.0, value) * 100 + 0.5
    if not math.isfinite(cents):
        return ZERO_PRICE

    rounded = math.floor(cents) / 100
    return f"{rounded:.2f}"


def _default(value: Any, fallback: Any) -> Any:
    # Only missing/None falls back; "" is a real value
    return fallback if value is None else value


def normalize_product(raw: Any) -> CanonicalRecord:
    """Convert a raw product record into the canonical display model.

    Known fields get defaults when absent or null; an explicit empty string
    is preserved. Every other key is copied through unchanged and can never
    overwrite a canonical field.

    Args:
        raw: Raw record as decoded from the API.

    Returns:
        Canonical record.

    Raises:
        TransformError: If ``raw`` is missing, not a mapping, or a list.
    """
    if raw is None or isinstance(raw, list | tuple) or not isinstance(raw, Mapping):
        raise TransformError(
            "No product data provided",
            field="data",
            value=raw,
            step="validate_input",
        )

    product_id = raw.get("id")
    record: CanonicalRecord = {
        "id": DEFAULT_ID if product_id is None else str(product_id),
        "title": _default(raw.get("title"), DEFAULT_TITLE),
        "description": _default(raw.get("description"), DEFAULT_DESCRIPTION),
        "price": normalize_price(raw.get("price")),
        "image": raw.get("image"),
        "category": _default(raw.get("category"), DEFAULT_CATEGORY),
    }

    for key, value in raw.items():
        if key not in record:
            record[key] = value

    return record
