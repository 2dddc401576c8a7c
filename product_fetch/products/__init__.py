"""Product fetch service: validation, normalization and error taxonomy."""

from product_fetch.products.classifier import (
    classify_error,
    is_cancellation,
    make_error,
    map_status_to_error_code,
)
from product_fetch.products.errors import (
    ERROR_CATALOG,
    ClassifiedError,
    ErrorCode,
    ErrorDefinition,
    ResponseValidationError,
    TransformError,
)
from product_fetch.products.models import (
    CollectionMetadata,
    CollectionOptions,
    CollectionResult,
    FetchOptions,
    ItemError,
    NotModified,
    ProductResult,
)
from product_fetch.products.normalizer import (
    CANONICAL_FIELDS,
    CanonicalRecord,
    normalize_price,
    normalize_product,
)
from product_fetch.products.service import ProductService
from product_fetch.products.validator import validate_response


__all__ = [
    # Service
    "ProductService",
    # Classification
    "classify_error",
    "is_cancellation",
    "make_error",
    "map_status_to_error_code",
    # Errors
    "ERROR_CATALOG",
    "ClassifiedError",
    "ErrorCode",
    "ErrorDefinition",
    "ResponseValidationError",
    "TransformError",
    # Models
    "CollectionMetadata",
    "CollectionOptions",
    "CollectionResult",
    "FetchOptions",
    "ItemError",
    "NotModified",
    "ProductResult",
    # Normalization
    "CANONICAL_FIELDS",
    "CanonicalRecord",
    "normalize_price",
    "normalize_product",
    "validate_response",
]
