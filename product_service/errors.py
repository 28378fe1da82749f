# product_service/errors.py

"""
Error taxonomy for the Product Service.

Every error knows the HTTP status it maps to; `main.py` renders them as
`{"success": false, "error": <message>}`.
"""
from typing import List, Optional


class ProductServiceError(Exception):
    status_code = 500
    default_message = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidIdentifier(ProductServiceError):
    status_code = 400
    default_message = "Invalid product ID format"


class NotFound(ProductServiceError):
    status_code = 404
    default_message = "Product not found"


class MissingFields(ProductServiceError):
    status_code = 400
    default_message = "Missing required fields: product_name, price_new, brand, category"


class ValidationFailed(ProductServiceError):
    status_code = 400

    def __init__(self, violations: List[str]):
        self.violations = list(violations)
        super().__init__("Validation failed: " + ", ".join(self.violations))


class UnsupportedMediaType(ProductServiceError):
    status_code = 400
    default_message = "Only images and videos are allowed"


class PayloadTooLarge(ProductServiceError):
    status_code = 400
    default_message = "File too large. Maximum size is 50MB"


class TransientBackendFailure(ProductServiceError):
    status_code = 500

    def __init__(self, action: str, cause: Exception):
        self.cause = cause
        super().__init__(f"Failed to {action}: {str(cause) or type(cause).__name__}")


class UnknownError(ProductServiceError):
    status_code = 500
