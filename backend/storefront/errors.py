from typing import Dict, List, Optional


class StorefrontError(Exception):
    """Base for every failure a service reports to its caller."""

    status_code = 500

    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []

    def to_detail(self) -> Dict:
        detail = {"message": self.message}
        if self.errors:
            detail["errors"] = self.errors
        return detail


class ValidationFailed(StorefrontError):
    status_code = 400

    @classmethod
    def for_fields(cls, errors: List[Dict[str, str]]) -> "ValidationFailed":
        return cls("Validation failed", errors=errors)


class NotFound(StorefrontError):
    status_code = 404


class Forbidden(StorefrontError):
    status_code = 403


class Conflict(StorefrontError):
    status_code = 409


class InsufficientStock(StorefrontError):
    status_code = 400

    def __init__(self, message: str, product_id: Optional[int] = None):
        super().__init__(message)
        self.product_id = product_id


class InvalidStateTransition(StorefrontError):
    status_code = 400


class StorageUnavailable(StorefrontError):
    """Lock wait or connection timeout; the request can be retried."""

    status_code = 503


class InternalError(StorefrontError):
    status_code = 500
