"""Error taxonomy shared by the services and rendered by the API layer.

Services raise these; ``storefront.main`` turns them into
``{"detail": ..., "kind": ...}`` JSON responses with ``status_code``.
"""
from typing import List, Optional


class AppError(Exception):
    status_code = 400
    kind = "error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict:
        return {"detail": self.detail, "kind": self.kind}


class ValidationFailed(AppError):
    status_code = 422
    kind = "validation_error"


class NotFound(AppError):
    status_code = 404
    kind = "not_found"


class Conflict(AppError):
    status_code = 409
    kind = "conflict"


class Unauthorized(AppError):
    status_code = 401
    kind = "unauthorized"


class Forbidden(AppError):
    status_code = 403
    kind = "forbidden"


class BusinessRuleViolation(AppError):
    kind = "business_rule"


class EmptyCart(BusinessRuleViolation):
    kind = "empty_cart"

    def __init__(self, detail: str = "Cannot create order from empty cart"):
        super().__init__(detail)


class CartValidationFailed(BusinessRuleViolation):
    kind = "cart_validation"

    def __init__(self, errors: List[str]):
        super().__init__(f"Cart validation failed: {', '.join(errors)}")
        self.errors = list(errors)

    def to_dict(self) -> dict:
        return {**super().to_dict(), "errors": self.errors}


class InsufficientStock(BusinessRuleViolation):
    kind = "insufficient_stock"


class InvalidStatusTransition(BusinessRuleViolation):
    kind = "invalid_status_transition"


class PaymentFailed(BusinessRuleViolation):
    kind = "payment_failed"

    def __init__(self, reason: Optional[str]):
        super().__init__(f"Payment failed: {reason}")
        self.reason = reason

    def to_dict(self) -> dict:
        return {**super().to_dict(), "reason": self.reason}


class CancellationLimitReached(Forbidden):
    kind = "cancellation_limit"
