"""
Exception Classes - Strongly typed exception hierarchy.

Every error carries a machine-readable code, a human-readable message and an
optional structured payload so callers can branch without parsing strings.
"""

from typing import Any


class BillingError(Exception):
    """Base exception for all billing errors."""

    code = "billing_error"

    def __init__(self, message: str, details: Any = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Plain representation for logs and API responses."""
        return {"code": self.code, "message": self.message, "details": self.details}


class InvalidArgumentError(BillingError, ValueError):
    """Raised when a value cannot be accepted (unknown gateway, missing field)."""

    code = "invalid_argument"

    def __init__(self, name: str, value: Any, reason: str) -> None:
        self.name = name
        self.value = value
        super().__init__(f"Invalid argument {name}={value!r}: {reason}", {"name": name})


class UnimplementedGatewayError(BillingError, NotImplementedError):
    """Raised when a gateway outside the supported set reaches a dispatch point."""

    code = "unimplemented_gateway"

    def __init__(self, gateway: Any, operation: str) -> None:
        self.gateway = gateway
        self.operation = operation
        super().__init__(
            f"Payment gateway {gateway} is not implemented for {operation}",
            {"gateway": str(gateway), "operation": operation},
        )


class IllegalStateError(BillingError, RuntimeError):
    """Raised when an operation is invoked in a state where it is not allowed."""

    code = "illegal_state"


class MissingPurchaseError(IllegalStateError):
    """Raised when a subscription selects a gateway without a purchase record."""

    code = "missing_purchase"

    def __init__(self, user_id: str, gateway: Any) -> None:
        self.user_id = user_id
        self.gateway = gateway
        super().__init__(
            f"Subscription {user_id} has no purchase for gateway {gateway}",
            {"user_id": user_id, "gateway": str(gateway)},
        )


class MalformedWireDataError(BillingError, ValueError):
    """Raised when incoming wire data cannot be decoded into a model."""

    code = "malformed_wire_data"

    def __init__(self, entity: str, reason: str, errors: list[Any] | None = None) -> None:
        self.entity = entity
        super().__init__(f"Malformed {entity} data: {reason}", errors)


class VerificationError(BillingError):
    """Raised when a payment gateway rejects or fails to verify a purchase."""

    code = "verification_failed"

    def __init__(self, gateway: Any, message: str, details: Any = None) -> None:
        self.gateway = gateway
        super().__init__(f"Purchase verification failed ({gateway}): {message}", details)


class PurchaseCancelledError(VerificationError):
    """Raised for receipts cancelled by store support; treat as never purchased."""

    code = "purchase_cancelled"

    def __init__(self, gateway: Any, product_id: str) -> None:
        self.product_id = product_id
        super().__init__(gateway, f"purchase of {product_id} was cancelled", {"product_id": product_id})
