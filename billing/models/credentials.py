"""
Purchase credentials - what a gateway needs to verify a purchase.

Credentials are only submitted for verification; they are never stored on a
subscription.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, ClassVar

from billing.exceptions import InvalidArgumentError
from billing.models.gateway import PaymentGateway


def _require_text(name: str, value: object) -> None:
    if not isinstance(value, str) or not value:
        raise InvalidArgumentError(name, value, "must be a non-empty string")


@dataclass(frozen=True)
class PurchaseCredentials(ABC):
    """Base class for gateway-tagged credentials."""

    gateway: ClassVar[PaymentGateway]

    def __post_init__(self) -> None:
        for name, value in asdict(self).items():
            _require_text(name, value)

    @staticmethod
    def app_store(transaction_id: str, receipt: str) -> "AppStoreCredentials":
        return AppStoreCredentials(transaction_id=transaction_id, receipt=receipt)

    @staticmethod
    def play_store(
        product_id: str, package_name: str, purchase_token: str
    ) -> "PlayStoreCredentials":
        return PlayStoreCredentials(
            product_id=product_id, package_name=package_name, purchase_token=purchase_token
        )

    @abstractmethod
    def credentials_dict(self) -> dict[str, str]:
        """Gateway-specific fields with camelCase keys."""

    def to_dict(self) -> dict[str, Any]:
        """Wire form: ``{"gateway": ..., "credentials": {...}}``."""
        return {"gateway": self.gateway.value, "credentials": self.credentials_dict()}

    @classmethod
    def from_dict(cls, data: Any) -> "PurchaseCredentials":
        """
        Decode wire credentials, dispatching on the gateway tag.

        Raises:
            InvalidArgumentError: On unknown gateway or missing fields
        """
        if not isinstance(data, dict):
            raise InvalidArgumentError("data", data, "must be an object")
        gateway = PaymentGateway.parse(data.get("gateway"))
        fields = data.get("credentials")
        if not isinstance(fields, dict):
            raise InvalidArgumentError("credentials", fields, "must be an object")

        if gateway is PaymentGateway.APP_STORE:
            return AppStoreCredentials(
                transaction_id=fields.get("transactionId"),  # type: ignore[arg-type]
                receipt=fields.get("receipt"),  # type: ignore[arg-type]
            )
        if gateway is PaymentGateway.PLAY_STORE:
            return PlayStoreCredentials(
                product_id=fields.get("productId"),  # type: ignore[arg-type]
                package_name=fields.get("packageName"),  # type: ignore[arg-type]
                purchase_token=fields.get("purchaseToken"),  # type: ignore[arg-type]
            )
        raise InvalidArgumentError("gateway", gateway.value, "gateway takes no credentials")


@dataclass(frozen=True)
class AppStoreCredentials(PurchaseCredentials):
    """App Store transaction plus the encoded receipt to validate."""

    gateway: ClassVar[PaymentGateway] = PaymentGateway.APP_STORE

    transaction_id: str
    receipt: str

    def credentials_dict(self) -> dict[str, str]:
        return {"transactionId": self.transaction_id, "receipt": self.receipt}


@dataclass(frozen=True)
class PlayStoreCredentials(PurchaseCredentials):
    """Play Store subscription identified by product, package and token."""

    gateway: ClassVar[PaymentGateway] = PaymentGateway.PLAY_STORE

    product_id: str
    package_name: str
    purchase_token: str

    def credentials_dict(self) -> dict[str, str]:
        return {
            "productId": self.product_id,
            "packageName": self.package_name,
            "purchaseToken": self.purchase_token,
        }
