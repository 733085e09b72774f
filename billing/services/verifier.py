"""
Purchase Verifier Protocol - Gateway-agnostic verification boundary.

Store API clients live outside this package; they are plugged in through
this protocol.
"""

from typing import Any, Protocol, cast

from billing.exceptions import IllegalStateError
from billing.models.credentials import (
    AppStoreCredentials,
    PlayStoreCredentials,
    PurchaseCredentials,
)
from billing.models.gateway import PaymentGateway
from billing.models.purchases import AppStorePurchase, BasePurchase, PlayStorePurchase


class PurchaseVerifier(Protocol):
    """
    Purchase verification protocol.

    Any store integration (App Store Server API, Play Developer API, ...)
    must implement this interface.
    """

    async def verify(self, credentials: PurchaseCredentials) -> dict[str, Any]:
        """
        Verify a purchase with the gateway named by ``credentials``.

        Args:
            credentials: Gateway-specific verification credentials

        Returns:
            Wire-format purchase record for ``credentials.gateway``

        Raises:
            VerificationError: If the gateway rejects or cannot verify the purchase
        """
        ...


def credentials_for(purchase: BasePurchase) -> PurchaseCredentials:
    """
    Credentials that fetch fresh state of a stored purchase.

    Raises:
        IllegalStateError: For free purchases, which are never verified
    """
    if purchase.gateway == PaymentGateway.APP_STORE:
        app_store = cast(AppStorePurchase, purchase)
        return AppStoreCredentials(
            transaction_id=app_store.original_transaction_id, receipt=app_store.receipt
        )
    if purchase.gateway == PaymentGateway.PLAY_STORE:
        play_store = cast(PlayStorePurchase, purchase)
        return PlayStoreCredentials(
            product_id=play_store.product_id,
            package_name=play_store.package_name,
            purchase_token=play_store.purchase_token,
        )
    raise IllegalStateError(
        f"{purchase.gateway} purchases cannot be verified", {"gateway": str(purchase.gateway)}
    )
