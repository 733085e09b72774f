"""
Subscription Service - Applies verified purchases to subscriptions.

Subscriptions are immutable: every operation returns a new value and leaves
persisting it to the caller.
"""

from typing import cast

from billing.clock import Clock, SystemClock
from billing.config import Settings, settings
from billing.exceptions import InvalidArgumentError, MissingPurchaseError, PurchaseCancelledError
from billing.models.credentials import PurchaseCredentials
from billing.models.gateway import PaymentGateway
from billing.models.purchases import AppStorePurchase, BasePurchase, FreePurchase, PlayStorePurchase
from billing.models.subscription import Subscription
from billing.models.wire import decode_purchase
from billing.observability.logging import get_logger, log_context
from billing.observability.metrics import SubscriptionMetrics, metrics, track_verification
from billing.services.verifier import PurchaseVerifier, credentials_for

logger = get_logger(__name__)


class SubscriptionService:
    """
    Subscription lifecycle transitions.

    - grant_free: give a user the free product
    - subscribe: attach a newly verified store purchase and select it
    - refresh: re-verify a stored store purchase with its gateway
    - switch_gateway: select another gateway the user already has a record for
    """

    def __init__(
        self,
        verifier: PurchaseVerifier,
        clock: Clock | None = None,
        recorder: SubscriptionMetrics | None = None,
        config: Settings | None = None,
    ) -> None:
        """Initialize subscription service with a purchase verifier."""
        self.verifier = verifier
        self.clock = clock or SystemClock()
        self.metrics = recorder or metrics
        self.settings = config or settings

    async def verify(self, credentials: PurchaseCredentials) -> BasePurchase:
        """
        Verify credentials with their gateway and decode the purchase record.

        Raises:
            VerificationError: If the gateway rejects the purchase
            PurchaseCancelledError: If the App Store receipt was cancelled
            MalformedWireDataError: If the gateway returned an invalid record
        """
        gateway = credentials.gateway
        with log_context(gateway=gateway.value), track_verification(self.metrics, gateway.value):
            logger.info("verifying_purchase")
            payload = await self.verifier.verify(credentials)
            purchase = decode_purchase(gateway, payload)

            # A cancelled receipt counts as if no purchase had ever been made
            if gateway == PaymentGateway.APP_STORE:
                app_store = cast(AppStorePurchase, purchase)
                if app_store.is_cancelled:
                    logger.warning(
                        "purchase_cancelled",
                        product_id=app_store.product_id,
                        cancelled_at=app_store.cancelled_at,
                    )
                    raise PurchaseCancelledError(gateway, app_store.product_id)

            logger.info(
                "purchase_verified",
                product_id=purchase.product_id,
                expires_at=purchase.expires_at,
                will_auto_renew=purchase.will_auto_renew,
            )
            return purchase

    def grant_free(
        self,
        user_id: str,
        product_id: str | None = None,
        existing: Subscription | None = None,
    ) -> Subscription:
        """
        Give a user the free product and select the free gateway.

        Args:
            user_id: Owner of the subscription
            product_id: Free product (defaults to configured free product)
            existing: Current subscription, if the user has one
        """
        purchase = FreePurchase(product_id=product_id or self.settings.default_free_product_id)
        subscription = self._apply(user_id, purchase, existing)

        logger.info(
            "free_purchase_granted",
            user_id=subscription.user_id,
            product_id=purchase.product_id,
            created=existing is None,
        )
        self.metrics.record_transition("granted_free", PaymentGateway.FREE.value)
        return subscription

    async def subscribe(
        self,
        credentials: PurchaseCredentials,
        existing: Subscription | None = None,
        user_id: str | None = None,
    ) -> Subscription:
        """
        Verify a new store purchase, attach it and make its gateway active.

        Either ``existing`` or ``user_id`` must be given.

        Raises:
            InvalidArgumentError: If neither existing nor user_id is given
            VerificationError: If verification fails; nothing is changed
        """
        if existing is not None:
            owner = existing.user_id
        elif user_id:
            owner = user_id
        else:
            raise InvalidArgumentError("user_id", user_id, "required for a new subscription")

        with log_context(user_id=owner):
            purchase = await self.verify(credentials)
            subscription = self._apply(owner, purchase, existing)

            logger.info(
                "subscription_created" if existing is None else "subscription_purchase_attached",
                gateway=subscription.gateway.value,
                product_id=purchase.product_id,
                previous_gateway=existing.gateway.value if existing is not None else None,
            )
            self.metrics.record_transition(
                "created" if existing is None else "subscribed", subscription.gateway.value
            )
            return subscription

    async def refresh(
        self, subscription: Subscription, gateway: PaymentGateway | None = None
    ) -> Subscription:
        """
        Re-verify the stored purchase of ``gateway`` (default: active gateway).

        The selected gateway is left unchanged.

        Raises:
            MissingPurchaseError: If there is no stored purchase for ``gateway``
            IllegalStateError: For the free gateway, which is never verified
        """
        gateway = gateway or subscription.gateway
        stored = subscription.purchase_for(gateway)
        if stored is None:
            raise MissingPurchaseError(subscription.user_id, gateway)

        with log_context(user_id=subscription.user_id):
            fresh = _carry_over(subscription, await self.verify(credentials_for(stored)))
            now = self.clock.now()
            refreshed = subscription.with_purchase(fresh, updated_at=now, select=False)

            logger.info(
                "subscription_refreshed",
                gateway=gateway.value,
                expires_at=fresh.expires_at,
                previous_expires_at=stored.expires_at,
                is_ended=fresh.is_ended(now),
            )
            self.metrics.record_transition("refreshed", gateway.value)
            return refreshed

    def switch_gateway(self, subscription: Subscription, gateway: PaymentGateway) -> Subscription:
        """
        Select another gateway the user already has a purchase for.

        Raises:
            MissingPurchaseError: If the user never purchased through ``gateway``
        """
        gateway = PaymentGateway.parse(gateway)
        if gateway == subscription.gateway:
            return subscription

        switched = subscription.copy_with(gateway=gateway, updated_at=self.clock.now())
        logger.info(
            "subscription_gateway_switched",
            user_id=subscription.user_id,
            previous_gateway=subscription.gateway.value,
            gateway=gateway.value,
        )
        self.metrics.record_transition("switched", gateway.value)
        return switched

    def _apply(
        self, user_id: str, purchase: BasePurchase, existing: Subscription | None
    ) -> Subscription:
        now = self.clock.now()
        if existing is None:
            return Subscription.create(user_id, purchase, now)
        return existing.with_purchase(_carry_over(existing, purchase), updated_at=now)


def _carry_over(subscription: Subscription, fresh: BasePurchase) -> BasePurchase:
    """Keep state of the stored record that verification payloads do not report."""
    stored = subscription.play_store_purchase
    if fresh.gateway != PaymentGateway.PLAY_STORE or stored is None:
        return fresh
    return stored.renewed_by(cast(PlayStorePurchase, fresh))
