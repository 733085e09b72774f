"""
Subscription aggregate.

A subscription keeps at most one purchase record per gateway the user has
used and a currently selected gateway. Lifecycle facts are read through the
active purchase, the record of the selected gateway.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from billing.dates import normalize_timestamps
from billing.exceptions import (
    IllegalStateError,
    InvalidArgumentError,
    MissingPurchaseError,
    UnimplementedGatewayError,
)
from billing.models.gateway import PaymentGateway
from billing.models.purchases import (
    AppStorePurchase,
    BasePurchase,
    FreePurchase,
    PlayStorePurchase,
)


@dataclass(frozen=True)
class Subscription:
    """
    User subscription.

    Never mutated in place: every transition produces a new value through
    ``copy_with``. Equality ignores ``play_store_purchase`` for compatibility
    with stored subscriptions compared by existing consumers.
    """

    user_id: str
    gateway: PaymentGateway
    created_at: datetime
    updated_at: datetime
    # Set only if the free gateway was used
    free_purchase: FreePurchase | None = None
    # Set if the App Store was used at least once
    app_store_purchase: AppStorePurchase | None = None
    # Set if the Play Store was used at least once
    play_store_purchase: PlayStorePurchase | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.user_id, str) or not self.user_id:
            raise InvalidArgumentError("user_id", self.user_id, "is required and cannot be empty")
        if self.gateway is None:
            raise InvalidArgumentError("gateway", None, "is required")
        object.__setattr__(self, "gateway", PaymentGateway.parse(self.gateway))
        for name in ("created_at", "updated_at"):
            if getattr(self, name) is None:
                raise InvalidArgumentError(name, None, "is required")
        normalize_timestamps(self, "created_at", "updated_at")

        if self.purchase_for(self.gateway) is None:
            raise MissingPurchaseError(self.user_id, self.gateway)

    def purchase_for(self, gateway: PaymentGateway) -> BasePurchase | None:
        """Stored purchase record for ``gateway``, or None if never used."""
        if gateway == PaymentGateway.FREE:
            return self.free_purchase
        elif gateway == PaymentGateway.APP_STORE:
            return self.app_store_purchase
        elif gateway == PaymentGateway.PLAY_STORE:
            return self.play_store_purchase
        raise UnimplementedGatewayError(gateway, "purchase_for")

    @property
    def active_purchase(self) -> BasePurchase:
        """
        Purchase record of the currently selected gateway.

        Raises:
            MissingPurchaseError: If the selected gateway has no record
        """
        purchase = self.purchase_for(self.gateway)
        if purchase is None:
            raise MissingPurchaseError(self.user_id, self.gateway)
        return purchase

    @property
    def gateways(self) -> list[PaymentGateway]:
        """Gateways this user has a purchase record for."""
        return [gateway for gateway in PaymentGateway if self.purchase_for(gateway) is not None]

    @property
    def expires_at(self) -> datetime | None:
        """
        When this subscription expires.

        None for free purchases, which never expire. Renewals of the active
        purchase move this date forward once refreshed from the gateway.
        """
        return self.active_purchase.expires_at

    @property
    def will_auto_renew(self) -> bool:
        """Whether the subscription renews at the end of the billing cycle."""
        return self.active_purchase.will_auto_renew

    @property
    def is_in_grace_period(self) -> bool:
        return self.active_purchase.is_in_grace_period

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.active_purchase.is_expired(now)

    def is_ended(self, now: datetime | None = None) -> bool:
        return self.active_purchase.is_ended(now)

    def is_free_trial_eligible(self, gateway: PaymentGateway) -> bool:
        """
        Whether the user is eligible for a free trial on ``gateway``.

        A user who never purchased through a store is eligible there.

        Raises:
            IllegalStateError: For the free gateway, which has no trials
            UnimplementedGatewayError: For gateways outside the supported set
        """
        if gateway == PaymentGateway.APP_STORE:
            if self.app_store_purchase is None:
                return True
            return self.app_store_purchase.is_free_trial_eligible
        elif gateway == PaymentGateway.PLAY_STORE:
            if self.play_store_purchase is None:
                return True
            return self.play_store_purchase.is_free_trial_eligible
        elif gateway == PaymentGateway.FREE:
            raise IllegalStateError(
                "Checking free trial eligibility with the free payment gateway is not allowed",
                {"gateway": PaymentGateway.FREE.value},
            )
        raise UnimplementedGatewayError(gateway, "is_free_trial_eligible")

    def copy_with(
        self,
        gateway: PaymentGateway | None = None,
        free_purchase: FreePurchase | None = None,
        app_store_purchase: AppStorePurchase | None = None,
        play_store_purchase: PlayStorePurchase | None = None,
        updated_at: datetime | None = None,
    ) -> "Subscription":
        """
        Return a copy with the given fields replaced.

        ``user_id`` and ``created_at`` are fixed at creation.

        Raises:
            MissingPurchaseError: If the resulting gateway has no record
        """
        changes: dict[str, Any] = {
            "gateway": gateway,
            "free_purchase": free_purchase,
            "app_store_purchase": app_store_purchase,
            "play_store_purchase": play_store_purchase,
            "updated_at": updated_at,
        }
        return replace(self, **{name: value for name, value in changes.items() if value is not None})

    @classmethod
    def create(cls, user_id: str, purchase: BasePurchase, now: datetime) -> "Subscription":
        """New subscription backed by its first verified purchase."""
        return cls(
            user_id=user_id,
            gateway=purchase.gateway,
            created_at=now,
            updated_at=now,
            **{_purchase_field(purchase.gateway): purchase},
        )

    def with_purchase(
        self, purchase: BasePurchase, updated_at: datetime, select: bool = True
    ) -> "Subscription":
        """
        Store ``purchase`` under its gateway, replacing any previous record.

        Args:
            purchase: Fresh purchase record
            updated_at: Time of the change
            select: Also make the purchase's gateway the active one
        """
        return replace(
            self,
            gateway=purchase.gateway if select else self.gateway,
            updated_at=updated_at,
            **{_purchase_field(purchase.gateway): purchase},
        )

    @classmethod
    def from_dict(cls, data: Any) -> "Subscription":
        """
        Decode a wire subscription.

        Raises:
            MalformedWireDataError: If any part of the payload is invalid
        """
        from billing.models import wire

        return wire.decode(wire.SubscriptionWire, data).to_domain()

    def to_dict(self) -> dict[str, Any]:
        from billing.models import wire

        return wire.SubscriptionWire.from_domain(self).dump()


def _purchase_field(gateway: PaymentGateway) -> str:
    if gateway == PaymentGateway.FREE:
        return "free_purchase"
    elif gateway == PaymentGateway.APP_STORE:
        return "app_store_purchase"
    elif gateway == PaymentGateway.PLAY_STORE:
        return "play_store_purchase"
    raise UnimplementedGatewayError(gateway, "with_purchase")
