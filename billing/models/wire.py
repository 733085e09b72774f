"""
Wire Models - Pydantic models for the JSON representation of purchases and
subscriptions.

Wire keys are camelCase. Domain code never handles raw dictionaries: data is
validated here and converted into the immutable domain dataclasses.
"""

from datetime import datetime
from typing import Annotated, Any, TypeVar

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    StrictBool,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from billing.dates import format_date, parse_date
from billing.exceptions import BillingError, MalformedWireDataError, UnimplementedGatewayError
from billing.models.gateway import PaymentGateway
from billing.models.purchases import (
    AppStorePurchase,
    BasePurchase,
    FreePurchase,
    PlayStorePurchase,
)
from billing.models.subscription import Subscription

Timestamp = Annotated[
    datetime,
    BeforeValidator(parse_date),
    PlainSerializer(format_date, return_type=str, when_used="json"),
]

Gateway = Annotated[PaymentGateway, BeforeValidator(PaymentGateway.parse)]


class WireModel(BaseModel):
    """Base for all wire models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def dump(self) -> dict[str, Any]:
        """JSON-compatible dict with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


WireT = TypeVar("WireT", bound=WireModel)


def decode(model: type[WireT], data: Any) -> WireT:
    """
    Validate wire data against ``model``.

    Raises:
        MalformedWireDataError: If the data does not match the model
    """
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise MalformedWireDataError(
            model.__name__.removesuffix("Wire"),
            f"{exc.error_count()} validation error(s)",
            exc.errors(include_url=False, include_context=False),
        ) from exc


# ============================================================================
# Purchases
# ============================================================================


class FreePurchaseWire(WireModel):
    """``{productId}``"""

    product_id: StrictStr

    @classmethod
    def from_domain(cls, purchase: FreePurchase) -> "FreePurchaseWire":
        return cls(product_id=purchase.product_id)

    def to_domain(self) -> FreePurchase:
        return _build("FreePurchase", FreePurchase, product_id=self.product_id)


class AppStorePurchaseWire(WireModel):
    """App Store purchase as stored and returned by the verification service."""

    product_id: StrictStr
    original_transaction_id: StrictStr
    original_purchased_at: Timestamp | None = None
    is_free_trial_eligible: StrictBool
    expires_at: Timestamp | None = None
    cancelled_at: Timestamp | None = None
    expiration_intent: StrictInt | None = None
    in_billing_retry_period: StrictBool
    in_free_trial_period: StrictBool
    auto_renew_status: StrictInt
    receipt: StrictStr

    @classmethod
    def from_domain(cls, purchase: AppStorePurchase) -> "AppStorePurchaseWire":
        return cls(
            product_id=purchase.product_id,
            original_transaction_id=purchase.original_transaction_id,
            original_purchased_at=purchase.original_purchased_at,
            is_free_trial_eligible=purchase.is_free_trial_eligible,
            expires_at=purchase.expires_at,
            cancelled_at=purchase.cancelled_at,
            expiration_intent=(
                None if purchase.expiration_intent is None else int(purchase.expiration_intent)
            ),
            in_billing_retry_period=purchase.in_billing_retry_period,
            in_free_trial_period=purchase.in_free_trial_period,
            auto_renew_status=int(purchase.auto_renew_status),
            receipt=purchase.receipt,
        )

    def to_domain(self) -> AppStorePurchase:
        return _build("AppStorePurchase", AppStorePurchase, **dict(self))


class PlayStorePurchaseWire(WireModel):
    """Play Store subscription purchase."""

    product_id: StrictStr
    auto_renewing: StrictBool
    cancel_reason: StrictInt
    package_name: StrictStr
    purchase_token: StrictStr
    purchase_token_history: list[StrictStr] = Field(default_factory=list)
    payment_state: StrictInt
    started_at: Timestamp | None = None
    user_canceled_at: Timestamp | None = None
    expires_at: Timestamp | None = None

    @field_validator("purchase_token_history", mode="before")
    @classmethod
    def default_history(cls, v: Any) -> Any:
        """Older records may carry null instead of an empty history."""
        return [] if v is None else v

    @classmethod
    def from_domain(cls, purchase: PlayStorePurchase) -> "PlayStorePurchaseWire":
        return cls(
            product_id=purchase.product_id,
            auto_renewing=purchase.auto_renewing,
            cancel_reason=int(purchase.cancel_reason),
            package_name=purchase.package_name,
            purchase_token=purchase.purchase_token,
            purchase_token_history=list(purchase.purchase_token_history),
            payment_state=int(purchase.payment_state),
            started_at=purchase.started_at,
            user_canceled_at=purchase.user_canceled_at,
            expires_at=purchase.expires_at,
        )

    def to_domain(self) -> PlayStorePurchase:
        return _build("PlayStorePurchase", PlayStorePurchase, **dict(self))


# ============================================================================
# Subscription
# ============================================================================

_PURCHASE_FIELDS = ("free_purchase", "app_store_purchase", "play_store_purchase")


class SubscriptionWire(WireModel):
    """
    Subscription with one nested object per gateway the user has used.

    A purchase key is omitted entirely for gateways never used; a key present
    with null is rejected.
    """

    user_id: StrictStr = Field(min_length=1)
    gateway: Gateway
    free_purchase: FreePurchaseWire | None = None
    app_store_purchase: AppStorePurchaseWire | None = None
    play_store_purchase: PlayStorePurchaseWire | None = None
    created_at: Timestamp
    updated_at: Timestamp

    @field_validator(*_PURCHASE_FIELDS, mode="before")
    @classmethod
    def reject_null_purchase(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("must be omitted rather than null")
        return v

    @classmethod
    def from_domain(cls, subscription: Subscription) -> "SubscriptionWire":
        free = subscription.free_purchase
        app_store = subscription.app_store_purchase
        play_store = subscription.play_store_purchase
        values: dict[str, Any] = {
            "user_id": subscription.user_id,
            "gateway": subscription.gateway,
            "created_at": subscription.created_at,
            "updated_at": subscription.updated_at,
        }
        if free is not None:
            values["free_purchase"] = FreePurchaseWire.from_domain(free)
        if app_store is not None:
            values["app_store_purchase"] = AppStorePurchaseWire.from_domain(app_store)
        if play_store is not None:
            values["play_store_purchase"] = PlayStorePurchaseWire.from_domain(play_store)
        return cls(**values)

    def dump(self) -> dict[str, Any]:
        unset = {name for name in _PURCHASE_FIELDS if getattr(self, name) is None}
        return self.model_dump(by_alias=True, mode="json", exclude=unset)

    def to_domain(self) -> Subscription:
        return _build(
            "Subscription",
            Subscription,
            user_id=self.user_id,
            gateway=self.gateway,
            free_purchase=self.free_purchase.to_domain() if self.free_purchase else None,
            app_store_purchase=(
                self.app_store_purchase.to_domain() if self.app_store_purchase else None
            ),
            play_store_purchase=(
                self.play_store_purchase.to_domain() if self.play_store_purchase else None
            ),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def _build(entity: str, factory: Any, **values: Any) -> Any:
    """Construct a domain object, reporting contract violations as bad wire data."""
    try:
        return factory(**values)
    except MalformedWireDataError:
        raise
    except BillingError as exc:
        raise MalformedWireDataError(entity, exc.message, [exc.to_dict()]) from exc


_PURCHASE_WIRE_MODELS: dict[PaymentGateway, type[WireModel]] = {
    PaymentGateway.FREE: FreePurchaseWire,
    PaymentGateway.APP_STORE: AppStorePurchaseWire,
    PaymentGateway.PLAY_STORE: PlayStorePurchaseWire,
}


def decode_purchase(gateway: PaymentGateway, data: Any) -> BasePurchase:
    """
    Decode a purchase payload produced by ``gateway``.

    Raises:
        UnimplementedGatewayError: If no purchase shape exists for ``gateway``
        MalformedWireDataError: If the payload does not match that shape
    """
    model = _PURCHASE_WIRE_MODELS.get(gateway)
    if model is None:
        raise UnimplementedGatewayError(gateway, "decode_purchase")
    return decode(model, data).to_domain()  # type: ignore[attr-defined,no-any-return]
