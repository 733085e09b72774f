"""
Purchase Models - Immutable purchase records, one shape per payment gateway.

Every record satisfies the BasePurchase contract so subscription lifecycle
facts (expired, ended, renewing, grace period, trial eligibility) are derived
the same way whichever gateway produced the data.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import IntEnum
from typing import Any, ClassVar

from billing.dates import ensure_utc, normalize_timestamps, utc_now
from billing.exceptions import InvalidArgumentError
from billing.models.gateway import PaymentGateway


class AutoRenewStatus(IntEnum):
    """App Store auto-renew status."""

    OFF = 0
    ON = 1


class ExpirationIntent(IntEnum):
    """App Store reason for a subscription expiration."""

    CANCELLED_BY_CUSTOMER = 1
    BILLING_ERROR = 2
    PRICE_INCREASE_DECLINED = 3
    PRODUCT_UNAVAILABLE = 4
    UNKNOWN = 5


class CancelReason(IntEnum):
    """Play Store reason a subscription was canceled or is not auto-renewing."""

    USER_CANCELED = 0
    SYSTEM_CANCELED = 1  # e.g. billing problem
    REPLACED = 2  # replaced with a new subscription
    DEVELOPER_CANCELED = 3


class PaymentState(IntEnum):
    """Play Store payment state."""

    PENDING = 0  # billing error, user must take action
    RECEIVED = 1
    FREE_TRIAL = 2


def _require(instance: object, *names: str) -> None:
    for name in names:
        value = getattr(instance, name)
        if value is None:
            raise InvalidArgumentError(name, value, "is required")
        if isinstance(value, str) and not value:
            raise InvalidArgumentError(name, value, "cannot be empty")


class BasePurchase(ABC):
    """
    Contract shared by all purchase records.

    Concrete records provide ``product_id``, ``is_free_trial_eligible``,
    ``will_auto_renew``, ``is_in_grace_period`` and ``expires_at``
    (None means the purchase never expires).
    """

    gateway: ClassVar[PaymentGateway]

    product_id: str
    is_free_trial_eligible: bool
    will_auto_renew: bool
    is_in_grace_period: bool
    expires_at: datetime | None

    def is_expired(self, now: datetime | None = None) -> bool:
        """
        Whether this purchase expired, i.e. ``expires_at`` is before ``now``.

        An expired purchase may still be in grace period or simply not yet
        refreshed with the latest gateway data; use ``is_ended`` to check
        whether it is no longer in effect.

        Args:
            now: Instant to evaluate at (defaults to the current UTC time)
        """
        if self.expires_at is None:
            return False
        current = utc_now() if now is None else ensure_utc(now)
        return current > self.expires_at

    def is_ended(self, now: datetime | None = None) -> bool:
        """Expired, not in grace period and not going to renew."""
        if not self.is_expired(now):
            return False
        if self.is_in_grace_period:
            return False
        if self.will_auto_renew:
            return False
        return True

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Wire form with camelCase keys."""


@dataclass(frozen=True)
class FreePurchase(BasePurchase):
    """
    Purchase given to the user for free.

    Provided by the free gateway; never expires.
    """

    gateway: ClassVar[PaymentGateway] = PaymentGateway.FREE

    product_id: str

    def __post_init__(self) -> None:
        _require(self, "product_id")

    @property
    def will_auto_renew(self) -> bool:  # type: ignore[override]
        return True

    @property
    def is_free_trial_eligible(self) -> bool:  # type: ignore[override]
        return True

    @property
    def is_in_grace_period(self) -> bool:  # type: ignore[override]
        return False

    @property
    def expires_at(self) -> datetime | None:  # type: ignore[override]
        return None

    @classmethod
    def from_dict(cls, data: Any) -> "FreePurchase":
        from billing.models import wire

        return wire.decode(wire.FreePurchaseWire, data).to_domain()

    def to_dict(self) -> dict[str, Any]:
        from billing.models import wire

        return wire.FreePurchaseWire.from_domain(self).dump()


@dataclass(frozen=True)
class AppStorePurchase(BasePurchase):
    """Purchase made through the Apple App Store."""

    gateway: ClassVar[PaymentGateway] = PaymentGateway.APP_STORE

    product_id: str
    # Unique identifier of this subscription across renewals
    original_transaction_id: str
    # Beginning of the subscription period, even after renewals
    original_purchased_at: datetime | None
    is_free_trial_eligible: bool
    expires_at: datetime | None
    # Set when store support cancelled the transaction; a cancelled receipt
    # counts as if no purchase had ever been made
    cancelled_at: datetime | None
    expiration_intent: int | None
    # Store is still trying to renew an expired subscription
    in_billing_retry_period: bool
    in_free_trial_period: bool
    auto_renew_status: int
    # Latest encoded receipt used to verify this purchase
    receipt: str

    def __post_init__(self) -> None:
        _require(
            self,
            "product_id",
            "original_transaction_id",
            "is_free_trial_eligible",
            "in_billing_retry_period",
            "in_free_trial_period",
            "auto_renew_status",
            "receipt",
        )
        normalize_timestamps(self, "original_purchased_at", "expires_at", "cancelled_at")

    @property
    def will_auto_renew(self) -> bool:  # type: ignore[override]
        return self.auto_renew_status == AutoRenewStatus.ON

    @property
    def is_in_grace_period(self) -> bool:  # type: ignore[override]
        return self.in_billing_retry_period

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled_at is not None

    @classmethod
    def from_dict(cls, data: Any) -> "AppStorePurchase":
        from billing.models import wire

        return wire.decode(wire.AppStorePurchaseWire, data).to_domain()

    def to_dict(self) -> dict[str, Any]:
        from billing.models import wire

        return wire.AppStorePurchaseWire.from_domain(self).dump()


@dataclass(frozen=True)
class PlayStorePurchase(BasePurchase):
    """Purchase made through the Google Play Store."""

    gateway: ClassVar[PaymentGateway] = PaymentGateway.PLAY_STORE

    product_id: str
    auto_renewing: bool
    cancel_reason: int
    # Application package the purchase originated from
    package_name: str
    # Current token; can be used to fetch fresh state of this purchase
    purchase_token: str
    # Previous tokens, oldest first
    purchase_token_history: tuple[str, ...] = field(compare=False)
    # Play extends expires_at automatically while payment is pending
    payment_state: int
    started_at: datetime | None
    # Only set when cancel_reason is USER_CANCELED
    user_canceled_at: datetime | None
    expires_at: datetime | None

    def __post_init__(self) -> None:
        _require(
            self,
            "product_id",
            "auto_renewing",
            "cancel_reason",
            "package_name",
            "purchase_token",
            "purchase_token_history",
            "payment_state",
        )
        object.__setattr__(self, "purchase_token_history", tuple(self.purchase_token_history))
        normalize_timestamps(self, "started_at", "user_canceled_at", "expires_at")

    # Android has no way to check trial eligibility; a user who purchased
    # once is assumed to have used their free trial.
    @property
    def is_free_trial_eligible(self) -> bool:  # type: ignore[override]
        return False

    @property
    def will_auto_renew(self) -> bool:  # type: ignore[override]
        return self.auto_renewing

    @property
    def is_in_grace_period(self) -> bool:  # type: ignore[override]
        return self.payment_state == PaymentState.PENDING

    @property
    def all_purchase_tokens(self) -> tuple[str, ...]:
        """Every token this purchase has had, oldest first."""
        return (*self.purchase_token_history, self.purchase_token)

    def copy_with(self, **changes: Any) -> "PlayStorePurchase":
        """
        Return a copy with the given fields replaced.

        Raises:
            InvalidArgumentError: For ``package_name`` or unknown fields
        """
        if "package_name" in changes:
            raise InvalidArgumentError("package_name", changes["package_name"], "cannot be changed")
        known = {f.name for f in fields(self)}
        for name in changes:
            if name not in known:
                raise InvalidArgumentError(name, changes[name], "unknown PlayStorePurchase field")
        return replace(self, **changes)

    def with_purchase_token(self, purchase_token: str) -> "PlayStorePurchase":
        """Rotate in a new token, moving the current one into the history."""
        if purchase_token == self.purchase_token:
            return self
        return self.copy_with(
            purchase_token=purchase_token,
            purchase_token_history=(*self.purchase_token_history, self.purchase_token),
        )

    def renewed_by(self, fresh: "PlayStorePurchase") -> "PlayStorePurchase":
        """
        ``fresh`` with the token history of this record carried over.

        Verification payloads usually omit the history, so it is rebuilt from
        this record: oldest first, without duplicates, and including this
        record's token when ``fresh`` replaced it.
        """
        rotated = self.with_purchase_token(fresh.purchase_token)
        history = [token for token in rotated.purchase_token_history if token != fresh.purchase_token]
        for token in fresh.purchase_token_history:
            if token != fresh.purchase_token and token not in history:
                history.append(token)
        return replace(fresh, purchase_token_history=tuple(history))

    @classmethod
    def from_dict(cls, data: Any) -> "PlayStorePurchase":
        from billing.models import wire

        return wire.decode(wire.PlayStorePurchaseWire, data).to_domain()

    def to_dict(self) -> dict[str, Any]:
        from billing.models import wire

        return wire.PlayStorePurchaseWire.from_domain(self).dump()
