"""
Payment gateway enumeration.
"""

from enum import Enum

from billing.exceptions import InvalidArgumentError


class PaymentGateway(str, Enum):
    """Gateway used to make payments."""

    FREE = "free"  # Built-in gateway providing "free" purchases
    APP_STORE = "appStore"  # Apple App Store
    PLAY_STORE = "playStore"  # Google Play Store

    @classmethod
    def parse(cls, value: object) -> "PaymentGateway":
        """
        Map a wire value to its gateway.

        Raises:
            InvalidArgumentError: If the value is not a known gateway
        """
        if isinstance(value, cls):
            return value
        for gateway in cls:
            if gateway.value == value:
                return gateway
        raise InvalidArgumentError("gateway", value, "Invalid payment gateway")

    def __str__(self) -> str:
        return self.value
