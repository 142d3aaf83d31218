"""Subscription domain errors

Configuration errors are raised before anything is persisted and map to
HTTP 400. Lifecycle errors map to HTTP 409. Neither is retried.
"""

from typing import Optional


class SubscriptionError(Exception):
    """Base class for all subscription domain errors"""

    status_code = 400
    code = "subscription_error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        return {"code": self.code, "field": self.field}


# ============================================================================
# CONFIGURATION ERRORS
# ============================================================================


class SubscriptionConfigError(SubscriptionError):
    code = "invalid_config"


class EmptyItemsError(SubscriptionConfigError):
    code = "empty_items"

    def __init__(self):
        super().__init__("Please add at least one item to the subscription", field="items")


class InvalidItemError(SubscriptionConfigError):
    code = "invalid_item"

    def __init__(self, index: int, reason: str):
        super().__init__(f"Item {index + 1}: {reason}", field=f"items[{index}]")
        self.index = index


class InvalidFrequencyError(SubscriptionConfigError):
    code = "invalid_frequency"

    def __init__(self, value):
        super().__init__(
            f"Frequency must be one of daily, weekly, monthly (got {value!r})",
            field="frequency",
        )


class MissingAddressError(SubscriptionConfigError):
    code = "missing_address"

    def __init__(self):
        super().__init__("Please select a delivery address", field="deliveryAddressId")


class InvalidTimeError(SubscriptionConfigError):
    code = "invalid_time"

    def __init__(self, reason: str):
        super().__init__(f"Delivery time is invalid: {reason}", field="deliveryTime")


class MissingDeliveryDaysError(SubscriptionConfigError):
    code = "missing_delivery_days"

    def __init__(self, reason: str = "select at least one delivery day"):
        super().__init__(f"Weekly subscriptions need delivery days: {reason}", field="deliveryDays")


class InvalidDeliveryDateError(SubscriptionConfigError):
    code = "invalid_delivery_date"

    def __init__(self, value):
        super().__init__(
            f"Monthly delivery date must be between 1 and 31 (got {value!r})",
            field="deliveryDate",
        )


class InvalidPaymentMethodError(SubscriptionConfigError):
    code = "invalid_payment_method"

    def __init__(self, value):
        super().__init__(
            f"Payment method must be one of wallet, cod, card, upi (got {value!r})",
            field="paymentMethod",
        )


# ============================================================================
# LIFECYCLE ERRORS
# ============================================================================


class SubscriptionTransitionError(SubscriptionError):
    status_code = 409
    code = "invalid_transition"

    def __init__(self, message: str):
        super().__init__(message, field="status")


class AlreadyCancelledError(SubscriptionTransitionError):
    code = "already_cancelled"

    def __init__(self):
        super().__init__("Subscription is already cancelled")


class NotPausedError(SubscriptionTransitionError):
    code = "not_paused"

    def __init__(self):
        super().__init__("Only paused subscriptions can be resumed")


class AlreadyPausedError(SubscriptionTransitionError):
    code = "already_paused"

    def __init__(self):
        super().__init__("Subscription is already paused")
