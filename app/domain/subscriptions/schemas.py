"""Subscription domain schemas - Pydantic models for the wire format

Request models only check shapes and types. The scheduling rules
(frequency-specific fields, ranges) live in scheduler.validate_config so
each violation is reported with its own error code.
"""

from datetime import datetime
from typing import Generic, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, Field, field_validator

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope used by every storefront endpoint"""

    success: bool = True
    message: str = ""
    data: Optional[T] = None


class DeliveryTimeIn(BaseModel):
    hour: Optional[int] = None
    minute: Optional[int] = None


class SubscriptionItemIn(BaseModel):
    productId: Optional[str] = None
    quantity: Optional[int] = None


class SubscriptionCreate(BaseModel):
    """Schema for creating a subscription"""

    items: list[SubscriptionItemIn] = Field(default_factory=list)
    frequency: Optional[str] = None
    deliveryTime: Optional[DeliveryTimeIn] = None
    deliveryDays: Optional[list[int]] = None  # weekly only, Sunday=0
    deliveryDate: Optional[int] = None  # monthly only
    deliveryAddressId: Optional[str] = None
    paymentMethod: Optional[str] = "wallet"
    customerNotes: Optional[str] = None
    startDate: Optional[datetime] = None

    @field_validator("customerNotes")
    @classmethod
    def strip_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None


class SubscriptionUpdate(BaseModel):
    """Schema for changing the schedule of an existing subscription"""

    frequency: Optional[str] = None
    deliveryTime: Optional[DeliveryTimeIn] = None
    deliveryDays: Optional[list[int]] = None
    deliveryDate: Optional[int] = None
    customerNotes: Optional[str] = None


class PauseRequest(BaseModel):
    """Schema for pausing a subscription"""

    reason: Optional[str] = None
    # The storefront client sends the resume date as "pausedUntil"
    resumeDate: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("resumeDate", "pausedUntil")
    )


class CancelRequest(BaseModel):
    """Schema for cancelling a subscription"""

    reason: Optional[str] = None


class DeliveryTimeOut(BaseModel):
    hour: int
    minute: int


class SubscriptionItemResponse(BaseModel):
    productId: str
    name: Optional[str] = None
    quantity: int
    price: float
    lineTotal: float


class SubscriptionResponse(BaseModel):
    """Schema for subscription response"""

    id: str
    status: str
    frequency: str
    schedule: str
    deliveryTime: DeliveryTimeOut
    deliveryDays: Optional[list[int]] = None
    deliveryDate: Optional[int] = None
    nextDeliveryDate: Optional[datetime] = None
    pausedUntil: Optional[datetime] = None
    pauseReason: Optional[str] = None
    cancelledAt: Optional[datetime] = None
    cancellationReason: Optional[str] = None
    deliveryAddressId: str
    paymentMethod: str
    customerNotes: Optional[str] = None
    startDate: Optional[datetime] = None
    items: list[SubscriptionItemResponse]
    totalAmount: float
    deliveryFee: float
    estimatedTotal: float
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class SubscriptionPreviewResponse(BaseModel):
    """Schedule and price for a config that has not been saved"""

    frequency: str
    schedule: str
    nextDeliveryDate: datetime
    upcomingDeliveries: list[datetime]
    subtotal: float
    deliveryFee: float
    total: float


class DeliveryAutomationResult(BaseModel):
    checked: int
    advanced: int
