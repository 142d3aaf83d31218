"""Subscription service - Business logic for recurring deliveries"""

import logging
from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import STORE_TIMEZONE
from ...models import Product, Subscription, SubscriptionItem, User
from .errors import AlreadyCancelledError
from .pricing import quote
from .repository import SubscriptionRepository
from .scheduler import (
    ActiveState,
    Cancel,
    CancelledState,
    LifecycleState,
    MonthlySchedule,
    Pause,
    PausedState,
    Resume,
    Schedule,
    SubscriptionConfig,
    WeeklySchedule,
    build_schedule,
    compute_next_delivery,
    describe_schedule,
    transition,
    upcoming_deliveries,
    validate_config,
)
from .schemas import (
    CancelRequest,
    DeliveryTimeOut,
    PauseRequest,
    SubscriptionCreate,
    SubscriptionItemResponse,
    SubscriptionPreviewResponse,
    SubscriptionResponse,
    SubscriptionUpdate,
)

logger = logging.getLogger(__name__)

PREVIEW_SLOTS = 5


def store_now() -> datetime:
    """Current wall-clock time in the store's timezone (naive, as stored in the DB)"""
    return datetime.now(ZoneInfo(STORE_TIMEZONE)).replace(tzinfo=None)


def to_store_time(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize client-supplied datetimes to naive store-local time"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(STORE_TIMEZONE)).replace(tzinfo=None)


# ============================================================================
# MODEL <-> SCHEDULER MAPPING
# ============================================================================


def schedule_of(subscription: Subscription) -> Schedule:
    """Rebuild the schedule variant from stored columns"""
    return build_schedule(
        subscription.frequency,
        {"hour": subscription.delivery_hour, "minute": subscription.delivery_minute},
        subscription.delivery_days,
        subscription.delivery_date,
    )


def schedule_columns(schedule: Schedule) -> dict:
    """Column values for a schedule; the field of the other frequency is cleared"""
    return {
        "frequency": schedule.frequency,
        "delivery_hour": schedule.time.hour,
        "delivery_minute": schedule.time.minute,
        "delivery_days": sorted(schedule.days) if isinstance(schedule, WeeklySchedule) else None,
        "delivery_date": schedule.day if isinstance(schedule, MonthlySchedule) else None,
    }


def state_of(subscription: Subscription) -> LifecycleState:
    if subscription.status == "cancelled":
        return CancelledState(
            cancelled_at=subscription.cancelled_at or subscription.updated_at,
            reason=subscription.cancellation_reason,
        )
    if subscription.status == "paused":
        return PausedState(
            next_delivery=subscription.next_delivery_date,
            paused_until=subscription.paused_until,
            reason=subscription.pause_reason,
        )
    return ActiveState(next_delivery=subscription.next_delivery_date)


def state_columns(state: LifecycleState) -> dict:
    if isinstance(state, CancelledState):
        return {
            "status": "cancelled",
            "cancelled_at": state.cancelled_at,
            "cancellation_reason": state.reason,
            "next_delivery_date": None,
            "paused_until": None,
        }
    if isinstance(state, PausedState):
        return {
            "status": "paused",
            "next_delivery_date": state.next_delivery,
            "paused_until": state.paused_until,
            "pause_reason": state.reason,
        }
    return {
        "status": "active",
        "next_delivery_date": state.next_delivery,
        "paused_until": None,
        "pause_reason": None,
    }


def to_response(subscription: Subscription) -> SubscriptionResponse:
    """Serialize a subscription for the storefront"""
    schedule = schedule_of(subscription)
    items = [
        SubscriptionItemResponse(
            productId=item.product.public_id if item.product else str(item.product_id),
            name=item.product.name if item.product else None,
            quantity=item.quantity,
            price=item.price,
            lineTotal=round(item.price * item.quantity, 2),
        )
        for item in subscription.items
    ]
    is_paused = subscription.status == "paused"
    return SubscriptionResponse(
        id=subscription.public_id,
        status=subscription.status,
        frequency=subscription.frequency,
        schedule=describe_schedule(schedule),
        deliveryTime=DeliveryTimeOut(
            hour=subscription.delivery_hour, minute=subscription.delivery_minute
        ),
        deliveryDays=subscription.delivery_days,
        deliveryDate=subscription.delivery_date,
        nextDeliveryDate=subscription.next_delivery_date,
        pausedUntil=subscription.paused_until if is_paused else None,
        pauseReason=subscription.pause_reason if is_paused else None,
        cancelledAt=subscription.cancelled_at,
        cancellationReason=subscription.cancellation_reason,
        deliveryAddressId=subscription.address.public_id if subscription.address else "",
        paymentMethod=subscription.payment_method,
        customerNotes=subscription.customer_notes,
        startDate=subscription.start_date,
        items=items,
        totalAmount=subscription.total_amount,
        deliveryFee=subscription.delivery_fee,
        estimatedTotal=round(subscription.total_amount + subscription.delivery_fee, 2),
        createdAt=subscription.created_at,
        updatedAt=subscription.updated_at,
    )


# ============================================================================
# SERVICE
# ============================================================================


class SubscriptionService:
    """Service layer for subscription business logic"""

    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.repo = SubscriptionRepository()
        self.now = clock or store_now

    def _resolve_products(self, config: SubscriptionConfig) -> list[tuple[Product, int]]:
        """Look up each requested product; unknown or unavailable products are rejected"""
        products = self.repo.get_products_by_public_ids(
            self.db, [item.product_id for item in config.items]
        )
        resolved = []
        for item in config.items:
            product = products.get(item.product_id)
            if not product:
                raise HTTPException(status_code=404, detail=f"Product {item.product_id} not found")
            if not product.available:
                raise HTTPException(status_code=400, detail=f"Product {product.name} is unavailable")
            if item.quantity > product.stock:
                raise HTTPException(
                    status_code=400,
                    detail=f"Only {product.stock} items of {product.name} available in stock",
                )
            resolved.append((product, item.quantity))
        return resolved

    def _reference_time(self, start_date: Optional[datetime]) -> datetime:
        now = self.now()
        if start_date and start_date > now:
            return start_date
        return now

    def get_subscriptions(self, user: User, status: Optional[str] = None) -> list[Subscription]:
        """Get all subscriptions for a user, optionally filtered by status"""
        return self.repo.get_subscriptions(self.db, user.id, status)

    def get_subscription(self, subscription_id: str, user: User) -> Subscription:
        """Get a specific subscription"""
        subscription = self.repo.get_subscription_by_public_id(self.db, subscription_id, user.id)
        if not subscription:
            raise HTTPException(status_code=404, detail="Subscription not found")
        return subscription

    def preview_subscription(self, data: SubscriptionCreate, user: User) -> SubscriptionPreviewResponse:
        """Validate a config and compute its schedule and price without saving it"""
        config = validate_config(data)
        resolved = self._resolve_products(config)
        price = quote((product.price, quantity) for product, quantity in resolved)

        reference = self._reference_time(to_store_time(config.start_date))
        slots = upcoming_deliveries(config.schedule, reference, PREVIEW_SLOTS)

        return SubscriptionPreviewResponse(
            frequency=config.frequency,
            schedule=describe_schedule(config.schedule),
            nextDeliveryDate=slots[0],
            upcomingDeliveries=slots,
            subtotal=price.subtotal,
            deliveryFee=price.delivery_fee,
            total=price.total,
        )

    def create_subscription(self, data: SubscriptionCreate, user: User) -> Subscription:
        """Create a new subscription with validation"""
        logger.info(f"📥 Creating subscription for user_id: {user.id}")

        config = validate_config(data)

        address = self.repo.get_address_for_user(self.db, config.delivery_address_id, user.id)
        if not address:
            raise HTTPException(status_code=404, detail="Delivery address not found")

        resolved = self._resolve_products(config)
        items = [
            SubscriptionItem(
                product_id=product.id,
                position=position,
                quantity=quantity,
                price=product.price,
            )
            for position, (product, quantity) in enumerate(resolved)
        ]
        price = quote((item.price, item.quantity) for item in items)

        start_date = to_store_time(config.start_date)
        next_delivery = compute_next_delivery(config.schedule, self._reference_time(start_date))

        subscription = self.repo.create_subscription(
            self.db,
            items,
            user_id=user.id,
            address_id=address.id,
            payment_method=config.payment_method,
            customer_notes=config.customer_notes,
            start_date=start_date,
            status="active",
            next_delivery_date=next_delivery,
            total_amount=price.subtotal,
            delivery_fee=price.delivery_fee,
            **schedule_columns(config.schedule),
        )

        logger.info(
            f"✅ Created subscription {subscription.public_id} for user {user.id}: "
            f"{describe_schedule(config.schedule)}, next delivery {next_delivery.isoformat()}"
        )
        return subscription

    def update_subscription(
        self, subscription_id: str, data: SubscriptionUpdate, user: User
    ) -> Subscription:
        """Change the schedule of a subscription; the merged schedule is revalidated"""
        subscription = self.get_subscription(subscription_id, user)
        if subscription.status == "cancelled":
            raise AlreadyCancelledError()

        delivery_time = data.deliveryTime
        if delivery_time is None:
            delivery_time = {
                "hour": subscription.delivery_hour,
                "minute": subscription.delivery_minute,
            }

        schedule = build_schedule(
            data.frequency or subscription.frequency,
            delivery_time,
            data.deliveryDays if data.deliveryDays is not None else subscription.delivery_days,
            data.deliveryDate if data.deliveryDate is not None else subscription.delivery_date,
        )

        updates = schedule_columns(schedule)
        updates["next_delivery_date"] = compute_next_delivery(
            schedule, self._reference_time(subscription.start_date)
        )
        if data.customerNotes is not None:
            updates["customer_notes"] = data.customerNotes.strip() or None

        subscription = self.repo.update_subscription(self.db, subscription, **updates)
        logger.info(
            f"✅ Updated subscription {subscription.public_id}: {describe_schedule(schedule)}"
        )
        return subscription

    def _apply(self, subscription: Subscription, action) -> Subscription:
        previous = subscription.status
        # Resumed deliveries never land before the start date
        if isinstance(action, Resume):
            reference = self._reference_time(subscription.start_date)
        else:
            reference = self.now()
        new_state = transition(state_of(subscription), action, schedule_of(subscription), reference)
        subscription = self.repo.update_subscription(
            self.db, subscription, **state_columns(new_state)
        )
        logger.info(
            f"✅ Subscription {subscription.public_id} transitioned: {previous} → {new_state.status}"
        )
        return subscription

    def pause_subscription(
        self, subscription_id: str, data: Optional[PauseRequest], user: User
    ) -> Subscription:
        """Pause an active subscription, optionally recording when the user plans to resume"""
        subscription = self.get_subscription(subscription_id, user)
        if data is None:
            return self._apply(subscription, Pause())
        return self._apply(
            subscription,
            Pause(reason=data.reason, resume_date=to_store_time(data.resumeDate)),
        )

    def resume_subscription(self, subscription_id: str, user: User) -> Subscription:
        """Resume a paused subscription; the next delivery is recomputed from now (or the start date)"""
        subscription = self.get_subscription(subscription_id, user)
        return self._apply(subscription, Resume())

    def cancel_subscription(
        self, subscription_id: str, data: Optional[CancelRequest], user: User
    ) -> Subscription:
        """Cancel a subscription (terminal)"""
        subscription = self.get_subscription(subscription_id, user)
        reason = data.reason if data else None
        return self._apply(subscription, Cancel(reason=reason))
