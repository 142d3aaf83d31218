"""Subscription repository - Database operations for subscriptions"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Address, Product, Subscription, SubscriptionItem


class SubscriptionRepository:
    """Repository for subscription database operations"""

    @staticmethod
    def get_subscriptions(db: Session, user_id: int, status: Optional[str] = None) -> list[Subscription]:
        """Get all subscriptions for a user, newest first"""
        query = (
            db.query(Subscription)
            .options(joinedload(Subscription.items).joinedload(SubscriptionItem.product))
            .filter(Subscription.user_id == user_id)
        )

        if status and status != "all":
            query = query.filter(Subscription.status == status)

        return query.order_by(Subscription.created_at.desc(), Subscription.id.desc()).all()

    @staticmethod
    def get_subscription_by_public_id(
        db: Session, public_id: str, user_id: int
    ) -> Optional[Subscription]:
        """Get a specific subscription owned by the user"""
        return (
            db.query(Subscription)
            .options(joinedload(Subscription.items).joinedload(SubscriptionItem.product))
            .filter(Subscription.public_id == public_id, Subscription.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_due_active_subscriptions(
        db: Session, now: datetime, user_id: Optional[int] = None
    ) -> list[Subscription]:
        """Active subscriptions whose next delivery slot is not in the future"""
        query = db.query(Subscription).filter(
            Subscription.status == "active",
            Subscription.next_delivery_date.isnot(None),
            Subscription.next_delivery_date <= now,
        )
        if user_id is not None:
            query = query.filter(Subscription.user_id == user_id)
        return query.all()

    @staticmethod
    def get_address_for_user(db: Session, public_id: str, user_id: int) -> Optional[Address]:
        """Get an address by public ID, only if the user owns it"""
        return (
            db.query(Address)
            .filter(Address.public_id == public_id, Address.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_products_by_public_ids(db: Session, public_ids: list[str]) -> dict[str, Product]:
        """Fetch products keyed by public ID"""
        if not public_ids:
            return {}
        products = db.query(Product).filter(Product.public_id.in_(public_ids)).all()
        return {p.public_id: p for p in products}

    @staticmethod
    def create_subscription(db: Session, items: list[SubscriptionItem], **subscription_data) -> Subscription:
        """Create a subscription together with its items"""
        subscription = Subscription(**subscription_data)
        subscription.items = items
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
        return subscription

    @staticmethod
    def update_subscription(db: Session, subscription: Subscription, **updates) -> Subscription:
        """
        Update a subscription with the provided fields.

        Unlike partial form updates, None is written through: lifecycle
        changes need to clear fields such as paused_until.
        """
        for key, value in updates.items():
            if hasattr(subscription, key):
                setattr(subscription, key, value)

        db.commit()
        db.refresh(subscription)
        return subscription

    @staticmethod
    def commit(db: Session) -> None:
        db.commit()
