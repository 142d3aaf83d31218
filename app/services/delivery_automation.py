"""
Automated roll-forward of subscription delivery dates
Moves the next delivery of active subscriptions onto the following slot once
the current slot has passed. Paused subscriptions are never resumed here.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..domain.subscriptions.repository import SubscriptionRepository
from ..domain.subscriptions.scheduler import roll_forward
from ..domain.subscriptions.service import schedule_of, store_now

logger = logging.getLogger(__name__)


def advance_due_deliveries(
    db: Session, now: Optional[datetime] = None, user_id: Optional[int] = None
) -> dict:
    """
    Advance every active subscription whose next delivery is due.
    Should be run as a scheduled job (e.g., every few minutes via cron)

    Returns:
        dict: Summary of subscriptions checked and advanced
    """
    now = now or store_now()
    summary = {"checked": 0, "advanced": 0}

    try:
        due = SubscriptionRepository.get_due_active_subscriptions(db, now, user_id)
        summary["checked"] = len(due)

        for subscription in due:
            previous = subscription.next_delivery_date
            subscription.next_delivery_date = roll_forward(schedule_of(subscription), previous, now)
            summary["advanced"] += 1
            logger.info(
                f"✅ Subscription {subscription.public_id} rolled forward: "
                f"{previous.isoformat()} → {subscription.next_delivery_date.isoformat()}"
            )

        if summary["advanced"] > 0:
            SubscriptionRepository.commit(db)
            logger.info(f"📊 Delivery automation summary: {summary}")
        else:
            logger.debug("ℹ️ No subscription deliveries due")

        return summary

    except Exception as e:
        logger.error(f"❌ Error advancing subscription deliveries: {str(e)}")
        db.rollback()
        raise
