"""
Subscription delivery background worker
Rolls passed delivery slots forward on a fixed interval
"""

import asyncio
import logging
import os

from ..database import SessionLocal
from ..services.delivery_automation import advance_due_deliveries

logger = logging.getLogger(__name__)

WORKER_INTERVAL_SECONDS = int(os.getenv("DELIVERY_WORKER_INTERVAL", "60"))


def run_once() -> dict:
    """Run a single roll-forward pass with its own session"""
    db = SessionLocal()
    try:
        return advance_due_deliveries(db)
    finally:
        db.close()


async def run_delivery_worker():
    """
    Main worker loop - runs every WORKER_INTERVAL_SECONDS
    """
    logger.info("🚀 Starting subscription delivery worker...")

    while True:
        try:
            await asyncio.to_thread(run_once)
            await asyncio.sleep(WORKER_INTERVAL_SECONDS)

        except Exception as e:
            logger.error(f"❌ Error in delivery worker loop: {e}")
            await asyncio.sleep(WORKER_INTERVAL_SECONDS)
