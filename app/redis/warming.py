"""
Pre-populates the hot read caches. Runs in-process with its own database session.
"""

import logging
import threading
import time
from typing import Dict

from sqlalchemy.exc import SQLAlchemyError

from app.redis.client import get_redis

logger = logging.getLogger(__name__)


def warm_cache() -> Dict[str, bool]:
    """Recompute every warmable entry; returns ``{key: stored}``."""
    if not get_redis():
        logger.info("Redis not available, skipping cache warmup")
        return {}

    from app.db import GetDB
    from app.services.due_service import DueService
    from app.services.payment_service import PaymentService
    from app.services.pharmacy_service import PharmacyService

    logger.info("Starting cache warmup...")
    outcomes: Dict[str, bool] = {}
    with GetDB() as db:
        for service in (DueService, PharmacyService, PaymentService):
            try:
                outcomes.update(service.warm(db))
            except SQLAlchemyError as e:
                db.rollback()
                logger.warning(f"{service.__name__} cache warmup failed: {e}")

    warmed = sum(1 for stored in outcomes.values() if stored)
    logger.info(f"Cache warmup completed: {warmed}/{len(outcomes)} entries cached")
    return outcomes


def start_cache_warming(delay: int = 0) -> threading.Thread:
    """Run ``warm_cache`` in a daemon thread after ``delay`` seconds."""

    def warmup_caches_async():
        if delay:
            time.sleep(delay)
        try:
            warm_cache()
        except Exception as e:
            logger.warning(f"Failed to warm up caches: {e}", exc_info=True)

    warmup_thread = threading.Thread(target=warmup_caches_async, daemon=True, name="cache-warmup")
    warmup_thread.start()
    return warmup_thread
