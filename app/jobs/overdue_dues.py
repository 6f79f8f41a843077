import threading

from sqlalchemy.exc import SQLAlchemyError

from app.db import GetDB, crud
from app.redis.invalidation import invalidate_dues
from app.runtime import logger

_overdue_lock = threading.Lock()


def mark_overdue_dues():
    if not _overdue_lock.acquire(blocking=False):
        logger.debug("Overdue dues job skipped because a previous run is still in progress")
        return
    try:
        with GetDB() as db:
            try:
                updated = crud.mark_overdue_dues(db)
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Marking overdue dues failed: {e}")
                return
        if updated:
            invalidate_dues()
            logger.info(f"{updated} dues marked as overdue")
    finally:
        _overdue_lock.release()
