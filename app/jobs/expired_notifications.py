import threading

from sqlalchemy.exc import SQLAlchemyError

from app.db import GetDB, crud
from app.runtime import logger

_cleanup_lock = threading.Lock()


def delete_expired_notifications():
    if not _cleanup_lock.acquire(blocking=False):
        logger.debug("Notification cleanup skipped because a previous run is still in progress")
        return
    try:
        with GetDB() as db:
            try:
                deleted = crud.delete_expired_notifications(db)
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Expired notification cleanup failed: {e}")
                return
        if deleted:
            logger.info(f"Deleted {deleted} expired notifications")
    finally:
        _cleanup_lock.release()
