import threading

from sqlalchemy.exc import SQLAlchemyError

from app.db import GetDB, crud
from app.runtime import logger

_election_status_lock = threading.Lock()


def sync_election_statuses():
    """Move elections along upcoming -> ongoing -> completed as their dates pass."""
    if not _election_status_lock.acquire(blocking=False):
        logger.debug("Election status job skipped because a previous run is still in progress")
        return
    try:
        with GetDB() as db:
            try:
                changed = crud.sync_election_statuses(db)
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Election status sync failed: {e}")
                return
        if changed:
            logger.info(f"Election status sync updated {changed} elections")
    finally:
        _election_status_lock.release()
