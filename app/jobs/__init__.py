from apscheduler.schedulers.base import BaseScheduler

from app.jobs.election_status import sync_election_statuses
from app.jobs.expired_notifications import delete_expired_notifications
from app.jobs.overdue_dues import mark_overdue_dues
from config import (
    JOB_ELECTION_STATUS_INTERVAL,
    JOB_EXPIRED_NOTIFICATIONS_INTERVAL,
    JOB_OVERDUE_DUES_INTERVAL,
)

JOBS = (
    (sync_election_statuses, JOB_ELECTION_STATUS_INTERVAL),
    (mark_overdue_dues, JOB_OVERDUE_DUES_INTERVAL),
    (delete_expired_notifications, JOB_EXPIRED_NOTIFICATIONS_INTERVAL),
)


def register_scheduler_jobs(scheduler: BaseScheduler) -> None:
    for job, interval in JOBS:
        scheduler.add_job(
            job,
            "interval",
            seconds=interval,
            id=job.__name__,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=interval,
            replace_existing=True,
        )


__all__ = ["register_scheduler_jobs", "sync_election_statuses", "mark_overdue_dues", "delete_expired_notifications"]
