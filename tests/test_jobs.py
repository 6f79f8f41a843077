from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler

from app.db import crud
from app.db.models import Due, Election, UserNotification, utcnow
from app.jobs import delete_expired_notifications, mark_overdue_dues, register_scheduler_jobs, sync_election_statuses
from app.models.due import DuePaymentStatus
from app.models.election import ElectionStatus
from app.models.notification import NotificationType
from tests.conftest import TestingSessionLocal, create_due, create_due_type, create_pharmacy


def test_register_scheduler_jobs():
    scheduler = BackgroundScheduler(timezone="UTC")
    register_scheduler_jobs(scheduler)
    assert {job.id for job in scheduler.get_jobs()} == {
        "sync_election_statuses",
        "mark_overdue_dues",
        "delete_expired_notifications",
    }


def test_sync_election_statuses(user_ids):
    db = TestingSessionLocal()
    try:
        now = utcnow()
        election = Election(
            title="Stale status",
            description="Started yesterday",
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=1),
            status=ElectionStatus.upcoming,
            positions=[],
            created_by=user_ids["admin"],
        )
        db.add(election)
        db.commit()
        election_id = election.id
    finally:
        db.close()

    sync_election_statuses()

    db = TestingSessionLocal()
    try:
        assert db.get(Election, election_id).status == ElectionStatus.ongoing
    finally:
        db.close()


def test_mark_overdue_dues_job(treasurer_client):
    pharmacy = create_pharmacy(treasurer_client)
    due_type = create_due_type(treasurer_client)
    due = create_due(treasurer_client, pharmacy["id"], due_type["id"])

    db = TestingSessionLocal()
    try:
        # pretend the deadline passed after the due was created
        dbdue = db.get(Due, due["id"])
        dbdue.due_date = utcnow() - timedelta(days=1)
        db.commit()
    finally:
        db.close()

    mark_overdue_dues()

    db = TestingSessionLocal()
    try:
        assert db.get(Due, due["id"]).payment_status == DuePaymentStatus.overdue
    finally:
        db.close()


def test_delete_expired_notifications_job(user_ids):
    db = TestingSessionLocal()
    try:
        [notification] = crud.create_notifications(
            db,
            [user_ids["other_member"]],
            title="Stale",
            message="Expired an hour ago",
            notification_type=NotificationType.system,
            expires_at=utcnow() - timedelta(hours=1),
        )
        db.commit()
        notification_id = notification.id
    finally:
        db.close()

    delete_expired_notifications()

    db = TestingSessionLocal()
    try:
        assert db.get(UserNotification, notification_id) is None
    finally:
        db.close()
