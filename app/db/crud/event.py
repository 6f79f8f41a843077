"""
Functions for managing events, registrations, attendance and meeting penalty configuration.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from app.db.crud.common import apply_changes, naive_utc, paginate
from app.db.models import Event, EventRegistration, MeetingPenaltyConfig, utcnow
from app.models.event import (
    AttendanceStatus,
    EventCreate,
    EventModify,
    EventStatus,
    EventType,
    PenaltyConfigModify,
    RegistrationPaymentStatus,
)

_DATE_FIELDS = ("start_date", "end_date", "registration_deadline")


def get_event(db: Session, event_id: int) -> Optional[Event]:
    return db.query(Event).filter(Event.id == event_id).first()


def get_events(
    db: Session,
    page: int = 1,
    limit: int = 10,
    status: Optional[EventStatus] = None,
    event_type: Optional[EventType] = None,
    search: Optional[str] = None,
    visible_statuses: Optional[Iterable[EventStatus]] = None,
) -> Tuple[List[Event], int]:
    query = db.query(Event)
    if visible_statuses is not None:
        query = query.filter(Event.status.in_(list(visible_statuses)))
    if status:
        query = query.filter(Event.status == status)
    if event_type:
        query = query.filter(Event.event_type == event_type)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Event.title.ilike(pattern), Event.description.ilike(pattern)))
    return paginate(query.order_by(Event.start_date.desc(), Event.id.desc()), page, limit)


def create_event(db: Session, event: EventCreate, created_by: Optional[int]) -> Event:
    data = event.model_dump()
    for field in _DATE_FIELDS:
        data[field] = naive_utc(data.get(field))
    dbevent = Event(**data, created_by=created_by)
    db.add(dbevent)
    db.commit()
    db.refresh(dbevent)
    return dbevent


def update_event(db: Session, dbevent: Event, modify: EventModify) -> Event:
    data = modify.model_dump(exclude_unset=True)
    for field in _DATE_FIELDS:
        if field in data:
            data[field] = naive_utc(data[field])
    apply_changes(dbevent, data)
    if dbevent.end_date < dbevent.start_date:
        db.rollback()
        raise ValueError("End date must be after start date")
    db.commit()
    db.refresh(dbevent)
    return dbevent


def set_event_status(db: Session, dbevent: Event, status: EventStatus) -> Event:
    dbevent.status = status
    db.commit()
    db.refresh(dbevent)
    return dbevent


def remove_event(db: Session, dbevent: Event) -> None:
    db.delete(dbevent)
    db.commit()


def get_registration(db: Session, event_id: int, user_id: int) -> Optional[EventRegistration]:
    return (
        db.query(EventRegistration)
        .filter(EventRegistration.event_id == event_id, EventRegistration.user_id == user_id)
        .first()
    )


def count_registrations(db: Session, event_id: int) -> int:
    return db.query(EventRegistration).filter(EventRegistration.event_id == event_id).count()


def get_registration_counts(db: Session, event_ids: List[int]) -> Dict[int, int]:
    if not event_ids:
        return {}
    rows = (
        db.query(EventRegistration.event_id, func.count(EventRegistration.id))
        .filter(EventRegistration.event_id.in_(event_ids))
        .group_by(EventRegistration.event_id)
        .all()
    )
    return dict(rows)


def get_registered_event_ids(db: Session, user_id: int, event_ids: List[int]) -> set:
    if not event_ids:
        return set()
    rows = (
        db.query(EventRegistration.event_id)
        .filter(EventRegistration.user_id == user_id, EventRegistration.event_id.in_(event_ids))
        .all()
    )
    return {row[0] for row in rows}


def get_user_registrations(
    db: Session, user_id: int, page: int = 1, limit: int = 10
) -> Tuple[List[EventRegistration], int]:
    query = (
        db.query(EventRegistration)
        .options(joinedload(EventRegistration.event))
        .filter(EventRegistration.user_id == user_id)
        .order_by(EventRegistration.registered_at.desc(), EventRegistration.id.desc())
    )
    return paginate(query, page, limit)


def create_registration(db: Session, dbevent: Event, user_id: int) -> EventRegistration:
    payment_status = (
        RegistrationPaymentStatus.pending if dbevent.requires_payment else RegistrationPaymentStatus.not_required
    )
    registration = EventRegistration(
        event_id=dbevent.id,
        user_id=user_id,
        payment_status=payment_status,
        attendance_status=AttendanceStatus.registered,
        registered_at=utcnow(),
    )
    db.add(registration)
    db.commit()
    db.refresh(registration)
    return registration


def remove_registration(db: Session, registration: EventRegistration) -> None:
    db.delete(registration)
    db.commit()


def update_attendance(
    db: Session, registration: EventRegistration, attendance_status: AttendanceStatus
) -> EventRegistration:
    registration.attendance_status = attendance_status
    db.commit()
    db.refresh(registration)
    return registration


def update_registration_payment(
    db: Session,
    registration: EventRegistration,
    payment_status: RegistrationPaymentStatus,
    payment_reference: Optional[str] = None,
) -> EventRegistration:
    registration.payment_status = payment_status
    if payment_reference is not None:
        registration.payment_reference = payment_reference
    db.commit()
    db.refresh(registration)
    return registration


def get_event_attendees(db: Session, event_id: int) -> List[EventRegistration]:
    return (
        db.query(EventRegistration)
        .options(joinedload(EventRegistration.user))
        .filter(EventRegistration.event_id == event_id)
        .order_by(EventRegistration.registered_at.asc(), EventRegistration.id.asc())
        .all()
    )


def get_event_stats(db: Session, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    by_status = {status.value: 0 for status in EventStatus}
    for status, count in db.query(Event.status, func.count(Event.id)).group_by(Event.status).all():
        by_status[status.value] = count
    by_type = {event_type.value: 0 for event_type in EventType}
    for event_type, count in db.query(Event.event_type, func.count(Event.id)).group_by(Event.event_type).all():
        by_type[event_type.value] = count
    upcoming = count_upcoming_events(db, now)
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "by_type": by_type,
        "upcoming": upcoming,
        "total_registrations": db.query(EventRegistration).count(),
    }


def count_upcoming_events(db: Session, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    return db.query(Event).filter(Event.start_date > now, Event.status == EventStatus.published).count()


def get_upcoming_events(db: Session, limit: int = 5, now: Optional[datetime] = None) -> List[Event]:
    now = now or utcnow()
    return (
        db.query(Event)
        .filter(Event.start_date > now, Event.status == EventStatus.published)
        .order_by(Event.start_date.asc())
        .limit(limit)
        .all()
    )


def get_penalty_config(db: Session, year: int) -> Optional[MeetingPenaltyConfig]:
    return db.query(MeetingPenaltyConfig).filter(MeetingPenaltyConfig.year == year).first()


def upsert_penalty_config(
    db: Session, year: int, config: PenaltyConfigModify, user_id: Optional[int]
) -> MeetingPenaltyConfig:
    dbconfig = get_penalty_config(db, year)
    if dbconfig is None:
        dbconfig = MeetingPenaltyConfig(year=year, created_by=user_id)
        db.add(dbconfig)
    payload = config.model_dump(mode="json")
    dbconfig.is_active = payload["is_active"]
    dbconfig.penalty_rules = payload["penalty_rules"]
    dbconfig.default_penalty = payload["default_penalty"]
    db.commit()
    db.refresh(dbconfig)
    return dbconfig


def get_meeting_attendance_counts(db: Session, year: int) -> Tuple[int, Dict[int, int]]:
    """
    Counts the year's meeting-type events and how many of them each user attended.

    Returns:
        Tuple[int, Dict[int, int]]: total meetings and ``{user_id: attended}``.
    """
    start = datetime(year, 1, 1)
    end = datetime(year + 1, 1, 1)
    meeting_filter = (
        Event.event_type == EventType.meetings,
        Event.start_date >= start,
        Event.start_date < end,
        Event.status != EventStatus.cancelled,
    )
    total_meetings = db.query(Event).filter(*meeting_filter).count()
    rows = (
        db.query(EventRegistration.user_id, func.count(EventRegistration.id))
        .join(Event, Event.id == EventRegistration.event_id)
        .filter(*meeting_filter, EventRegistration.attendance_status == AttendanceStatus.attended)
        .group_by(EventRegistration.user_id)
        .all()
    )
    return total_meetings, dict(rows)
