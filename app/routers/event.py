from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.db import Session, crud, get_db
from app.db.models import Event, utcnow
from app.dependencies import get_dbevent
from app.models.audit import AuditAction
from app.models.event import (
    AttendanceModify,
    EventCreate,
    EventModify,
    EventResponse,
    EventsResponse,
    EventStats,
    EventStatus,
    EventType,
    MemberPenaltiesResponse,
    MyPenaltyResponse,
    MyRegistrationsResponse,
    PenaltyConfigModify,
    PenaltyConfigResponse,
    RegistrationPaymentModify,
    RegistrationPaymentStatus,
    RegistrationResponse,
)
from app.models.user import ADMIN_ROLES, CurrentUser, UserRole
from app.runtime import logger
from app.services.event_service import EventService
from app.utils import audit, responses

router = APIRouter(tags=["Event"], prefix="/api/events", responses={401: responses._401})

# what members get to see
MEMBER_VISIBLE_STATUSES = (EventStatus.published, EventStatus.completed, EventStatus.cancelled)
ATTENDANCE_ROLES = ADMIN_ROLES + (UserRole.secretary,)
EVENT_PAYMENT_ROLES = ADMIN_ROLES + (UserRole.treasurer,)


def _ensure_visible(dbevent: Event, user: CurrentUser) -> None:
    if not user.is_officer and dbevent.status not in MEMBER_VISIBLE_STATUSES:
        raise HTTPException(status_code=404, detail="Event not found")


def _get_registration_or_404(db: Session, event_id: int, user_id: int):
    registration = crud.get_registration(db, event_id, user_id)
    if not registration:
        raise HTTPException(status_code=404, detail="Registration not found")
    return registration


@router.get("", response_model=EventsResponse)
def get_events(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[EventStatus] = None,
    event_type: Optional[EventType] = Query(None, alias="type"),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    events, total = crud.get_events(
        db,
        page=page,
        limit=limit,
        status=status,
        event_type=event_type,
        search=search,
        visible_statuses=None if user.is_officer else MEMBER_VISIBLE_STATUSES,
    )
    return {
        "events": EventService.to_responses(db, events, user.id),
        "total": total,
        "page": page,
        "limit": limit,
    }


@router.post(
    "",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: responses._403},
)
def add_event(
    payload: EventCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_officer),
):
    dbevent = crud.create_event(db, payload, user.id)
    audit.record(db, AuditAction.create, "event", dbevent.id, user_id=user.id, request=request,
                 details={"title": dbevent.title})
    logger.info(f'Event "{dbevent.title}" created by "{user.email}"')
    return EventService.to_response(db, dbevent, user.id)


@router.get("/stats", response_model=EventStats, responses={403: responses._403})
def get_event_stats(db: Session = Depends(get_db), user: CurrentUser = Depends(CurrentUser.check_officer)):
    return crud.get_event_stats(db)


@router.get(
    "/penalty-config/{year}",
    response_model=PenaltyConfigResponse,
    responses={403: responses._403, 404: responses._404},
)
def get_penalty_config(year: int, db: Session = Depends(get_db), user: CurrentUser = Depends(CurrentUser.check_admin)):
    dbconfig = crud.get_penalty_config(db, year)
    if not dbconfig:
        raise HTTPException(status_code=404, detail=f"No penalty configuration for {year}")
    return dbconfig


@router.put("/penalty-config/{year}", response_model=PenaltyConfigResponse, responses={403: responses._403})
def modify_penalty_config(
    year: int,
    payload: PenaltyConfigModify,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    dbconfig = crud.upsert_penalty_config(db, year, payload, user.id)
    audit.record(db, AuditAction.update, "penalty_config", year, user_id=user.id, request=request,
                 details={"rules": len(payload.penalty_rules), "is_active": payload.is_active})
    return dbconfig


@router.get(
    "/penalties/{year}",
    response_model=MemberPenaltiesResponse,
    responses={400: responses._400, 403: responses._403, 404: responses._404},
)
def get_member_penalties(
    year: int,
    base_amount: float = Query(..., ge=0),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_officer),
):
    """Meeting attendance penalties for every active member in ``year``."""
    dbconfig = crud.get_penalty_config(db, year)
    if not dbconfig:
        raise HTTPException(status_code=404, detail=f"No penalty configuration for {year}")
    if not dbconfig.is_active:
        raise HTTPException(status_code=400, detail=f"Penalty configuration for {year} is not active")

    config = PenaltyConfigModify.model_validate(dbconfig, from_attributes=True)
    return EventService.member_penalties(db, year, config, base_amount)


@router.get("/my-registrations", response_model=MyRegistrationsResponse)
def get_my_registrations(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    if user.id is None:
        return {"registrations": [], "total": 0, "page": page, "limit": limit}

    registrations, total = crud.get_user_registrations(db, user.id, page=page, limit=limit)
    return {
        "registrations": EventService.to_my_registrations(registrations),
        "total": total,
        "page": page,
        "limit": limit,
    }


@router.get("/my-penalties", response_model=MyPenaltyResponse, responses={403: responses._403})
def get_my_penalty(
    year: Optional[int] = None,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    """The caller's meeting attendance and penalty, for the current year unless ``year`` is given."""
    user_id = user.ensure_account()
    return EventService.my_penalty(db, user_id, year or utcnow().year)


@router.get("/{event_id}", response_model=EventResponse, responses={404: responses._404})
def get_event(
    dbevent: Event = Depends(get_dbevent),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    _ensure_visible(dbevent, user)
    return EventService.to_response(db, dbevent, user.id)


@router.put(
    "/{event_id}",
    response_model=EventResponse,
    responses={400: responses._400, 403: responses._403, 404: responses._404},
)
def modify_event(
    modify: EventModify,
    request: Request,
    dbevent: Event = Depends(get_dbevent),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_officer),
):
    try:
        dbevent = crud.update_event(db, dbevent, modify)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    audit.record(db, AuditAction.update, "event", dbevent.id, user_id=user.id, request=request,
                 details={"fields": sorted(modify.model_fields_set)})
    return EventService.to_response(db, dbevent, user.id)


@router.delete("/{event_id}", responses={403: responses._403, 404: responses._404})
def remove_event(
    request: Request,
    dbevent: Event = Depends(get_dbevent),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_officer),
):
    event_id, title = dbevent.id, dbevent.title
    crud.remove_event(db, dbevent)
    audit.record(db, AuditAction.delete, "event", event_id, user_id=user.id, request=request,
                 details={"title": title})
    logger.info(f'Event "{title}" deleted by "{user.email}"')
    return {"detail": "Event successfully deleted"}


@router.put(
    "/{event_id}/cancel",
    response_model=EventResponse,
    responses={400: responses._400, 403: responses._403, 404: responses._404},
)
def cancel_event(
    request: Request,
    dbevent: Event = Depends(get_dbevent),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_officer),
):
    if dbevent.status == EventStatus.completed:
        raise HTTPException(status_code=400, detail="Completed events cannot be cancelled")

    dbevent = crud.set_event_status(db, dbevent, EventStatus.cancelled)
    audit.record(db, AuditAction.update, "event", dbevent.id, user_id=user.id, request=request,
                 details={"status": EventStatus.cancelled.value})
    return EventService.to_response(db, dbevent, user.id)


@router.put(
    "/{event_id}/publish",
    response_model=EventResponse,
    responses={400: responses._400, 403: responses._403, 404: responses._404},
)
def publish_event(
    request: Request,
    dbevent: Event = Depends(get_dbevent),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_officer),
):
    if dbevent.status == EventStatus.published:
        raise HTTPException(status_code=400, detail="Event is already published")

    dbevent = crud.set_event_status(db, dbevent, EventStatus.published)
    audit.record(db, AuditAction.update, "event", dbevent.id, user_id=user.id, request=request,
                 details={"status": EventStatus.published.value})
    logger.info(f'Event "{dbevent.title}" published by "{user.email}"')
    return EventService.to_response(db, dbevent, user.id)


@router.post(
    "/{event_id}/register",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: responses._400, 404: responses._404},
)
def register_for_event(
    request: Request,
    dbevent: Event = Depends(get_dbevent),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    user_id = user.ensure_account()
    _ensure_visible(dbevent, user)

    if dbevent.status != EventStatus.published:
        raise HTTPException(status_code=400, detail=f"Cannot register for a {dbevent.status.value} event")
    if dbevent.registration_deadline and dbevent.registration_deadline < utcnow():
        raise HTTPException(status_code=400, detail="Registration deadline has passed")
    if dbevent.capacity and crud.count_registrations(db, dbevent.id) >= dbevent.capacity:
        raise HTTPException(status_code=400, detail="Event is at full capacity")
    if crud.get_registration(db, dbevent.id, user_id):
        raise HTTPException(status_code=400, detail="You are already registered for this event")

    registration = crud.create_registration(db, dbevent, user_id)
    audit.record(db, AuditAction.create, "event_registration", registration.id, user_id=user_id,
                 request=request, details={"event_id": dbevent.id})
    return registration


@router.delete(
    "/{event_id}/register",
    responses={400: responses._400, 404: responses._404},
)
def unregister_from_event(
    request: Request,
    dbevent: Event = Depends(get_dbevent),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    user_id = user.ensure_account()
    registration = _get_registration_or_404(db, dbevent.id, user_id)
    if dbevent.status == EventStatus.completed:
        raise HTTPException(status_code=400, detail="Cannot cancel registration for a completed event")
    if registration.payment_status == RegistrationPaymentStatus.paid:
        raise HTTPException(status_code=400, detail="Cannot cancel a paid registration")

    crud.remove_registration(db, registration)
    audit.record(db, AuditAction.delete, "event_registration", dbevent.id, user_id=user_id, request=request)
    return {"detail": "Registration cancelled"}


@router.put(
    "/{event_id}/attendance/{user_id}",
    response_model=RegistrationResponse,
    responses={403: responses._403, 404: responses._404},
)
def mark_attendance(
    user_id: int,
    payload: AttendanceModify,
    request: Request,
    dbevent: Event = Depends(get_dbevent),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    user.ensure_roles(ATTENDANCE_ROLES, "mark attendance")
    registration = _get_registration_or_404(db, dbevent.id, user_id)
    registration = crud.update_attendance(db, registration, payload.attendance_status)
    audit.record(db, AuditAction.update, "event_registration", registration.id, user_id=user.id,
                 request=request, details={"attendance_status": payload.attendance_status.value})
    return registration


@router.put(
    "/{event_id}/payment/{user_id}",
    response_model=RegistrationResponse,
    responses={400: responses._400, 403: responses._403, 404: responses._404},
)
def update_registration_payment(
    user_id: int,
    payload: RegistrationPaymentModify,
    request: Request,
    dbevent: Event = Depends(get_dbevent),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    user.ensure_roles(EVENT_PAYMENT_ROLES, "update event payments")
    if not dbevent.requires_payment:
        raise HTTPException(status_code=400, detail="This event does not require payment")

    registration = _get_registration_or_404(db, dbevent.id, user_id)
    registration = crud.update_registration_payment(
        db, registration, payload.payment_status, payload.payment_reference
    )
    audit.record(db, AuditAction.payment, "event_registration", registration.id, user_id=user.id,
                 request=request, details={"payment_status": payload.payment_status.value})
    return registration


@router.get(
    "/{event_id}/attendees",
    response_model=List[RegistrationResponse],
    responses={403: responses._403, 404: responses._404},
)
def get_event_attendees(
    dbevent: Event = Depends(get_dbevent),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_officer),
):
    return crud.get_event_attendees(db, dbevent.id)
