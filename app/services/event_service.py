from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.db import crud
from app.db.models import Event, EventRegistration
from app.models.event import (
    EventResponse,
    MemberPenaltiesResponse,
    MemberPenalty,
    MyPenaltyResponse,
    MyRegistrationResponse,
    PenaltyConfigModify,
    PenaltyRule,
    PenaltyType,
)
from app.models.user import UserRole


class EventService:
    @staticmethod
    def to_responses(db: Session, events: List[Event], user_id: Optional[int] = None) -> List[EventResponse]:
        event_ids = [e.id for e in events]
        counts = crud.get_registration_counts(db, event_ids)
        registered = crud.get_registered_event_ids(db, user_id, event_ids) if user_id is not None else set()
        return [
            EventResponse.model_validate(e).model_copy(
                update={"registration_count": counts.get(e.id, 0), "is_registered": e.id in registered}
            )
            for e in events
        ]

    @classmethod
    def to_response(cls, db: Session, dbevent: Event, user_id: Optional[int] = None) -> EventResponse:
        return cls.to_responses(db, [dbevent], user_id)[0]

    @staticmethod
    def to_my_registrations(registrations: List[EventRegistration]) -> List[MyRegistrationResponse]:
        return [
            MyRegistrationResponse(
                id=r.id,
                event_id=r.event_id,
                event_title=r.event.title,
                event_type=r.event.event_type,
                event_status=r.event.status,
                start_date=r.event.start_date,
                end_date=r.event.end_date,
                payment_status=r.payment_status,
                attendance_status=r.attendance_status,
                registered_at=r.registered_at,
            )
            for r in registrations
        ]

    @staticmethod
    def penalty_amount(penalty_type: PenaltyType, value: float, base_amount: float) -> float:
        if penalty_type == PenaltyType.multiplier:
            return round(base_amount * value, 2)
        return round(value, 2)

    @staticmethod
    def resolve_penalty(
        config: PenaltyConfigModify, attended: int
    ) -> Tuple[PenaltyType, float, Optional[PenaltyRule]]:
        """
        The first rule whose attendance range contains ``attended`` applies;
        otherwise the default penalty is used.
        """
        rule = next((r for r in config.penalty_rules if r.matches(attended)), None)
        if rule:
            return rule.penalty_type, rule.penalty_value, rule
        return config.default_penalty.penalty_type, config.default_penalty.penalty_value, None

    @classmethod
    def member_penalties(
        cls, db: Session, year: int, config: PenaltyConfigModify, base_amount: float
    ) -> MemberPenaltiesResponse:
        """Penalties for active members based on how many of the year's meetings they attended."""
        total_meetings, attended_by_user = crud.get_meeting_attendance_counts(db, year)

        penalties = []
        for dbuser in crud.get_active_users(db, role=UserRole.member):
            attended = attended_by_user.get(dbuser.id, 0)
            penalty_type, penalty_value, rule = cls.resolve_penalty(config, attended)
            penalties.append(
                MemberPenalty(
                    user_id=dbuser.id,
                    name=dbuser.full_name,
                    meetings_attended=attended,
                    total_meetings=total_meetings,
                    penalty_type=penalty_type,
                    penalty=cls.penalty_amount(penalty_type, penalty_value, base_amount),
                    rule=rule.description if rule else None,
                )
            )
        return MemberPenaltiesResponse(year=year, total_meetings=total_meetings, penalties=penalties)

    @classmethod
    def my_penalty(cls, db: Session, user_id: int, year: int) -> MyPenaltyResponse:
        """
        The caller's own meeting penalty for ``year``. Multiplier penalties are applied
        to the base amount of the dues assigned to the caller's pharmacies that year.
        """
        total_meetings, attended_by_user = crud.get_meeting_attendance_counts(db, year)
        attended = attended_by_user.get(user_id, 0)
        result = MyPenaltyResponse(
            year=year,
            meetings_attended=attended,
            total_meetings=total_meetings,
            missed_meetings=max(total_meetings - attended, 0),
        )

        dbconfig = crud.get_penalty_config(db, year)
        if not dbconfig or not dbconfig.is_active:
            return result

        config = PenaltyConfigModify.model_validate(dbconfig, from_attributes=True)
        penalty_type, penalty_value, rule = cls.resolve_penalty(config, attended)
        base_amount = crud.get_user_dues_summary(db, user_id, year=year)["base_amount"]
        return result.model_copy(
            update={
                "penalty_type": penalty_type,
                "penalty": cls.penalty_amount(penalty_type, penalty_value, base_amount),
                "rule": rule.description if rule else None,
            }
        )
