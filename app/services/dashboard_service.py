from sqlalchemy.orm import Session

from app.db import crud
from app.db.models import utcnow
from app.models.audit import AuditEntryResponse
from app.models.dashboard import (
    AttendanceSummary,
    DashboardOverview,
    FinancialSummary,
    MemberDashboard,
    UserCounts,
)
from app.models.payment import PaymentResponse
from app.models.user import UserStatus
from app.services.election_service import ElectionService
from app.services.event_service import EventService

RECENT_ACTIVITY_LIMIT = 10
UPCOMING_LIMIT = 5
RECENT_PAYMENTS_LIMIT = 5


class DashboardService:

    @staticmethod
    def overview(db: Session, user_id=None) -> DashboardOverview:
        by_status = crud.count_users_by_status(db)
        year = utcnow().year
        recent, _ = crud.get_audit_entries(db, page=1, limit=RECENT_ACTIVITY_LIMIT)
        return DashboardOverview(
            users=UserCounts(
                total=sum(by_status.values()),
                pending=by_status.get(UserStatus.pending.value, 0),
                active=by_status.get(UserStatus.active.value, 0),
            ),
            pharmacies=crud.get_pharmacy_stats(db),
            dues_year=year,
            dues=crud.get_dues_analytics(db, year)["summary"],
            pending_payments=crud.count_pending_payments(db),
            upcoming_events=EventService.to_responses(
                db, crud.get_upcoming_events(db, limit=UPCOMING_LIMIT), user_id
            ),
            active_elections=ElectionService.to_responses(db, crud.get_active_elections(db, limit=UPCOMING_LIMIT)),
            recent_activity=[AuditEntryResponse.model_validate(entry) for entry in recent],
        )

    @staticmethod
    def member_overview(db: Session, user_id: int) -> MemberDashboard:
        """A member's own dues position, this year's meeting attendance and latest payments."""
        year = utcnow().year
        dues = crud.get_user_dues_summary(db, user_id)
        total_meetings, attended_by_user = crud.get_meeting_attendance_counts(db, year)
        attended = attended_by_user.get(user_id, 0)
        payments, _ = crud.get_user_payments(db, user_id, page=1, limit=RECENT_PAYMENTS_LIMIT)
        return MemberDashboard(
            pharmacies=len(crud.get_user_pharmacies(db, user_id)),
            financial=FinancialSummary(
                total_due=dues["total_due"],
                total_paid=dues["total_paid"],
                remaining_balance=dues["remaining_balance"],
            ),
            attendance=AttendanceSummary(
                year=year,
                attended=attended,
                missed=max(total_meetings - attended, 0),
                total_meetings=total_meetings,
            ),
            upcoming_events=crud.count_upcoming_events(db),
            unread_notifications=crud.count_unread_notifications(db, user_id),
            recent_payments=[PaymentResponse.model_validate(p) for p in payments],
        )
