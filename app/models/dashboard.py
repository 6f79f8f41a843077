from typing import List

from pydantic import BaseModel

from app.models.audit import AuditEntryResponse
from app.models.due import DueSummary
from app.models.election import ElectionResponse
from app.models.event import EventResponse
from app.models.payment import PaymentResponse
from app.models.pharmacy import PharmacyStats


class UserCounts(BaseModel):
    total: int = 0
    pending: int = 0
    active: int = 0


class DashboardOverview(BaseModel):
    users: UserCounts
    pharmacies: PharmacyStats
    dues_year: int
    dues: DueSummary
    pending_payments: int
    upcoming_events: List[EventResponse]
    active_elections: List[ElectionResponse]
    recent_activity: List[AuditEntryResponse]


class FinancialSummary(BaseModel):
    total_due: float = 0
    total_paid: float = 0
    remaining_balance: float = 0


class AttendanceSummary(BaseModel):
    year: int
    attended: int = 0
    missed: int = 0
    total_meetings: int = 0


class MemberDashboard(BaseModel):
    pharmacies: int
    financial: FinancialSummary
    attendance: AttendanceSummary
    upcoming_events: int
    unread_notifications: int
    recent_payments: List[PaymentResponse]


class MemberPaymentsResponse(BaseModel):
    payments: List[PaymentResponse]
    total: int
    page: int
    limit: int
