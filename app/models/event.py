from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class EventType(str, Enum):
    conference = "conference"
    workshop = "workshop"
    seminar = "seminar"
    training = "training"
    meetings = "meetings"
    state_events = "state_events"
    social = "social"
    other = "other"


class EventStatus(str, Enum):
    draft = "draft"
    published = "published"
    completed = "completed"
    cancelled = "cancelled"


class RegistrationPaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    waived = "waived"
    not_required = "not_required"


class AttendanceStatus(str, Enum):
    registered = "registered"
    attended = "attended"
    absent = "absent"


class PenaltyType(str, Enum):
    multiplier = "multiplier"
    fixed = "fixed"


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class EventLocation(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    virtual: bool = False
    meeting_link: Optional[str] = None


class EventBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=128)
    description: str = Field(..., min_length=1, max_length=2000)
    event_type: EventType = EventType.other
    start_date: datetime
    end_date: datetime
    location: EventLocation
    organizer: Optional[str] = Field(None, max_length=128)
    capacity: Optional[int] = Field(None, gt=0)
    requires_registration: bool = False
    registration_fee: float = Field(0, ge=0)
    registration_deadline: Optional[datetime] = None
    requires_payment: bool = False
    is_attendance_required: bool = False
    status: EventStatus = EventStatus.draft

    @field_validator("start_date", "end_date", "registration_deadline")
    @classmethod
    def normalize_dates(cls, v):
        return as_naive_utc(v)


class EventCreate(EventBase):
    @model_validator(mode="after")
    def validate_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("End date must be after start date")
        if self.requires_payment and not self.registration_fee:
            raise ValueError("Registration fee is required for paid events")
        return self


class EventModify(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=128)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    event_type: Optional[EventType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location: Optional[EventLocation] = None
    organizer: Optional[str] = Field(None, max_length=128)
    capacity: Optional[int] = Field(None, gt=0)
    requires_registration: Optional[bool] = None
    registration_fee: Optional[float] = Field(None, ge=0)
    registration_deadline: Optional[datetime] = None
    requires_payment: Optional[bool] = None
    is_attendance_required: Optional[bool] = None
    status: Optional[EventStatus] = None

    @field_validator("start_date", "end_date", "registration_deadline")
    @classmethod
    def normalize_dates(cls, v):
        return as_naive_utc(v)

    @model_validator(mode="after")
    def validate_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("End date must be after start date")
        return self


class EventResponse(EventBase):
    id: int
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    registration_count: int = 0
    is_registered: bool = False
    model_config = ConfigDict(from_attributes=True)


class MyRegistrationResponse(BaseModel):
    id: int
    event_id: int
    event_title: str
    event_type: EventType
    event_status: EventStatus
    start_date: datetime
    end_date: datetime
    payment_status: RegistrationPaymentStatus
    attendance_status: AttendanceStatus
    registered_at: Optional[datetime] = None


class MyRegistrationsResponse(BaseModel):
    registrations: List[MyRegistrationResponse]
    total: int
    page: int
    limit: int


class EventsResponse(BaseModel):
    events: List[EventResponse]
    total: int
    page: int
    limit: int


class RegistrationResponse(BaseModel):
    id: int
    event_id: int
    user_id: int
    payment_status: RegistrationPaymentStatus
    attendance_status: AttendanceStatus
    payment_reference: Optional[str] = None
    registered_at: Optional[datetime] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class AttendanceModify(BaseModel):
    attendance_status: AttendanceStatus


class RegistrationPaymentModify(BaseModel):
    payment_status: RegistrationPaymentStatus
    payment_reference: Optional[str] = Field(None, max_length=128)


class EventStats(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_type: Dict[str, int]
    upcoming: int
    total_registrations: int


class PenaltyRule(BaseModel):
    min_attendance: int = Field(..., ge=0)
    max_attendance: int = Field(..., ge=0)
    penalty_type: PenaltyType
    penalty_value: float = Field(..., ge=0)
    description: str = Field(..., min_length=1, max_length=256)

    @model_validator(mode="after")
    def validate_range(self):
        if self.max_attendance < self.min_attendance:
            raise ValueError("max_attendance must not be lower than min_attendance")
        return self

    def matches(self, attended: int) -> bool:
        return self.min_attendance <= attended <= self.max_attendance


class DefaultPenalty(BaseModel):
    penalty_type: PenaltyType
    penalty_value: float = Field(..., ge=0)


class PenaltyConfigModify(BaseModel):
    is_active: bool = True
    penalty_rules: List[PenaltyRule] = []
    default_penalty: DefaultPenalty


class PenaltyConfigResponse(PenaltyConfigModify):
    id: int
    year: int
    created_by: Optional[int] = None
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class MemberPenalty(BaseModel):
    user_id: int
    name: str
    meetings_attended: int
    total_meetings: int
    penalty_type: PenaltyType
    penalty: float
    rule: Optional[str] = None


class MemberPenaltiesResponse(BaseModel):
    year: int
    total_meetings: int
    penalties: List[MemberPenalty]


class MyPenaltyResponse(BaseModel):
    year: int
    meetings_attended: int
    total_meetings: int
    missed_meetings: int
    penalty_type: Optional[PenaltyType] = None
    penalty: float = 0
    rule: Optional[str] = None
