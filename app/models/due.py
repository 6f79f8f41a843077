from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RecurringPeriod(str, Enum):
    monthly = "monthly"
    quarterly = "quarterly"
    semi_annual = "semi-annual"
    annual = "annual"


class DuePaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"
    overdue = "overdue"
    partially_paid = "partially_paid"


class AssignmentType(str, Enum):
    individual = "individual"
    bulk = "bulk"


class DueTypeBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    description: Optional[str] = Field(None, max_length=512)
    default_amount: float = Field(0, ge=0)
    is_recurring: bool = False
    recurring_period: Optional[RecurringPeriod] = None
    is_active: bool = True


class DueTypeCreate(DueTypeBase):
    @model_validator(mode="after")
    def validate_recurring_period(self):
        if self.is_recurring and not self.recurring_period:
            raise ValueError("Recurring period is required for recurring due types")
        return self


class DueTypeModify(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    description: Optional[str] = Field(None, max_length=512)
    default_amount: Optional[float] = Field(None, ge=0)
    is_recurring: Optional[bool] = None
    recurring_period: Optional[RecurringPeriod] = None
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def validate_recurring_period(self):
        if self.is_recurring and not self.recurring_period:
            raise ValueError("Recurring period is required for recurring due types")
        return self


class DueTypeResponse(DueTypeBase):
    id: int
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class PenaltyCreate(BaseModel):
    amount: float = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=256)


class PenaltyResponse(BaseModel):
    id: int
    amount: float
    reason: str
    added_by: Optional[int] = None
    added_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class DueCreate(BaseModel):
    due_type_id: int
    title: str = Field(..., min_length=1, max_length=128)
    description: Optional[str] = Field(None, max_length=512)
    amount: float = Field(..., gt=0)
    due_date: datetime
    is_recurring: bool = False
    next_due_date: Optional[datetime] = None


class DueModify(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=128)
    description: Optional[str] = Field(None, max_length=512)
    amount: Optional[float] = Field(None, gt=0)
    due_date: Optional[datetime] = None
    is_recurring: Optional[bool] = None
    next_due_date: Optional[datetime] = None


class DueAssign(BaseModel):
    due_type_id: int
    title: str = Field(..., min_length=1, max_length=128)
    description: Optional[str] = Field(None, max_length=512)
    amount: float = Field(..., gt=0)
    due_date: datetime
    assignment_type: AssignmentType
    pharmacy_ids: Optional[List[int]] = None
    is_recurring: bool = False
    next_due_date: Optional[datetime] = None


class DueResponse(BaseModel):
    id: int
    pharmacy_id: int
    due_type_id: int
    title: str
    description: Optional[str] = None
    amount: float
    total_amount: float
    amount_paid: float
    balance: float
    due_date: datetime
    payment_status: DuePaymentStatus
    assignment_type: AssignmentType
    assigned_by: Optional[int] = None
    assigned_at: Optional[datetime] = None
    year: int
    is_recurring: bool = False
    next_due_date: Optional[datetime] = None
    penalties: List[PenaltyResponse] = []
    pharmacy_name: Optional[str] = None
    due_type_name: Optional[str] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class DuesResponse(BaseModel):
    dues: List[DueResponse]
    total: int
    page: int
    limit: int


class AssignError(BaseModel):
    pharmacy_id: int
    error: str


class DueAssignResult(BaseModel):
    created: int
    errors: int
    dues: List[DueResponse]
    error_details: List[AssignError]


class DueSummary(BaseModel):
    total_dues: int = 0
    total_amount: float = 0
    total_paid: float = 0
    outstanding: float = 0
    paid_count: int = 0
    overdue_count: int = 0


class DueTypeBreakdown(BaseModel):
    due_type_id: int
    due_type_name: Optional[str] = None
    count: int
    total_amount: float
    amount_paid: float


class DueAnalytics(BaseModel):
    year: int
    summary: DueSummary
    dues_by_type: List[DueTypeBreakdown]


class PharmacyDueAnalytics(BaseModel):
    pharmacy_id: int
    total_dues: int = 0
    total_amount: float = 0
    total_paid: float = 0
    outstanding: float = 0


class ClearanceCertificate(BaseModel):
    certificate_number: str
    issued_at: datetime
    pharmacy: Dict[str, Any]
    due_type: Optional[str] = None
    title: str
    year: int
    amount_paid: float
