from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PaymentMethod(str, Enum):
    bank_transfer = "bank_transfer"
    cash = "cash"
    check = "check"


class ApprovalStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class PaymentCreate(BaseModel):
    amount: float
    payment_method: PaymentMethod
    payment_reference: Optional[str] = Field(None, max_length=128)
    receipt_url: Optional[str] = Field(None, max_length=512)


class PaymentReject(BaseModel):
    rejection_reason: Optional[str] = Field(None, max_length=512)


class PaymentResponse(BaseModel):
    id: int
    due_id: int
    pharmacy_id: int
    amount: float
    payment_method: PaymentMethod
    payment_reference: Optional[str] = None
    receipt_url: Optional[str] = None
    approval_status: ApprovalStatus
    submitted_by: Optional[int] = None
    submitted_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class PaymentsResponse(BaseModel):
    payments: List[PaymentResponse]
    total: int
