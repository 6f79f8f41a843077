from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RegistrationStatus(str, Enum):
    active = "active"
    pending = "pending"
    expired = "expired"
    suspended = "suspended"


class PharmacyBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    registration_number: str = Field(..., min_length=1, max_length=64)
    location: Optional[str] = Field(None, max_length=128)
    address: Optional[str] = Field(None, max_length=256)
    ward_area: Optional[str] = Field(None, max_length=128)
    superintendent_name: Optional[str] = Field(None, max_length=128)
    director_name: Optional[str] = Field(None, max_length=128)
    pcn_license: Optional[str] = Field(None, max_length=64)


class PharmacyCreate(PharmacyBase):
    user_id: Optional[int] = Field(None, description="Owner; officers only, defaults to the caller")
    registration_status: Optional[RegistrationStatus] = None


class PharmacyModify(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    registration_number: Optional[str] = Field(None, min_length=1, max_length=64)
    location: Optional[str] = Field(None, max_length=128)
    address: Optional[str] = Field(None, max_length=256)
    ward_area: Optional[str] = Field(None, max_length=128)
    superintendent_name: Optional[str] = Field(None, max_length=128)
    director_name: Optional[str] = Field(None, max_length=128)
    pcn_license: Optional[str] = Field(None, max_length=64)
    registration_status: Optional[RegistrationStatus] = None


class PharmacyResponse(PharmacyBase):
    id: int
    user_id: Optional[int] = None
    registration_status: RegistrationStatus
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class PharmaciesResponse(BaseModel):
    pharmacies: List[PharmacyResponse]
    total: int
    page: int
    limit: int


class PharmacyStats(BaseModel):
    total: int
    by_status: Dict[str, int]


class PharmacyDuesStatus(BaseModel):
    pharmacy_id: int
    name: str
    registration_number: str
    total_due: float
    total_paid: float
    outstanding: float
    dues_count: int
