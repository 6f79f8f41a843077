from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.user import ADMIN_ROLES, UserRole


class DocumentCategory(str, Enum):
    policy = "policy"
    form = "form"
    report = "report"
    newsletter = "newsletter"
    minutes = "minutes"
    guideline = "guideline"
    other = "other"


class AccessLevel(str, Enum):
    public = "public"
    members = "members"
    committee = "committee"
    executives = "executives"
    admin = "admin"


class DocumentStatus(str, Enum):
    active = "active"
    archived = "archived"


def visible_access_levels(role: UserRole) -> List[AccessLevel]:
    if role in ADMIN_ROLES:
        return list(AccessLevel)
    if role in (UserRole.secretary, UserRole.treasurer):
        return [AccessLevel.public, AccessLevel.members, AccessLevel.committee, AccessLevel.executives]
    return [AccessLevel.public, AccessLevel.members]


def _clean_tags(v):
    if not v:
        return []
    cleaned = []
    for tag in v:
        tag = tag.strip().lower()
        if tag and tag not in cleaned:
            cleaned.append(tag)
    return cleaned


class DocumentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    file_url: str = Field(..., min_length=1, max_length=512)
    file_name: str = Field(..., min_length=1, max_length=256)
    file_size: int = Field(0, ge=0)
    file_type: Optional[str] = Field(None, max_length=128)
    category: DocumentCategory = DocumentCategory.other
    tags: List[str] = []
    access_level: AccessLevel = AccessLevel.members
    expiration_date: Optional[datetime] = None

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v):
        return _clean_tags(v)


class DocumentModify(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    category: Optional[DocumentCategory] = None
    tags: Optional[List[str]] = None
    access_level: Optional[AccessLevel] = None
    status: Optional[DocumentStatus] = None
    expiration_date: Optional[datetime] = None

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v):
        return _clean_tags(v) if v is not None else v


class DocumentResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    file_url: str
    file_name: str
    file_size: int = 0
    file_type: Optional[str] = None
    category: DocumentCategory
    tags: List[str] = []
    access_level: AccessLevel
    status: DocumentStatus
    version: int
    download_count: int = 0
    view_count: int = 0
    expiration_date: Optional[datetime] = None
    uploaded_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class DocumentsResponse(BaseModel):
    documents: List[DocumentResponse]
    total: int
    page: int
    limit: int


class DocumentVersionCreate(BaseModel):
    file_url: str = Field(..., min_length=1, max_length=512)
    file_name: str = Field(..., min_length=1, max_length=256)
    file_size: int = Field(0, ge=0)
    file_type: Optional[str] = Field(None, max_length=128)
    notes: Optional[str] = Field(None, max_length=1000)


class DocumentVersionResponse(BaseModel):
    id: int
    document_id: int
    version: int
    file_url: str
    file_name: str
    file_size: int = 0
    notes: Optional[str] = None
    uploaded_by: Optional[int] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class DocumentDownload(BaseModel):
    file_url: str
    file_name: str
    download_count: int


class DocumentSummary(BaseModel):
    total: int
    by_category: Dict[str, int]
    by_status: Dict[str, int]
    total_downloads: int
