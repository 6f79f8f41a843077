from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ElectionStatus(str, Enum):
    upcoming = "upcoming"
    ongoing = "ongoing"
    completed = "completed"
    cancelled = "cancelled"


def clean_positions(positions: Optional[List[str]]) -> Optional[List[str]]:
    if positions is None:
        return None
    cleaned = []
    for position in positions:
        position = position.strip()
        if position and position not in cleaned:
            cleaned.append(position)
    return cleaned


class ElectionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=128)
    description: str = Field(..., min_length=1, max_length=2000)
    start_date: datetime
    end_date: datetime
    positions: List[str] = []

    @field_validator("positions")
    @classmethod
    def validate_positions(cls, v):
        return clean_positions(v)


class ElectionModify(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=128)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    positions: Optional[List[str]] = None

    @field_validator("positions")
    @classmethod
    def validate_positions(cls, v):
        return clean_positions(v)


class ElectionResponse(BaseModel):
    id: int
    title: str
    description: str
    start_date: datetime
    end_date: datetime
    status: ElectionStatus
    positions: List[str] = []
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    candidate_count: int = 0
    vote_count: int = 0
    model_config = ConfigDict(from_attributes=True)


class ElectionsResponse(BaseModel):
    elections: List[ElectionResponse]
    total: int
    page: int
    limit: int


class CandidateCreate(BaseModel):
    user_id: int
    position: str = Field(..., min_length=1, max_length=128)
    manifesto: Optional[str] = Field(None, max_length=4000)
    photo_url: Optional[str] = Field(None, max_length=512)


class CandidateResponse(BaseModel):
    id: int
    election_id: int
    user_id: int
    position: str
    manifesto: Optional[str] = None
    photo_url: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class ElectionDetail(BaseModel):
    election: ElectionResponse
    candidates_by_position: Dict[str, List[CandidateResponse]]
    is_user_candidate: bool
    user_vote_map: Dict[str, int]


class VoteCreate(BaseModel):
    candidate_id: int


class VoteResponse(BaseModel):
    id: int
    election_id: int
    candidate_id: int
    position: str
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class CandidateResult(CandidateResponse):
    votes: int = 0


class ResultStats(BaseModel):
    total_votes: int
    unique_voters: int
    total_positions: int
    total_candidates: int


class ElectionResults(BaseModel):
    election: ElectionResponse
    results: Dict[str, List[CandidateResult]]
    stats: ResultStats


class ElectionStats(BaseModel):
    total: int
    by_status: Dict[str, int]
    recent: List[ElectionResponse]
    upcoming: List[ElectionResponse]
