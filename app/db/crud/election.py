"""
Functions for managing elections, candidates and votes.
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.db.crud.common import naive_utc, paginate
from app.db.exceptions import AlreadyVotedError
from app.db.models import Candidate, Election, Vote, utcnow
from app.models.election import CandidateCreate, ElectionCreate, ElectionModify, ElectionStatus


def get_election(db: Session, election_id: int) -> Optional[Election]:
    return db.query(Election).filter(Election.id == election_id).first()


def get_elections(
    db: Session,
    page: int = 1,
    limit: int = 10,
    status: Optional[ElectionStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
) -> Tuple[List[Election], int]:
    query = db.query(Election)
    if status:
        query = query.filter(Election.status == status)
    if start_date:
        query = query.filter(Election.start_date >= naive_utc(start_date))
    if end_date:
        query = query.filter(Election.end_date <= naive_utc(end_date))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Election.title.ilike(pattern), Election.description.ilike(pattern)))
    return paginate(query.order_by(Election.start_date.desc(), Election.id.desc()), page, limit)


def get_election_counts(db: Session, election_ids: List[int]) -> Tuple[Dict[int, int], Dict[int, int]]:
    """Candidate and vote counts keyed by election id."""
    if not election_ids:
        return {}, {}
    candidate_counts = dict(
        db.query(Candidate.election_id, func.count(Candidate.id))
        .filter(Candidate.election_id.in_(election_ids))
        .group_by(Candidate.election_id)
        .all()
    )
    vote_counts = dict(
        db.query(Vote.election_id, func.count(Vote.id))
        .filter(Vote.election_id.in_(election_ids))
        .group_by(Vote.election_id)
        .all()
    )
    return candidate_counts, vote_counts


def create_election(db: Session, election: ElectionCreate, created_by: Optional[int]) -> Election:
    dbelection = Election(
        title=election.title,
        description=election.description,
        start_date=naive_utc(election.start_date),
        end_date=naive_utc(election.end_date),
        positions=election.positions,
        created_by=created_by,
        status=ElectionStatus.upcoming,
    )
    dbelection.status = dbelection.derive_status()
    db.add(dbelection)
    db.commit()
    db.refresh(dbelection)
    return dbelection


def update_election(db: Session, dbelection: Election, modify: ElectionModify) -> Election:
    data = modify.model_dump(exclude_unset=True)
    for field in ("start_date", "end_date"):
        if data.get(field) is not None:
            data[field] = naive_utc(data[field])
    for field, value in data.items():
        if value is not None:
            setattr(dbelection, field, value)
    dbelection.status = dbelection.derive_status()
    db.commit()
    db.refresh(dbelection)
    return dbelection


def set_election_status(db: Session, dbelection: Election, status: ElectionStatus) -> Election:
    dbelection.status = status
    db.commit()
    db.refresh(dbelection)
    return dbelection


def sync_election_statuses(db: Session, now: Optional[datetime] = None) -> int:
    """Re-derives the status of every non-cancelled election; returns how many changed."""
    now = now or utcnow()
    changed = 0
    elections = (
        db.query(Election)
        .filter(Election.status.in_([ElectionStatus.upcoming, ElectionStatus.ongoing]))
        .all()
    )
    for dbelection in elections:
        status = dbelection.derive_status(now)
        if status != dbelection.status:
            dbelection.status = status
            changed += 1
    if changed:
        db.commit()
    return changed


def remove_election(db: Session, dbelection: Election) -> None:
    db.delete(dbelection)
    db.commit()


def get_candidate(db: Session, candidate_id: int) -> Optional[Candidate]:
    return (
        db.query(Candidate)
        .options(joinedload(Candidate.user))
        .filter(Candidate.id == candidate_id)
        .first()
    )


def get_candidates(db: Session, election_id: int) -> List[Candidate]:
    return (
        db.query(Candidate)
        .options(joinedload(Candidate.user))
        .filter(Candidate.election_id == election_id)
        .order_by(Candidate.position.asc(), Candidate.id.asc())
        .all()
    )


def count_candidates(db: Session, election_id: int) -> int:
    return db.query(Candidate).filter(Candidate.election_id == election_id).count()


def find_candidate(db: Session, election_id: int, user_id: int, position: str) -> Optional[Candidate]:
    return (
        db.query(Candidate)
        .filter(
            Candidate.election_id == election_id,
            Candidate.user_id == user_id,
            Candidate.position == position,
        )
        .first()
    )


def create_candidate(db: Session, election_id: int, candidate: CandidateCreate) -> Candidate:
    dbcandidate = Candidate(
        election_id=election_id,
        user_id=candidate.user_id,
        position=candidate.position.strip(),
        manifesto=candidate.manifesto,
        photo_url=candidate.photo_url,
    )
    db.add(dbcandidate)
    db.commit()
    db.refresh(dbcandidate)
    return dbcandidate


def remove_candidate(db: Session, dbcandidate: Candidate) -> None:
    db.delete(dbcandidate)
    db.commit()


def is_user_candidate(db: Session, election_id: int, user_id: int) -> bool:
    return (
        db.query(Candidate.id)
        .filter(Candidate.election_id == election_id, Candidate.user_id == user_id)
        .first()
        is not None
    )


def get_user_votes(db: Session, election_id: int, voter_id: int) -> List[Vote]:
    return db.query(Vote).filter(Vote.election_id == election_id, Vote.voter_id == voter_id).all()


def has_voted_for_position(db: Session, election_id: int, voter_id: int, position: str) -> bool:
    return (
        db.query(Vote.id)
        .filter(Vote.election_id == election_id, Vote.voter_id == voter_id, Vote.position == position)
        .first()
        is not None
    )


def create_vote(db: Session, dbcandidate: Candidate, voter_id: int) -> Vote:
    """
    Records a vote for the candidate's position.

    Raises:
        AlreadyVotedError: the voter already voted for this position. The unique
            constraint on (election, voter, position) also catches concurrent duplicates.
    """
    if has_voted_for_position(db, dbcandidate.election_id, voter_id, dbcandidate.position):
        raise AlreadyVotedError(dbcandidate.position)
    dbvote = Vote(
        election_id=dbcandidate.election_id,
        candidate_id=dbcandidate.id,
        voter_id=voter_id,
        position=dbcandidate.position,
    )
    db.add(dbvote)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AlreadyVotedError(dbcandidate.position)
    db.refresh(dbvote)
    return dbvote


def get_vote_counts(db: Session, election_id: int) -> Dict[int, int]:
    rows = (
        db.query(Vote.candidate_id, func.count(Vote.id))
        .filter(Vote.election_id == election_id)
        .group_by(Vote.candidate_id)
        .all()
    )
    return dict(rows)


def count_unique_voters(db: Session, election_id: int) -> int:
    return (
        db.query(func.count(func.distinct(Vote.voter_id)))
        .filter(Vote.election_id == election_id)
        .scalar()
        or 0
    )


def count_elections_by_status(db: Session) -> Dict[str, int]:
    by_status = {status.value: 0 for status in ElectionStatus}
    for status, count in db.query(Election.status, func.count(Election.id)).group_by(Election.status).all():
        by_status[status.value] = count
    return by_status


def get_recent_elections(db: Session, limit: int = 5) -> List[Election]:
    return db.query(Election).order_by(Election.created_at.desc(), Election.id.desc()).limit(limit).all()


def get_upcoming_elections(db: Session, limit: int = 5) -> List[Election]:
    return (
        db.query(Election)
        .filter(Election.status == ElectionStatus.upcoming)
        .order_by(Election.start_date.asc())
        .limit(limit)
        .all()
    )


def get_active_elections(db: Session, limit: int = 5) -> List[Election]:
    return (
        db.query(Election)
        .filter(Election.status == ElectionStatus.ongoing)
        .order_by(Election.end_date.asc())
        .limit(limit)
        .all()
    )
