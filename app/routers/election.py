from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.exc import IntegrityError

from app.db import Session, crud, get_db
from app.db.crud.common import naive_utc
from app.db.exceptions import AlreadyVotedError
from app.db.models import Election
from app.dependencies import get_dbelection
from app.models.audit import AuditAction
from app.models.election import (
    CandidateCreate,
    CandidateResponse,
    ElectionCreate,
    ElectionDetail,
    ElectionModify,
    ElectionResponse,
    ElectionResults,
    ElectionsResponse,
    ElectionStats,
    ElectionStatus,
    VoteCreate,
    VoteResponse,
)
from app.models.user import CurrentUser
from app.runtime import logger
from app.services.election_service import ElectionService
from app.utils import audit, responses

router = APIRouter(tags=["Election"], prefix="/api/elections", responses={401: responses._401})


def _sync_status(db: Session, dbelection: Election) -> Election:
    """Brings the stored status in line with the clock between scheduler runs."""
    derived = dbelection.derive_status()
    if derived != dbelection.status:
        dbelection = crud.set_election_status(db, dbelection, derived)
    return dbelection


def _ensure_upcoming(dbelection: Election, action: str) -> None:
    if dbelection.status != ElectionStatus.upcoming:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot {action} an election that is {dbelection.status.value}",
        )


@router.get("", response_model=ElectionsResponse)
def get_elections(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[ElectionStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    elections, total = crud.get_elections(
        db, page=page, limit=limit, status=status, start_date=start_date, end_date=end_date, search=search
    )
    return {
        "elections": ElectionService.to_responses(db, elections),
        "total": total,
        "page": page,
        "limit": limit,
    }


@router.post(
    "",
    response_model=ElectionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: responses._400, 403: responses._403},
)
def add_election(
    payload: ElectionCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    if naive_utc(payload.start_date) > naive_utc(payload.end_date):
        raise HTTPException(status_code=400, detail="Start date must be before end date")

    dbelection = crud.create_election(db, payload, user.id)
    audit.record(db, AuditAction.create, "election", dbelection.id, user_id=user.id, request=request,
                 details={"title": dbelection.title})
    logger.info(f'Election "{dbelection.title}" created by "{user.email}"')
    return ElectionService.to_response(db, dbelection)


@router.get("/stats", response_model=ElectionStats)
def get_election_stats(db: Session = Depends(get_db), user: CurrentUser = Depends(CurrentUser.get_current)):
    return ElectionService.stats(db)


@router.get("/{election_id}", response_model=ElectionDetail, responses={404: responses._404})
def get_election(
    dbelection: Election = Depends(get_dbelection),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    dbelection = _sync_status(db, dbelection)
    return ElectionService.detail(db, dbelection, user.id)


@router.put(
    "/{election_id}",
    response_model=ElectionResponse,
    responses={400: responses._400, 403: responses._403, 404: responses._404},
)
def modify_election(
    modify: ElectionModify,
    request: Request,
    dbelection: Election = Depends(get_dbelection),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    dbelection = _sync_status(db, dbelection)
    _ensure_upcoming(dbelection, "modify")
    start = naive_utc(modify.start_date) or dbelection.start_date
    end = naive_utc(modify.end_date) or dbelection.end_date
    if start > end:
        raise HTTPException(status_code=400, detail="Start date must be before end date")

    dbelection = crud.update_election(db, dbelection, modify)
    audit.record(db, AuditAction.update, "election", dbelection.id, user_id=user.id, request=request,
                 details={"fields": sorted(modify.model_fields_set)})
    return ElectionService.to_response(db, dbelection)


@router.delete("/{election_id}", responses={400: responses._400, 403: responses._403, 404: responses._404})
def remove_election(
    request: Request,
    dbelection: Election = Depends(get_dbelection),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    dbelection = _sync_status(db, dbelection)
    if dbelection.status != ElectionStatus.upcoming or crud.count_candidates(db, dbelection.id):
        raise HTTPException(
            status_code=400,
            detail="Only upcoming elections without candidates can be deleted, cancel the election instead",
        )

    election_id, title = dbelection.id, dbelection.title
    crud.remove_election(db, dbelection)
    audit.record(db, AuditAction.delete, "election", election_id, user_id=user.id, request=request,
                 details={"title": title})
    logger.info(f'Election "{title}" deleted by "{user.email}"')
    return {"detail": "Election successfully deleted"}


@router.put(
    "/{election_id}/cancel",
    response_model=ElectionResponse,
    responses={400: responses._400, 403: responses._403, 404: responses._404},
)
def cancel_election(
    request: Request,
    dbelection: Election = Depends(get_dbelection),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    dbelection = _sync_status(db, dbelection)
    if dbelection.status == ElectionStatus.completed:
        raise HTTPException(status_code=400, detail="Completed elections cannot be cancelled")

    dbelection = crud.set_election_status(db, dbelection, ElectionStatus.cancelled)
    audit.record(db, AuditAction.update, "election", dbelection.id, user_id=user.id, request=request,
                 details={"status": ElectionStatus.cancelled.value})
    return ElectionService.to_response(db, dbelection)


@router.post(
    "/{election_id}/candidates",
    response_model=CandidateResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: responses._400, 403: responses._403, 404: responses._404},
)
def add_candidate(
    payload: CandidateCreate,
    request: Request,
    dbelection: Election = Depends(get_dbelection),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    dbelection = _sync_status(db, dbelection)
    _ensure_upcoming(dbelection, "add candidates to")
    if not crud.get_user_by_id(db, payload.user_id):
        raise HTTPException(status_code=404, detail="User not found")

    position = payload.position.strip()
    if dbelection.positions and position not in dbelection.positions:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid position. Must be one of: {', '.join(dbelection.positions)}",
        )
    if crud.find_candidate(db, dbelection.id, payload.user_id, position):
        raise HTTPException(status_code=400, detail="User is already a candidate for this position")

    try:
        dbcandidate = crud.create_candidate(db, dbelection.id, payload)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="User is already a candidate for this position")

    audit.record(db, AuditAction.create, "candidate", dbcandidate.id, user_id=user.id, request=request,
                 details={"election_id": dbelection.id, "position": position})
    return dbcandidate


@router.get("/{election_id}/candidates", response_model=List[CandidateResponse], responses={404: responses._404})
def get_candidates(
    dbelection: Election = Depends(get_dbelection),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    return crud.get_candidates(db, dbelection.id)


@router.delete(
    "/{election_id}/candidates/{candidate_id}",
    responses={400: responses._400, 403: responses._403, 404: responses._404},
)
def remove_candidate(
    candidate_id: int,
    request: Request,
    dbelection: Election = Depends(get_dbelection),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    dbcandidate = crud.get_candidate(db, candidate_id)
    if not dbcandidate or dbcandidate.election_id != dbelection.id:
        raise HTTPException(status_code=404, detail="Candidate not found")
    dbelection = _sync_status(db, dbelection)
    _ensure_upcoming(dbelection, "remove candidates from")

    crud.remove_candidate(db, dbcandidate)
    audit.record(db, AuditAction.delete, "candidate", candidate_id, user_id=user.id, request=request,
                 details={"election_id": dbelection.id})
    return {"detail": "Candidate successfully removed"}


@router.post(
    "/{election_id}/vote",
    response_model=VoteResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: responses._400, 403: responses._403, 404: responses._404},
)
def vote(
    payload: VoteCreate,
    request: Request,
    dbelection: Election = Depends(get_dbelection),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    voter_id = user.ensure_account()
    dbelection = _sync_status(db, dbelection)
    if dbelection.status != ElectionStatus.ongoing:
        raise HTTPException(status_code=400, detail="Voting is only allowed while the election is ongoing")

    dbcandidate = crud.get_candidate(db, payload.candidate_id)
    if not dbcandidate or dbcandidate.election_id != dbelection.id:
        raise HTTPException(status_code=400, detail="Candidate does not belong to this election")

    try:
        dbvote = crud.create_vote(db, dbcandidate, voter_id)
    except AlreadyVotedError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    # the ballot itself is secret, only the position goes to the audit trail
    audit.record(db, AuditAction.create, "vote", dbelection.id, user_id=voter_id, request=request,
                 details={"position": dbcandidate.position})
    return dbvote


@router.get(
    "/{election_id}/results",
    response_model=ElectionResults,
    responses={403: responses._403, 404: responses._404},
)
def get_results(
    dbelection: Election = Depends(get_dbelection),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    dbelection = _sync_status(db, dbelection)
    if not user.is_admin and dbelection.status not in (ElectionStatus.completed, ElectionStatus.cancelled):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Results are available once the election has ended",
        )
    return ElectionService.results(db, dbelection)
