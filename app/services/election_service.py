from collections import defaultdict
from typing import Dict, List

from sqlalchemy.orm import Session

from app.db import crud
from app.db.models import Election
from app.models.election import (
    CandidateResponse,
    CandidateResult,
    ElectionDetail,
    ElectionResponse,
    ElectionResults,
    ElectionStats,
    ResultStats,
)


class ElectionService:
    """Assembles election payloads from several queries."""

    @staticmethod
    def to_response(db: Session, dbelection: Election) -> ElectionResponse:
        candidate_counts, vote_counts = crud.get_election_counts(db, [dbelection.id])
        return ElectionResponse.model_validate(dbelection).model_copy(
            update={
                "candidate_count": candidate_counts.get(dbelection.id, 0),
                "vote_count": vote_counts.get(dbelection.id, 0),
            }
        )

    @staticmethod
    def to_responses(db: Session, elections: List[Election]) -> List[ElectionResponse]:
        candidate_counts, vote_counts = crud.get_election_counts(db, [e.id for e in elections])
        return [
            ElectionResponse.model_validate(e).model_copy(
                update={
                    "candidate_count": candidate_counts.get(e.id, 0),
                    "vote_count": vote_counts.get(e.id, 0),
                }
            )
            for e in elections
        ]

    @classmethod
    def detail(cls, db: Session, dbelection: Election, user_id) -> ElectionDetail:
        candidates_by_position: Dict[str, List[CandidateResponse]] = {
            position: [] for position in dbelection.positions or []
        }
        for dbcandidate in crud.get_candidates(db, dbelection.id):
            candidates_by_position.setdefault(dbcandidate.position, []).append(
                CandidateResponse.model_validate(dbcandidate)
            )

        user_vote_map = {}
        is_candidate = False
        if user_id is not None:
            user_vote_map = {v.position: v.candidate_id for v in crud.get_user_votes(db, dbelection.id, user_id)}
            is_candidate = crud.is_user_candidate(db, dbelection.id, user_id)

        return ElectionDetail(
            election=cls.to_response(db, dbelection),
            candidates_by_position=candidates_by_position,
            is_user_candidate=is_candidate,
            user_vote_map=user_vote_map,
        )

    @classmethod
    def results(cls, db: Session, dbelection: Election) -> ElectionResults:
        vote_counts = crud.get_vote_counts(db, dbelection.id)
        candidates = crud.get_candidates(db, dbelection.id)

        results: Dict[str, List[CandidateResult]] = defaultdict(list)
        for dbcandidate in candidates:
            result = CandidateResult.model_validate(dbcandidate).model_copy(
                update={"votes": vote_counts.get(dbcandidate.id, 0)}
            )
            results[dbcandidate.position].append(result)
        for position in results:
            results[position].sort(key=lambda r: r.votes, reverse=True)

        stats = ResultStats(
            total_votes=sum(vote_counts.values()),
            unique_voters=crud.count_unique_voters(db, dbelection.id),
            total_positions=len(results),
            total_candidates=len(candidates),
        )
        return ElectionResults(election=cls.to_response(db, dbelection), results=dict(results), stats=stats)

    @classmethod
    def stats(cls, db: Session) -> ElectionStats:
        by_status = crud.count_elections_by_status(db)
        return ElectionStats(
            total=sum(by_status.values()),
            by_status=by_status,
            recent=cls.to_responses(db, crud.get_recent_elections(db)),
            upcoming=cls.to_responses(db, crud.get_upcoming_elections(db)),
        )
