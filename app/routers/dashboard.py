from fastapi import APIRouter, Depends, Query

from app.db import Session, crud, get_db
from app.models.dashboard import DashboardOverview, MemberDashboard, MemberPaymentsResponse
from app.models.user import CurrentUser
from app.services.dashboard_service import DashboardService
from app.utils import responses

router = APIRouter(tags=["Dashboard"], prefix="/api/dashboard", responses={401: responses._401})


@router.get("/overview", response_model=DashboardOverview, responses={403: responses._403})
def get_overview(db: Session = Depends(get_db), user: CurrentUser = Depends(CurrentUser.check_officer)):
    """Headline numbers for the officers' landing page."""
    return DashboardService.overview(db, user.id)


@router.get("/me", response_model=MemberDashboard, responses={403: responses._403})
def get_member_overview(db: Session = Depends(get_db), user: CurrentUser = Depends(CurrentUser.get_current)):
    return DashboardService.member_overview(db, user.ensure_account())


@router.get("/me/payments", response_model=MemberPaymentsResponse, responses={403: responses._403})
def get_member_payments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    """Every payment submitted for the caller's pharmacies, newest first."""
    payments, total = crud.get_user_payments(db, user.ensure_account(), page=page, limit=limit)
    return {"payments": payments, "total": total, "page": page, "limit": limit}
