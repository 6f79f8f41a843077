from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, Request

from app.db import Session, get_db
from app.models.audit import AuditAction
from app.models.user import CurrentUser
from app.redis.cache import delete_pattern, get_cache_stats
from app.redis.warming import warm_cache
from app.runtime import logger
from app.utils import audit, responses

router = APIRouter(
    tags=["Cache"],
    prefix="/api/cache",
    responses={401: responses._401, 403: responses._403},
)


@router.get("/stats", response_model=Dict[str, Any])
def get_stats(user: CurrentUser = Depends(CurrentUser.check_admin)):
    return get_cache_stats()


@router.delete("")
def clear_cache(
    request: Request,
    pattern: str = Query("*", min_length=1),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    deleted = delete_pattern(pattern)
    audit.record(db, AuditAction.delete, "cache", user_id=user.id, request=request,
                 details={"pattern": pattern, "deleted": deleted})
    logger.info(f'Cache cleared by "{user.email}" ({deleted} keys matching "{pattern}")')
    return {"deleted": deleted}


@router.post("/warm", response_model=Dict[str, bool])
def warm(user: CurrentUser = Depends(CurrentUser.check_admin)):
    return warm_cache()
