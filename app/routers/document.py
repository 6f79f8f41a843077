from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.db import Session, crud, get_db
from app.db.models import OrganizationDocument
from app.dependencies import get_dbdocument
from app.models.audit import AuditAction
from app.models.document import (
    DocumentCategory,
    DocumentCreate,
    DocumentDownload,
    DocumentModify,
    DocumentResponse,
    DocumentsResponse,
    DocumentStatus,
    DocumentSummary,
    DocumentVersionCreate,
    DocumentVersionResponse,
    visible_access_levels,
)
from app.models.user import CurrentUser
from app.runtime import logger
from app.utils import audit, responses

router = APIRouter(tags=["Document"], prefix="/api/documents", responses={401: responses._401})


def _ensure_visible(dbdocument: OrganizationDocument, user: CurrentUser) -> None:
    if dbdocument.access_level not in visible_access_levels(user.role):
        raise HTTPException(status_code=403, detail="You are not allowed to access this document")


@router.get("", response_model=DocumentsResponse)
def get_documents(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[DocumentCategory] = None,
    status: Optional[DocumentStatus] = None,
    search: Optional[str] = None,
    tag: Optional[str] = None,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    documents, total = crud.get_documents(
        db,
        visible_access_levels(user.role),
        page=page,
        limit=limit,
        category=category,
        status=status,
        search=search,
        tag=tag,
    )
    return {"documents": documents, "total": total, "page": page, "limit": limit}


@router.post(
    "",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: responses._403},
)
def add_document(
    payload: DocumentCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_officer),
):
    dbdocument = crud.create_document(db, payload, user.id)
    audit.record(db, AuditAction.create, "document", dbdocument.id, user_id=user.id, request=request,
                 details={"title": dbdocument.title, "access_level": dbdocument.access_level.value})
    logger.info(f'Document "{dbdocument.title}" uploaded by "{user.email}"')
    return dbdocument


@router.get("/summary", response_model=DocumentSummary)
def get_document_summary(db: Session = Depends(get_db), user: CurrentUser = Depends(CurrentUser.get_current)):
    return crud.get_document_summary(db, visible_access_levels(user.role))


@router.get("/{document_id}", response_model=DocumentResponse, responses={403: responses._403, 404: responses._404})
def get_document(
    dbdocument: OrganizationDocument = Depends(get_dbdocument),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    _ensure_visible(dbdocument, user)
    return crud.increment_document_views(db, dbdocument)


@router.put("/{document_id}", response_model=DocumentResponse, responses={403: responses._403, 404: responses._404})
def modify_document(
    modify: DocumentModify,
    request: Request,
    dbdocument: OrganizationDocument = Depends(get_dbdocument),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_officer),
):
    _ensure_visible(dbdocument, user)
    dbdocument = crud.update_document(db, dbdocument, modify)
    audit.record(db, AuditAction.update, "document", dbdocument.id, user_id=user.id, request=request,
                 details={"fields": sorted(modify.model_fields_set)})
    return dbdocument


@router.delete("/{document_id}", responses={403: responses._403, 404: responses._404})
def remove_document(
    request: Request,
    dbdocument: OrganizationDocument = Depends(get_dbdocument),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_admin),
):
    document_id, title = dbdocument.id, dbdocument.title
    crud.remove_document(db, dbdocument)
    audit.record(db, AuditAction.delete, "document", document_id, user_id=user.id, request=request,
                 details={"title": title})
    logger.info(f'Document "{title}" deleted by "{user.email}"')
    return {"detail": "Document successfully deleted"}


@router.put(
    "/{document_id}/archive",
    response_model=DocumentResponse,
    responses={403: responses._403, 404: responses._404},
)
def archive_document(
    request: Request,
    dbdocument: OrganizationDocument = Depends(get_dbdocument),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_officer),
):
    _ensure_visible(dbdocument, user)
    dbdocument = crud.archive_document(db, dbdocument)
    audit.record(db, AuditAction.update, "document", dbdocument.id, user_id=user.id, request=request,
                 details={"status": DocumentStatus.archived.value})
    return dbdocument


@router.get(
    "/{document_id}/download",
    response_model=DocumentDownload,
    responses={403: responses._403, 404: responses._404},
)
def download_document(
    dbdocument: OrganizationDocument = Depends(get_dbdocument),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    """Counts the download and hands back the file location; the file itself lives elsewhere."""
    _ensure_visible(dbdocument, user)
    dbdocument = crud.increment_document_downloads(db, dbdocument)
    return {
        "file_url": dbdocument.file_url,
        "file_name": dbdocument.file_name,
        "download_count": dbdocument.download_count,
    }


@router.get(
    "/{document_id}/versions",
    response_model=List[DocumentVersionResponse],
    responses={403: responses._403, 404: responses._404},
)
def get_document_versions(
    dbdocument: OrganizationDocument = Depends(get_dbdocument),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.get_current),
):
    _ensure_visible(dbdocument, user)
    return crud.get_document_versions(db, dbdocument.id)


@router.post(
    "/{document_id}/versions",
    response_model=DocumentVersionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={403: responses._403, 404: responses._404},
)
def add_document_version(
    payload: DocumentVersionCreate,
    request: Request,
    dbdocument: OrganizationDocument = Depends(get_dbdocument),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(CurrentUser.check_officer),
):
    _ensure_visible(dbdocument, user)
    dbversion = crud.add_document_version(db, dbdocument, payload, user.id)
    audit.record(db, AuditAction.update, "document", dbdocument.id, user_id=user.id, request=request,
                 details={"version": dbversion.version, "file_name": dbversion.file_name})
    return dbversion
