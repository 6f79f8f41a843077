from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.db.crud.common import apply_changes, naive_utc, paginate
from app.db.models import DocumentVersion, OrganizationDocument
from app.models.document import (
    AccessLevel,
    DocumentCategory,
    DocumentCreate,
    DocumentModify,
    DocumentStatus,
    DocumentVersionCreate,
)


def get_document(db: Session, document_id: int) -> Optional[OrganizationDocument]:
    return db.query(OrganizationDocument).filter(OrganizationDocument.id == document_id).first()


def get_documents(
    db: Session,
    access_levels: Iterable[AccessLevel],
    page: int = 1,
    limit: int = 10,
    category: Optional[DocumentCategory] = None,
    status: Optional[DocumentStatus] = None,
    search: Optional[str] = None,
    tag: Optional[str] = None,
) -> Tuple[List[OrganizationDocument], int]:
    query = db.query(OrganizationDocument).filter(OrganizationDocument.access_level.in_(list(access_levels)))
    if category:
        query = query.filter(OrganizationDocument.category == category)
    if status:
        query = query.filter(OrganizationDocument.status == status)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                OrganizationDocument.title.ilike(pattern),
                OrganizationDocument.description.ilike(pattern),
                OrganizationDocument.file_name.ilike(pattern),
            )
        )
    query = query.order_by(OrganizationDocument.created_at.desc(), OrganizationDocument.id.desc())
    if not tag:
        return paginate(query, page, limit)
    # tags live in a JSON column, filter them in Python
    tag = tag.strip().lower()
    matching = [document for document in query.all() if tag in (document.tags or [])]
    page = max(page or 1, 1)
    limit = max(limit or 10, 1)
    return matching[(page - 1) * limit: page * limit], len(matching)


def create_document(db: Session, document: DocumentCreate, uploaded_by: Optional[int]) -> OrganizationDocument:
    data = document.model_dump()
    data["expiration_date"] = naive_utc(data.get("expiration_date"))
    dbdocument = OrganizationDocument(**data, uploaded_by=uploaded_by, version=1)
    db.add(dbdocument)
    db.flush()
    db.add(
        DocumentVersion(
            document_id=dbdocument.id,
            version=1,
            file_url=dbdocument.file_url,
            file_name=dbdocument.file_name,
            file_size=dbdocument.file_size,
            notes="Initial version",
            uploaded_by=uploaded_by,
        )
    )
    db.commit()
    db.refresh(dbdocument)
    return dbdocument


def update_document(db: Session, dbdocument: OrganizationDocument, modify: DocumentModify) -> OrganizationDocument:
    data = modify.model_dump(exclude_unset=True)
    if "expiration_date" in data:
        data["expiration_date"] = naive_utc(data["expiration_date"])
    apply_changes(dbdocument, data)
    db.commit()
    db.refresh(dbdocument)
    return dbdocument


def archive_document(db: Session, dbdocument: OrganizationDocument) -> OrganizationDocument:
    dbdocument.status = DocumentStatus.archived
    db.commit()
    db.refresh(dbdocument)
    return dbdocument


def remove_document(db: Session, dbdocument: OrganizationDocument) -> None:
    db.delete(dbdocument)
    db.commit()


def _increment_counter(db: Session, dbdocument: OrganizationDocument, column) -> OrganizationDocument:
    # single UPDATE, no read-modify-write
    db.query(OrganizationDocument).filter(OrganizationDocument.id == dbdocument.id).update(
        {column: func.coalesce(column, 0) + 1}, synchronize_session=False
    )
    db.commit()
    db.refresh(dbdocument)
    return dbdocument


def increment_document_views(db: Session, dbdocument: OrganizationDocument) -> OrganizationDocument:
    return _increment_counter(db, dbdocument, OrganizationDocument.view_count)


def increment_document_downloads(db: Session, dbdocument: OrganizationDocument) -> OrganizationDocument:
    return _increment_counter(db, dbdocument, OrganizationDocument.download_count)


def get_document_versions(db: Session, document_id: int) -> List[DocumentVersion]:
    return (
        db.query(DocumentVersion)
        .filter(DocumentVersion.document_id == document_id)
        .order_by(DocumentVersion.version.desc())
        .all()
    )


def add_document_version(
    db: Session, dbdocument: OrganizationDocument, version: DocumentVersionCreate, uploaded_by: Optional[int]
) -> DocumentVersion:
    """Stores a new version and makes its file the document's current file."""
    next_version = (dbdocument.version or 1) + 1
    dbversion = DocumentVersion(
        document_id=dbdocument.id,
        version=next_version,
        file_url=version.file_url,
        file_name=version.file_name,
        file_size=version.file_size,
        notes=version.notes,
        uploaded_by=uploaded_by,
    )
    db.add(dbversion)
    dbdocument.version = next_version
    dbdocument.file_url = version.file_url
    dbdocument.file_name = version.file_name
    dbdocument.file_size = version.file_size
    if version.file_type:
        dbdocument.file_type = version.file_type
    db.commit()
    db.refresh(dbversion)
    return dbversion


def get_document_summary(db: Session, access_levels: Iterable[AccessLevel]) -> dict:
    base = db.query(OrganizationDocument).filter(OrganizationDocument.access_level.in_(list(access_levels)))
    by_category = {category.value: 0 for category in DocumentCategory}
    for category, count in (
        base.with_entities(OrganizationDocument.category, func.count(OrganizationDocument.id))
        .group_by(OrganizationDocument.category)
        .all()
    ):
        by_category[category.value] = count
    by_status = {status.value: 0 for status in DocumentStatus}
    for status, count in (
        base.with_entities(OrganizationDocument.status, func.count(OrganizationDocument.id))
        .group_by(OrganizationDocument.status)
        .all()
    ):
        by_status[status.value] = count
    downloads = base.with_entities(func.coalesce(func.sum(OrganizationDocument.download_count), 0)).scalar()
    return {
        "total": sum(by_status.values()),
        "by_category": by_category,
        "by_status": by_status,
        "total_downloads": int(downloads or 0),
    }
