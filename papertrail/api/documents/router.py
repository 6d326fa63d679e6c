"""Document CRUD and query endpoints (server copy, scoped to the caller)."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from papertrail.config.logger import app_logger
from papertrail.config.settings import settings
from papertrail.db.db import get_session
from papertrail.errors import NotFoundError, PaperTrailError, ValidationError
from papertrail.models.document import (
    Category,
    DocumentCreate,
    DocumentRecord,
    DocumentStats,
    DocumentUpdate,
)
from papertrail.services import document_store
from papertrail.utils.auth import require_auth
from papertrail.utils.responses import SuccessResponse, success_response

router = APIRouter(prefix="/v1/documents", tags=["documents"])


def _records(documents) -> List[DocumentRecord]:
    return [DocumentRecord.model_validate(doc) for doc in documents]


@router.get("", response_model=SuccessResponse[List[DocumentRecord]])
async def list_documents(
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    """All live documents, most recently updated first."""
    documents = await document_store.list_documents(session, user_id)
    return success_response(data=_records(documents), message="Documents retrieved successfully")


@router.get("/search", response_model=SuccessResponse[List[DocumentRecord]])
async def search_documents(
    q: Optional[str] = Query(default=None, description="Case-insensitive search text"),
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    if not q:
        raise ValidationError("Search query is required")
    documents = await document_store.search_documents(session, q, user_id)
    return success_response(data=_records(documents), message=f"{len(documents)} documents matched")


@router.get("/category/{category}", response_model=SuccessResponse[List[DocumentRecord]])
async def documents_by_category(
    category: Category,
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    documents = await document_store.documents_by_category(session, category, user_id)
    return success_response(data=_records(documents))


@router.get("/expiring", response_model=SuccessResponse[List[DocumentRecord]])
async def expiring_documents(
    days: int = Query(default=settings.DEFAULT_EXPIRING_DAYS, ge=0, le=3650),
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    """Documents whose expiration date falls within the next `days` days."""
    documents = await document_store.expiring_documents(session, days, user_id)
    return success_response(data=_records(documents))


@router.get("/stats", response_model=SuccessResponse[DocumentStats])
async def document_stats(
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    stats = await document_store.document_stats(session, user_id)
    return success_response(data=stats)


@router.get("/{document_id}", response_model=SuccessResponse[DocumentRecord])
async def get_document(
    document_id: str,
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    document = await document_store.get_document(session, document_id, user_id)
    return success_response(data=DocumentRecord.model_validate(document))


@router.post("", response_model=SuccessResponse[DocumentRecord], status_code=status.HTTP_201_CREATED)
async def create_document(
    request: DocumentCreate,
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
    device_id: Optional[str] = Header(default=None, alias="X-Device-Id"),
):
    try:
        document = await document_store.create_document(session, user_id, request, device_id)
        return success_response(data=DocumentRecord.model_validate(document), message="Document created")
    except (HTTPException, PaperTrailError):
        raise
    except Exception as e:
        app_logger.error(f"Create document failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create document",
        )


@router.patch("/{document_id}", response_model=SuccessResponse[DocumentRecord])
async def update_document(
    document_id: str,
    request: DocumentUpdate,
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
    device_id: Optional[str] = Header(default=None, alias="X-Device-Id"),
):
    try:
        document = await document_store.update_document(session, document_id, user_id, request, device_id)
        return success_response(data=DocumentRecord.model_validate(document), message="Document updated")
    except (HTTPException, PaperTrailError):
        raise
    except Exception as e:
        app_logger.error(f"Update document {document_id} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update document",
        )


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: str,
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    if not await document_store.delete_document(session, document_id, user_id):
        raise NotFoundError(f"Document {document_id} not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
