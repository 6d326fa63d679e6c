"""Sync endpoints consumed by the client sync engine."""

from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from papertrail.api.sync.schemas import (
    PushRequest,
    PushResponse,
    SyncCompleteRequest,
    SyncDocumentsResponse,
)
from papertrail.config.logger import app_logger
from papertrail.config.settings import settings
from papertrail.db.db import get_session
from papertrail.errors import PaperTrailError
from papertrail.models.document import DocumentRecord
from papertrail.models.sync_history import SyncHistoryCreate, SyncHistoryRead
from papertrail.models.types import utcnow
from papertrail.services import document_sync
from papertrail.utils.auth import require_auth
from papertrail.utils.responses import SuccessResponse, success_response

router = APIRouter(prefix="/v1/sync", tags=["sync"])


@router.get("/documents", response_model=SuccessResponse[SyncDocumentsResponse])
async def documents_for_sync(
    since: Optional[datetime] = Query(default=None, description="Only documents updated strictly after this time"),
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    # Captured before the query and moved back by the overlap: pushes stamped
    # earlier may still be committing. Replaying a record is harmless
    server_time = utcnow() - timedelta(seconds=settings.SYNC_CURSOR_OVERLAP_SECONDS)
    documents = await document_sync.documents_for_sync(session, user_id, since)
    return success_response(
        data=SyncDocumentsResponse(
            documents=[DocumentRecord.model_validate(doc) for doc in documents],
            server_time=server_time,
        ),
        message=f"{len(documents)} documents to sync",
    )


@router.post("/push", response_model=SuccessResponse[PushResponse])
async def push_documents(
    body: PushRequest,
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    try:
        outcome = await document_sync.push_documents(session, user_id, body.device_id, body.documents)
        return success_response(
            data=PushResponse(
                accepted=[DocumentRecord.model_validate(doc) for doc in outcome.accepted],
                rejected=[DocumentRecord.model_validate(doc) for doc in outcome.rejected],
                skipped=outcome.skipped,
            ),
            message="Changes applied",
        )
    except (HTTPException, PaperTrailError):
        raise
    except Exception as e:
        app_logger.error(f"Push failed for user {user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to apply pushed documents",
        )


@router.post("/complete", response_model=SuccessResponse[SyncHistoryRead])
async def complete_sync(
    body: SyncCompleteRequest,
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    try:
        history = await document_sync.complete_sync(
            session, user_id, body.document_ids, body.device_id, body.action
        )
        return success_response(data=SyncHistoryRead.model_validate(history), message="Sync completed")
    except (HTTPException, PaperTrailError):
        raise
    except Exception as e:
        app_logger.error(f"Error completing sync for user {user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to complete sync",
        )


@router.post("/history", response_model=SuccessResponse[SyncHistoryRead], status_code=status.HTTP_201_CREATED)
async def record_sync_history(
    body: SyncHistoryCreate,
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    history = await document_sync.record_sync_history(session, user_id, body)
    return success_response(data=SyncHistoryRead.model_validate(history), message="Sync history recorded")


@router.get("/history", response_model=SuccessResponse[List[SyncHistoryRead]])
async def sync_history(
    limit: int = Query(default=10, ge=1, le=100),
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    entries = await document_sync.sync_history(session, user_id, limit)
    return success_response(data=[SyncHistoryRead.model_validate(e) for e in entries])


@router.get("/conflicts", response_model=SuccessResponse[List[DocumentRecord]])
async def sync_conflicts(
    user_id: UUID = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    documents = await document_sync.sync_conflicts(session, user_id)
    return success_response(data=[DocumentRecord.model_validate(doc) for doc in documents])
