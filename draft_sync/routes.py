"""
Draft API routes.

All endpoints are prefixed with /api/drafts and require a bearer token.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .auth import get_current_owner
from .config import get_settings
from .db.base import get_db
from .db.models import DraftModel
from .db.services import DraftStore
from .errors import PayloadTooLargeError, PayloadValidationError
from .outcomes import Conflict, RateLimited, to_iso
from .publishability import compute_publishability
from .ratelimit import WriteRateLimiter, archive_policies, get_rate_limiter
from .reconciler import Reconciler
from .schemas.draft_v1 import (
    DraftRecordV1,
    DraftSaveRequest,
    Publishability,
    normalize_draft_key,
    payload_size,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/drafts", tags=["drafts"])


def _record(draft: DraftModel) -> Dict[str, Any]:
    return DraftRecordV1(
        id=draft.id,
        draftKey=draft.draft_key,
        title=draft.title,
        payload=draft.payload,
        version=draft.version,
        contentHash=draft.content_hash,
        updatedAt=to_iso(draft.updated_at),
        publishability=Publishability(**compute_publishability(draft.payload)),
    ).model_dump()


def _draft_key_param(draft_key: str) -> str:
    try:
        return normalize_draft_key(draft_key)
    except ValueError as e:
        raise PayloadValidationError(str(e)) from e


@router.post(
    "",
    responses={
        200: {"description": "Saved (noop=true when content was unchanged)"},
        400: {"description": "Invalid or oversized payload"},
        401: {"description": "Authentication required"},
        409: {"description": "Version conflict"},
        429: {"description": "Write budget exhausted"},
    },
)
async def save_draft(
    request: DraftSaveRequest,
    owner_id: str = Depends(get_current_owner),
    db: Session = Depends(get_db),
    rate_limiter: WriteRateLimiter = Depends(get_rate_limiter),
) -> JSONResponse:
    """
    Save the in-progress draft.

    Unchanged content (after normalization) is acknowledged without a write
    and without spending write budget. Pass ``ifVersion`` to refuse
    overwriting a version you have not seen.
    """
    settings = get_settings()
    payload = request.payload.to_document()

    size = payload_size(payload)
    if size > settings.max_draft_payload_bytes:
        logger.warning(
            "draft.payload_too_large",
            owner_id=owner_id,
            payload_size=size,
            max_size=settings.max_draft_payload_bytes,
        )
        raise PayloadTooLargeError(
            f"Draft payload exceeds maximum size of "
            f"{settings.max_draft_payload_bytes // 1024}KB"
        )

    reconciler = Reconciler(db, rate_limiter, settings=settings)
    outcome = reconciler.reconcile(
        owner_id=owner_id,
        draft_key=request.draftKey,
        payload=payload,
        if_version=request.ifVersion,
    )

    if isinstance(outcome, Conflict):
        return JSONResponse(status_code=409, content=outcome.to_dict())
    if isinstance(outcome, RateLimited):
        return JSONResponse(
            status_code=429,
            content=outcome.to_dict(),
            headers={"Retry-After": str(outcome.retry_after)},
        )
    return JSONResponse(status_code=200, content=outcome.to_dict())


@router.get("")
async def get_drafts(
    draft_key: Optional[str] = Query(None, alias="draftKey"),
    all_drafts: bool = Query(False, alias="all"),
    owner_id: str = Depends(get_current_owner),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Latest active draft, a specific one (``draftKey``), or all (``all=true``)."""
    store = DraftStore(db)

    if all_drafts:
        drafts = store.list_active(owner_id, limit=get_settings().draft_list_limit)
        return {"ok": True, "data": [_record(d) for d in drafts]}

    if draft_key:
        draft = store.get_active(owner_id, _draft_key_param(draft_key))
    else:
        draft = store.latest(owner_id)

    return {"ok": True, "data": _record(draft) if draft else None}


@router.delete(
    "",
    responses={
        401: {"description": "Authentication required"},
        429: {"description": "Mutation budget exhausted"},
    },
)
async def archive_draft(
    draft_key: str = Query(..., alias="draftKey"),
    owner_id: str = Depends(get_current_owner),
    db: Session = Depends(get_db),
    rate_limiter: WriteRateLimiter = Depends(get_rate_limiter),
) -> Any:
    """Archive a draft. Archiving twice is harmless but counts against the budget."""
    key = _draft_key_param(draft_key)
    decision = rate_limiter.hit(owner_id, archive_policies())
    if not decision.allowed:
        outcome = RateLimited(decision.retry_after)
        return JSONResponse(
            status_code=429,
            content=outcome.to_dict(),
            headers={"Retry-After": str(outcome.retry_after)},
        )

    archived = DraftStore(db).archive(owner_id, key)
    return {"ok": True, "data": {"archived": archived}}
