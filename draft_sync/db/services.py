"""
Database services for Draft Sync.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import desc, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import StorageError
from .models import DraftModel

logger = structlog.get_logger(__name__)


class DuplicateDraftError(Exception):
    """An active row for (owner, key) appeared between lookup and insert."""


def _title_of(payload: Dict[str, Any]) -> Optional[str]:
    title = (payload.get("formData") or {}).get("title")
    if not isinstance(title, str) or not title.strip():
        return None
    return title.strip()[:200]


class DraftStore:
    """Persistence for sale drafts.

    Rows are mutated only through ``insert``, ``compare_and_swap`` and
    ``archive``. Every method commits or rolls back before returning, and
    any SQLAlchemy failure other than a uniqueness race surfaces as
    ``StorageError``.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_active(self, owner_id: str, draft_key: str) -> Optional[DraftModel]:
        """Get the active draft for (owner, key)."""
        try:
            return (
                self.db.query(DraftModel)
                .filter(
                    DraftModel.owner_id == owner_id,
                    DraftModel.draft_key == draft_key,
                    DraftModel.status == "active",
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to load draft") from e

    def refetch_active(self, owner_id: str, draft_key: str) -> Optional[DraftModel]:
        """Like ``get_active`` but bypasses anything cached in the session."""
        self.db.expire_all()
        return self.get_active(owner_id, draft_key)

    def latest(self, owner_id: str) -> Optional[DraftModel]:
        """Most recently updated active draft for an owner."""
        drafts = self.list_active(owner_id, limit=1)
        return drafts[0] if drafts else None

    def list_active(self, owner_id: str, limit: int = 50) -> List[DraftModel]:
        """Active drafts for an owner, newest first."""
        try:
            return (
                self.db.query(DraftModel)
                .filter(DraftModel.owner_id == owner_id, DraftModel.status == "active")
                .order_by(desc(DraftModel.updated_at))
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to list drafts") from e

    def insert(
        self,
        draft_id: str,
        owner_id: str,
        draft_key: str,
        payload: Dict[str, Any],
        content_hash: str,
        now: datetime,
        expires_at: datetime,
    ) -> DraftModel:
        """Create the version-1 row for a never-seen (owner, key).

        Raises:
            DuplicateDraftError: a concurrent create won the unique index
            StorageError: any other persistence failure
        """
        draft = DraftModel(
            id=draft_id,
            owner_id=owner_id,
            draft_key=draft_key,
            title=_title_of(payload),
            payload=payload,
            content_hash=content_hash,
            version=1,
            status="active",
            created_at=now,
            updated_at=now,
            expires_at=expires_at,
        )
        try:
            self.db.add(draft)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateDraftError(f"{owner_id}/{draft_key}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to create draft") from e

        self.db.refresh(draft)
        return draft

    def compare_and_swap(
        self,
        draft_id: str,
        expected_version: int,
        payload: Dict[str, Any],
        content_hash: str,
        now: datetime,
        expires_at: datetime,
    ) -> bool:
        """Replace payload and bump version iff the row is still at ``expected_version``.

        Returns:
            True if exactly one row was updated, False if another writer got
            there first (or the row was archived meanwhile).
        """
        stmt = (
            update(DraftModel)
            .where(
                DraftModel.id == draft_id,
                DraftModel.version == expected_version,
                DraftModel.status == "active",
            )
            .values(
                payload=payload,
                title=_title_of(payload),
                content_hash=content_hash,
                version=expected_version + 1,
                updated_at=now,
                expires_at=expires_at,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to update draft") from e

        return result.rowcount == 1

    def archive(self, owner_id: str, draft_key: str) -> int:
        """Archive the active draft for (owner, key). Returns rows affected."""
        stmt = (
            update(DraftModel)
            .where(
                DraftModel.owner_id == owner_id,
                DraftModel.draft_key == draft_key,
                DraftModel.status == "active",
            )
            .values(status="archived")
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to archive draft") from e

        if result.rowcount:
            logger.info("draft.archived", owner_id=owner_id, draft_key=draft_key)
        return result.rowcount
