"""
SQLAlchemy models for Draft Sync.
"""

from typing import Any, Dict

from sqlalchemy import JSON, Column, DateTime, Enum, Index, Integer, String, text
from sqlalchemy.sql import func

from ..outcomes import to_iso
from .base import Base

draft_status_enum = Enum("active", "archived", name="draft_status")


class DraftModel(Base):
    """One in-progress sale listing per (owner, draft key) while active.

    ``version`` and ``content_hash`` are only ever changed together, by the
    reconciler's guarded UPDATE.
    """

    __tablename__ = "sale_drafts"

    # ULID
    id = Column(String(36), primary_key=True)

    owner_id = Column(String(128), nullable=False, index=True)
    draft_key = Column(String(64), nullable=False)

    # Denormalized formData.title for dashboard listings
    title = Column(String(200), nullable=True)

    payload = Column(JSON, nullable=False, default=dict)
    content_hash = Column(String(64), nullable=False)
    version = Column(Integer, nullable=False, default=1)

    status = Column(draft_status_enum, nullable=False, default="active", index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    # Read by the external reaper
    expires_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        # At most one active row per (owner, key); archived rows don't count
        Index(
            "uq_sale_drafts_owner_key_active",
            "owner_id",
            "draft_key",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("ix_sale_drafts_owner_status_updated", "owner_id", "status", "updated_at"),
        Index("ix_sale_drafts_expires_at", "expires_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "ownerId": self.owner_id,
            "draftKey": self.draft_key,
            "title": self.title,
            "payload": self.payload,
            "contentHash": self.content_hash,
            "version": self.version,
            "status": self.status,
            "createdAt": to_iso(self.created_at) if self.created_at else None,
            "updatedAt": to_iso(self.updated_at) if self.updated_at else None,
            "expiresAt": to_iso(self.expires_at) if self.expires_at else None,
        }
