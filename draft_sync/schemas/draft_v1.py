"""
Sale draft payload and request/response schemas (V1).

These models are the payload-shape validator that runs before
reconciliation: anything that gets past them is safe to normalize.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, conint, constr, field_validator

# UUID v4, case-insensitive
DRAFT_KEY_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def normalize_draft_key(value: str) -> str:
    """Validate a draft key and return its canonical (lower-case) form."""
    if not isinstance(value, str) or not DRAFT_KEY_PATTERN.match(value.strip()):
        raise ValueError("draftKey must be a valid UUID v4")
    return value.strip().lower()


class SaleFormData(BaseModel):
    """Listing fields collected across the wizard steps. All optional while drafting."""

    model_config = ConfigDict(extra="forbid", allow_inf_nan=False)

    title: Optional[constr(max_length=200)] = None
    description: Optional[constr(max_length=5000)] = None
    address: Optional[constr(max_length=500)] = None
    city: Optional[constr(max_length=120)] = None
    state: Optional[constr(max_length=60)] = None
    zip_code: Optional[constr(max_length=20)] = None
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    date_start: Optional[constr(max_length=40)] = None
    time_start: Optional[constr(max_length=20)] = None
    date_end: Optional[constr(max_length=40)] = None
    time_end: Optional[constr(max_length=20)] = None
    duration_hours: Optional[float] = Field(default=None, ge=0, le=24 * 14)
    tags: List[constr(max_length=60)] = Field(default_factory=list, max_length=50)
    pricing_mode: Optional[constr(max_length=40)] = None


class SaleDraftItem(BaseModel):
    """One item listed for sale."""

    model_config = ConfigDict(extra="forbid", allow_inf_nan=False)

    id: Optional[constr(max_length=64)] = None
    name: constr(max_length=200) = ""
    price: Optional[float] = Field(default=None, ge=0)
    description: Optional[constr(max_length=2000)] = None
    image_url: Optional[constr(max_length=2000)] = None
    category: Optional[constr(max_length=60)] = None


class SaleDraftPayload(BaseModel):
    """Full form state of an in-progress listing."""

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "formData": {
                    "title": "Moving sale",
                    "city": "Portland",
                    "state": "OR",
                    "date_start": "2026-11-07",
                    "time_start": "08:00",
                    "tags": ["furniture", "tools"],
                },
                "photos": ["https://cdn.example.com/cover.jpg"],
                "items": [{"id": "tmp-1", "name": "Oak chair", "price": 25}],
                "currentStep": 2,
            }
        },
    )

    formData: SaleFormData = Field(default_factory=SaleFormData)
    photos: List[constr(max_length=2000)] = Field(default_factory=list, max_length=30)
    items: List[SaleDraftItem] = Field(default_factory=list, max_length=200)
    currentStep: Optional[conint(ge=0, le=20)] = None

    def to_document(self) -> Dict[str, Any]:
        """JSON-ready dict persisted as the draft payload."""
        return self.model_dump(mode="json", exclude_none=True)


class DraftSaveRequest(BaseModel):
    """Body of ``POST /api/drafts``."""

    model_config = ConfigDict(extra="forbid")

    draftKey: str
    payload: SaleDraftPayload
    ifVersion: Optional[conint(ge=1)] = None

    @field_validator("draftKey")
    @classmethod
    def check_draft_key(cls, value: str) -> str:
        return normalize_draft_key(value)


def payload_size(payload: Any) -> int:
    """Approximate serialized size of a payload in bytes."""
    return len(json.dumps(payload, separators=(",", ":"), default=str).encode("utf-8"))


class Publishability(BaseModel):
    """Whether a draft can be published, and what blocks it."""

    isPublishable: bool
    blockingErrors: Dict[str, str] = Field(default_factory=dict)


class DraftRecordV1(BaseModel):
    """Draft as returned by the read endpoints."""

    id: str
    draftKey: str
    title: Optional[str] = None
    payload: Dict[str, Any]
    version: int
    contentHash: str
    updatedAt: str
    publishability: Publishability
