"""Request, response and payload schemas."""

from .draft_v1 import (
    DraftRecordV1,
    DraftSaveRequest,
    Publishability,
    SaleDraftItem,
    SaleDraftPayload,
    SaleFormData,
    normalize_draft_key,
    payload_size,
)

__all__ = [
    "DraftRecordV1",
    "DraftSaveRequest",
    "Publishability",
    "SaleDraftItem",
    "SaleDraftPayload",
    "SaleFormData",
    "normalize_draft_key",
    "payload_size",
]
