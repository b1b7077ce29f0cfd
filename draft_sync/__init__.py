"""
Draft Sync

Autosave synchronization for in-progress sale listings: canonical content
hashing, versioned compare-and-swap storage and a debounced client scheduler.
"""

import importlib.metadata

__version__ = importlib.metadata.version("draft-sync")

from .errors import (
    AuthError,
    DraftSyncError,
    PayloadTooLargeError,
    PayloadValidationError,
    StorageError,
    TransportError,
)
from .normalizer import content_hash, normalize
from .outcomes import Conflict, NoOp, Outcome, RateLimited, Written
from .reconciler import Reconciler

__all__ = [
    "AuthError",
    "Conflict",
    "DraftSyncError",
    "NoOp",
    "Outcome",
    "PayloadTooLargeError",
    "PayloadValidationError",
    "RateLimited",
    "Reconciler",
    "StorageError",
    "TransportError",
    "Written",
    "content_hash",
    "normalize",
]
