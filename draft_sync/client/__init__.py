"""
Client side of draft synchronization: the autosave scheduler and its transport.
"""

from .scheduler import AutosaveScheduler, ConflictResolution, SaveState
from .transport import DraftTransport, HttpDraftTransport

__all__ = [
    "AutosaveScheduler",
    "ConflictResolution",
    "DraftTransport",
    "HttpDraftTransport",
    "SaveState",
]
