"""Domain models for the sync coordinator status."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class SyncPhase(StrEnum):
    """Lifecycle of a sync pass."""

    IDLE = "idle"
    SYNCING = "syncing"
    OFFLINE = "offline"
    ERROR = "error"


@dataclass(frozen=True)
class SyncState:
    """Process-wide sync status published to consumers."""

    phase: SyncPhase = SyncPhase.IDLE
    message: str | None = None
    pending_count: int = 0
    last_synced_at: datetime | None = None
