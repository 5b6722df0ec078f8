"""
Sync Protocol Types

Data structures shared by the orchestrator, the scheduler and the CLI.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List

from ..models import LogEntry


class SyncState(Enum):
    """
    Orchestrator sync state.

    IDLE: No pass running, last pass succeeded (or none has run yet)
    SYNCING: A pass is in flight; further passes are rejected
    FAILED: Last pass failed; stays set until a pass succeeds or the
            orchestrator is reconfigured
    """
    IDLE = "idle"
    SYNCING = "syncing"
    FAILED = "failed"


@dataclass
class SyncResult:
    """
    Outcome of one sync pass.

    Attributes:
        success: Whether the pass completed
        new_active: Reconciled active entries (success only)
        new_trash: Reconciled trash entries (success only)
        message: Diagnostic text on failure
        retryable: Whether the failure is transient (timeout, 5xx)
        stats: Merge counters (success only)
        finished_at: When the pass ended
    """
    success: bool
    new_active: List[LogEntry] = field(default_factory=list)
    new_trash: List[LogEntry] = field(default_factory=list)
    message: Optional[str] = None
    retryable: bool = False
    stats: Optional[Dict[str, int]] = None
    finished_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def failure(cls, message: str, retryable: bool = False) -> "SyncResult":
        return cls(success=False, message=message, retryable=retryable)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        if not self.success:
            return {
                "success": False,
                "message": self.message,
                "retryable": self.retryable,
            }
        return {
            "success": True,
            "newActive": [e.to_dict() for e in self.new_active],
            "newTrash": [e.to_dict() for e in self.new_trash],
            "stats": self.stats or {},
        }
