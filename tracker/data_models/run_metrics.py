"""
Run metrics data models for the update pipeline.

Each per-player unit of work settles into one PlayerOutcome. Outcomes are
reduced into RunMetrics after every unit has finished, in the order the
units completed.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from tracker.data_models.snapshot import SkillRecord


class UpdateStatus(Enum):
    UPDATED = "updated"
    SKIPPED = "skipped"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class NewPlayer:
    """A player stored for the first time during a run."""
    username: str
    stats: List[SkillRecord]
    observed_at: datetime


@dataclass(frozen=True)
class PlayerOutcome:
    """How one player's unit of work settled."""
    username: str
    status: UpdateStatus
    xp_gained: int = 0
    reason: Optional[str] = None
    new_player: Optional[NewPlayer] = None


@dataclass
class RunMetrics:
    """Counters for a single update run."""
    total_players: int = 0
    successful_updates: int = 0
    failed_updates: int = 0
    not_found_players: int = 0  # Included in failed_updates
    skipped_players: int = 0
    cancelled_players: int = 0
    total_xp_gained: int = 0
    most_recent_new_player: Optional[NewPlayer] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    
    def record(self, outcome: PlayerOutcome) -> None:
        """Fold one settled unit into the counters."""
        if outcome.status is UpdateStatus.UPDATED:
            self.successful_updates += 1
            self.total_xp_gained += outcome.xp_gained
            if outcome.new_player is not None:
                self.most_recent_new_player = outcome.new_player
        elif outcome.status is UpdateStatus.SKIPPED:
            self.skipped_players += 1
        elif outcome.status is UpdateStatus.CANCELLED:
            self.cancelled_players += 1
        else:
            self.failed_updates += 1
            if outcome.status is UpdateStatus.NOT_FOUND:
                self.not_found_players += 1
    
    @classmethod
    def from_outcomes(cls, total_players: int, outcomes: Iterable[PlayerOutcome]) -> 'RunMetrics':
        metrics = cls(total_players=total_players)
        for outcome in outcomes:
            metrics.record(outcome)
        return metrics
    
    @property
    def attempted_updates(self) -> int:
        return self.total_players - self.skipped_players - self.cancelled_players
    
    @property
    def success_rate(self) -> float:
        """Share of attempted updates that succeeded; 1.0 when nothing was attempted."""
        if self.attempted_updates <= 0:
            return 1.0
        return self.successful_updates / self.attempted_updates
    
    @property
    def duration_seconds(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()
    
    def passes_gate(self, threshold: float) -> bool:
        return self.success_rate >= threshold
