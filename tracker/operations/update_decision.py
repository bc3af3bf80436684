"""
Update decision policy.

Decides, from a player's two most recent stored snapshots and a freshly
fetched sample, whether the sample should be stored. Pure logic: no I/O,
the caller supplies the current time.

Skip conditions are evaluated in order and the first match wins:
1. Too recent: the last snapshot is younger than the minimum update interval
2. Inactive: the last snapshot is older than the inactivity threshold and the
   two most recent snapshots have identical serialized stats
3. No gain: the sample's Overall XP is not above the last snapshot's
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from tracker.config import Config
from tracker.constants import SkillConstants
from tracker.data_models.snapshot import (
    SkillRecord, SnapshotRecord, as_utc, overall_value
)


class UpdateAction(Enum):
    PROCEED_INSERT = "proceed_insert"
    SKIP_TOO_RECENT = "skip_too_recent"
    SKIP_INACTIVE = "skip_inactive"
    SKIP_NO_GAIN = "skip_no_gain"


@dataclass(frozen=True)
class UpdateDecision:
    action: UpdateAction
    xp_gained: int = 0
    is_new_player: bool = False
    xp_regression: bool = False  # Sample Overall XP below the stored one
    
    @property
    def is_skip(self) -> bool:
        return self.action is not UpdateAction.PROCEED_INSERT


class UpdateDecisionPolicy:
    """Business rules for whether a fetched sample becomes a snapshot."""
    
    def __init__(
        self,
        min_update_interval: Optional[timedelta] = None,
        inactivity_threshold: Optional[timedelta] = None,
    ):
        self.min_update_interval = (
            min_update_interval if min_update_interval is not None
            else timedelta(minutes=Config.MIN_UPDATE_INTERVAL_MINUTES)
        )
        self.inactivity_threshold = (
            inactivity_threshold if inactivity_threshold is not None
            else timedelta(days=Config.INACTIVITY_THRESHOLD_DAYS)
        )
    
    def check_schedule(
        self,
        previous: Optional[SnapshotRecord],
        previous_previous: Optional[SnapshotRecord],
        now: datetime,
    ) -> Optional[UpdateDecision]:
        """
        Apply the skip conditions that do not need a fresh sample.
        
        Used before fetching so a player that would be skipped anyway costs
        no upstream request.
        
        Returns:
            The skip decision, or None if the player should be fetched
        """
        if previous is None:
            return None
        
        age = as_utc(now) - as_utc(previous.created_at)
        
        if age < self.min_update_interval:
            return UpdateDecision(UpdateAction.SKIP_TOO_RECENT)
        
        if (
            age > self.inactivity_threshold
            and previous_previous is not None
            and previous.stored_stats_json() == previous_previous.stored_stats_json()
        ):
            return UpdateDecision(UpdateAction.SKIP_INACTIVE)
        
        return None
    
    def decide(
        self,
        previous: Optional[SnapshotRecord],
        previous_previous: Optional[SnapshotRecord],
        candidate_stats: List[SkillRecord],
        now: datetime,
    ) -> UpdateDecision:
        """
        Decide whether candidate_stats should be stored.
        
        Args:
            previous: Most recent stored snapshot, None for a new player
            previous_previous: Second most recent stored snapshot
            candidate_stats: Freshly fetched sample
            now: Current time
            
        Returns:
            UpdateDecision with the action and, when proceeding, real XP gained
        """
        if previous is None:
            return UpdateDecision(UpdateAction.PROCEED_INSERT, is_new_player=True)
        
        skip = self.check_schedule(previous, previous_previous, now)
        if skip is not None:
            return skip
        
        old_value = overall_value(previous.stats)
        new_value = overall_value(candidate_stats)
        if new_value <= old_value:
            return UpdateDecision(
                UpdateAction.SKIP_NO_GAIN,
                xp_regression=new_value < old_value
            )
        
        xp_gained = max(0, new_value - old_value) // SkillConstants.XP_SCALE
        return UpdateDecision(UpdateAction.PROCEED_INSERT, xp_gained=xp_gained)
