"""
Snapshot comparison for history and delta views.

Summarizes what changed between two snapshots of the same player: total XP
gained plus a per-skill breakdown of XP and level changes.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List

from tracker.constants import SkillConstants
from tracker.data_models.snapshot import SnapshotRecord, find_skill


@dataclass(frozen=True)
class SkillChange:
    skill_type: int
    old_xp: int
    new_xp: int
    xp_diff: int
    old_level: int
    new_level: int
    level_diff: int
    
    @property
    def skill_name(self) -> str:
        return SkillConstants.skill_name(self.skill_type)


@dataclass(frozen=True)
class SnapshotSummary:
    total_xp_gained: int
    changes: List[SkillChange]
    last_snapshot_time: datetime


def compare_snapshots(old: SnapshotRecord, new: SnapshotRecord) -> SnapshotSummary:
    """
    Compare two snapshots and list every skill that changed.
    
    XP figures are real XP (stored value // 10). A skill missing from the
    older snapshot counts from 0 XP and the default level.
    """
    changes = []
    for record in new.stats:
        previous = find_skill(old.stats, record.type)
        old_xp = previous.xp if previous else 0
        old_level = previous.level if previous else SkillConstants.DEFAULT_LEVEL
        
        if old_xp == record.xp and old_level == record.level:
            continue
        
        changes.append(SkillChange(
            skill_type=record.type,
            old_xp=old_xp,
            new_xp=record.xp,
            xp_diff=record.xp - old_xp,
            old_level=old_level,
            new_level=record.level,
            level_diff=record.level - old_level,
        ))
    
    overall = next((c for c in changes if c.skill_type == SkillConstants.OVERALL), None)
    total_xp_gained = overall.xp_diff if overall else 0
    
    return SnapshotSummary(
        total_xp_gained=total_xp_gained,
        changes=changes,
        last_snapshot_time=old.created_at,
    )
