"""
Snapshot data models for the player tracking pipeline.

Provides immutable data transfer objects for skill records and stored
snapshots, plus the strict validation step applied to hiscores payloads.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from tracker.constants import SkillConstants


@dataclass(frozen=True)
class SkillRecord:
    """One skill's state at a point in time."""
    type: int
    level: int
    value: int  # XP * 10
    rank: Optional[int] = None  # None when unranked
    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)  # Record as received
    
    @property
    def xp(self) -> int:
        return self.value // SkillConstants.XP_SCALE
    
    def to_dict(self) -> Dict[str, Any]:
        if self.raw is not None:
            return dict(self.raw)
        data = {'type': self.type, 'level': self.level}
        if self.rank is not None:
            data['rank'] = self.rank
        data['value'] = self.value
        return data


@dataclass(frozen=True)
class SnapshotRecord:
    """One persisted sample of a player's stats."""
    id: int
    username: str
    created_at: datetime
    stats: List[SkillRecord]
    raw_stats: Optional[List[Dict[str, Any]]] = field(default=None, compare=False, repr=False)  # Column as stored
    
    @property
    def overall(self) -> Optional[SkillRecord]:
        return find_skill(self.stats, SkillConstants.OVERALL)
    
    def stored_stats_json(self) -> str:
        """The stats column serialized as stored, extra fields and key order included."""
        if self.raw_stats is not None:
            return json.dumps(self.raw_stats)
        return serialize_stats(self.stats)


@dataclass(frozen=True)
class PlayerNotFound:
    """The hiscores source confirmed the player does not exist."""
    username: str


def find_skill(stats: List[SkillRecord], skill_type: int) -> Optional[SkillRecord]:
    """Return the record for a skill type, if present."""
    return next((s for s in stats if s.type == skill_type), None)


def overall_value(stats: List[SkillRecord]) -> int:
    """Aggregate XP value (XP * 10), 0 when the Overall record is missing."""
    record = find_skill(stats, SkillConstants.OVERALL)
    return record.value if record else 0


def serialize_stats(stats: List[SkillRecord]) -> str:
    """
    Serialize a stat collection exactly as it is stored.
    
    Order sensitive: two collections with the same records in a different
    order serialize differently.
    """
    return json.dumps([s.to_dict() for s in stats])


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps from the store as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _require_int(item: Dict[str, Any], key: str, index: int) -> int:
    value = item.get(key)
    # bool is an int subclass but never a valid stat
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"record {index} field '{key}' must be an integer, got {value!r}")
    return value


def parse_stats_payload(payload: Any) -> List[SkillRecord]:
    """
    Validate a hiscores payload and convert it to skill records.
    
    Args:
        payload: Decoded JSON body from the hiscores source
        
    Returns:
        Skill records in payload order
        
    Raises:
        ValueError: If the payload is not a list of well-formed skill records,
            repeats a skill type, or lacks exactly one Overall record
    """
    if not isinstance(payload, list):
        raise ValueError(f"expected a list of skill records, got {type(payload).__name__}")
    
    records = []
    seen_types = set()
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            raise ValueError(f"record {index} is not an object")
        
        skill_type = _require_int(item, 'type', index)
        level = _require_int(item, 'level', index)
        value = _require_int(item, 'value', index)
        
        rank = item.get('rank')
        if rank is not None and (isinstance(rank, bool) or not isinstance(rank, int)):
            raise ValueError(f"record {index} field 'rank' must be an integer, got {rank!r}")
        
        if skill_type in seen_types:
            raise ValueError(f"duplicate record for skill type {skill_type}")
        seen_types.add(skill_type)
        
        records.append(SkillRecord(type=skill_type, level=level, value=value, rank=rank, raw=dict(item)))
    
    if SkillConstants.OVERALL not in seen_types:
        raise ValueError("missing Overall (type 0) record")
    
    return records
