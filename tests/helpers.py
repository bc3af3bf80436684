import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from tracker.data_models.snapshot import PlayerNotFound, SkillRecord, SnapshotRecord
from tracker.utils.exceptions import StoreError

NOW = datetime(2025, 3, 25, 12, 0, tzinfo=timezone.utc)


def make_stats(overall_value: int, attack_value: int = 0, overall_level: int = 32) -> List[SkillRecord]:
    """A small stat collection: Overall, Attack and an unranked Defence."""
    return [
        SkillRecord(type=0, level=overall_level, value=overall_value, rank=1500),
        SkillRecord(type=1, level=10, value=attack_value, rank=2200),
        SkillRecord(type=2, level=1, value=0),
    ]


def make_payload(overall_value: int) -> List[dict]:
    return [s.to_dict() for s in make_stats(overall_value)]


def make_snapshot(username: str, overall_value: int, age: timedelta, snapshot_id: int = 1,
                  stats: Optional[List[SkillRecord]] = None) -> SnapshotRecord:
    return SnapshotRecord(
        id=snapshot_id,
        username=username,
        created_at=NOW - age,
        stats=stats if stats is not None else make_stats(overall_value),
    )


class FakeResponse:
    def __init__(self, status: int, payload=None, json_error: Exception = None):
        self.status = status
        self.payload = payload
        self.json_error = json_error
    
    async def json(self, content_type='application/json'):
        if self.json_error is not None:
            raise self.json_error
        return self.payload


class _RequestContext:
    def __init__(self, outcome):
        self.outcome = outcome
    
    async def __aenter__(self):
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome
    
    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Stands in for aiohttp.ClientSession; answers requests from a script."""
    
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.requested_urls: List[str] = []
        self.closed = False
    
    def get(self, url, **kwargs):
        self.requested_urls.append(url)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        return _RequestContext(outcome)
    
    async def close(self):
        self.closed = True


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []
    
    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeStore:
    """In-process snapshot store keyed by lowercase username."""
    
    def __init__(self, snapshots: Optional[List[SnapshotRecord]] = None, now: datetime = NOW):
        self.snapshots: List[SnapshotRecord] = list(snapshots or [])
        self.now = now
        self.inserted: List[SnapshotRecord] = []
        self.failing_reads = set()
        self.failing_inserts = set()
        self.list_error: Optional[StoreError] = None
        self.listed_without_history: List[str] = []
    
    async def list_distinct_usernames(self) -> List[str]:
        if self.list_error is not None:
            raise self.list_error
        seen: Dict[str, str] = {}
        for snapshot in sorted(self.snapshots, key=lambda s: (s.created_at, s.id)):
            seen.setdefault(snapshot.username.lower(), snapshot.username)
        return list(seen.values()) + self.listed_without_history
    
    async def latest_snapshots(self, username: str, n: int = 2) -> List[SnapshotRecord]:
        if username.lower() in self.failing_reads:
            raise StoreError("latest_snapshots", "connection reset")
        matching = [s for s in self.snapshots if s.username.lower() == username.lower()]
        matching.sort(key=lambda s: (s.created_at, s.id), reverse=True)
        return matching[:n]
    
    async def insert_snapshot(self, username: str, stats: List[SkillRecord]) -> SnapshotRecord:
        if username.lower() in self.failing_inserts:
            raise StoreError("insert_snapshot", "write rejected")
        snapshot = SnapshotRecord(
            id=len(self.snapshots) + 1,
            username=username,
            created_at=self.now,
            stats=list(stats),
        )
        self.snapshots.append(snapshot)
        self.inserted.append(snapshot)
        return snapshot


class FakeClient:
    """Stands in for HiscoresClient; results keyed by lowercase username."""
    
    def __init__(self, results: Dict[str, object], delay: float = 0.0):
        self.results = {name.lower(): result for name, result in results.items()}
        self.delay = delay
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
    
    async def fetch_stats(self, username: str):
        self.calls.append(username)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            result = self.results.get(username.lower(), PlayerNotFound(username))
            if isinstance(result, BaseException):
                raise result
            return result
        finally:
            self.in_flight -= 1
