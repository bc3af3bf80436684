from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from tracker.config import Config
from tracker.data_models.snapshot import SkillRecord, SnapshotRecord, as_utc, parse_stats_payload
from tracker.database.models import Base, Snapshot
from tracker.utils.exceptions import StoreError
from tracker.utils.logger import setup_logger

class Database:
    """Snapshot store backed by an async SQLAlchemy engine."""
    
    def __init__(self, database_url: Optional[str] = None):
        self.logger = setup_logger(__name__)
        self.database_url = database_url or Config.DATABASE_URL
        self.engine = None
        self.async_session = None
        
    async def initialize(self):
        """Initialize the database connection and create tables"""
        self.logger.info("Initializing database...")
        
        # Convert sqlite URL to async if needed
        database_url = self.database_url
        if database_url.startswith('sqlite:///'):
            database_url = database_url.replace('sqlite:///', 'sqlite+aiosqlite:///')
        
        engine_options = {'echo': Config.DEBUG}
        if database_url.endswith(':memory:'):
            # Every connection to :memory: is a new database, share one
            engine_options['poolclass'] = StaticPool
            engine_options['connect_args'] = {'check_same_thread': False}
        
        try:
            self.engine = create_async_engine(database_url, **engine_options)
            
            self.async_session = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )
            
            # Create all tables
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StoreError("initialize", str(e)) from e
            
        self.logger.info("Database initialized successfully")
    
    @property
    def session_factory(self):
        return self.async_session
    
    @asynccontextmanager
    async def get_session(self):
        """Get a database session"""
        if self.async_session is None:
            raise StoreError("get_session", "database not initialized")
        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()
    
    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()
            self.logger.info("Database connection closed")
    
    @staticmethod
    def _to_record(snapshot: Snapshot) -> SnapshotRecord:
        try:
            stats = parse_stats_payload(snapshot.stats)
        except ValueError as e:
            raise StoreError("decode", f"snapshot {snapshot.id} has invalid stats: {e}") from e
        return SnapshotRecord(
            id=snapshot.id,
            username=snapshot.username,
            created_at=as_utc(snapshot.created_at),
            stats=stats,
            raw_stats=snapshot.stats,
        )
    
    # Snapshot operations
    async def latest_snapshots(self, username: str, n: int = 2) -> List[SnapshotRecord]:
        """Get up to n most recent snapshots for a player, newest first"""
        try:
            async with self.get_session() as session:
                result = await session.execute(
                    select(Snapshot)
                    .where(func.lower(Snapshot.username) == username.lower())
                    .order_by(Snapshot.created_at.desc(), Snapshot.id.desc())
                    .limit(n)
                )
                snapshots = result.scalars().all()
        except SQLAlchemyError as e:
            raise StoreError("latest_snapshots", str(e)) from e
        return [self._to_record(s) for s in snapshots]
    
    async def insert_snapshot(self, username: str, stats: List[SkillRecord]) -> SnapshotRecord:
        """Append a new snapshot; id and created_at are assigned by the database"""
        try:
            async with self.get_session() as session:
                snapshot = Snapshot(
                    username=username,
                    stats=[s.to_dict() for s in stats]
                )
                session.add(snapshot)
                await session.commit()
                await session.refresh(snapshot)
        except SQLAlchemyError as e:
            raise StoreError("insert_snapshot", str(e)) from e
        
        self.logger.debug(f"Inserted snapshot {snapshot.id} for {username}")
        return self._to_record(snapshot)
    
    async def list_distinct_usernames(self) -> List[str]:
        """
        Get every tracked username.
        
        Usernames are deduplicated case-insensitively, keeping the casing and
        order of each player's first snapshot.
        """
        try:
            async with self.get_session() as session:
                result = await session.execute(
                    select(Snapshot.username)
                    .order_by(Snapshot.created_at.asc(), Snapshot.id.asc())
                )
                usernames = result.scalars().all()
        except SQLAlchemyError as e:
            raise StoreError("list_distinct_usernames", str(e)) from e
        
        seen: Dict[str, str] = {}
        for username in usernames:
            seen.setdefault(username.lower(), username)
        return list(seen.values())
    
    # Read views
    async def get_history(self, username: str) -> List[SnapshotRecord]:
        """Get all snapshots for a player, oldest first"""
        try:
            async with self.get_session() as session:
                result = await session.execute(
                    select(Snapshot)
                    .where(func.lower(Snapshot.username) == username.lower())
                    .order_by(Snapshot.created_at.asc(), Snapshot.id.asc())
                )
                snapshots = result.scalars().all()
        except SQLAlchemyError as e:
            raise StoreError("get_history", str(e)) from e
        return [self._to_record(s) for s in snapshots]
    
    async def count_distinct_players(self) -> int:
        """Count tracked players, ignoring username casing"""
        try:
            async with self.get_session() as session:
                result = await session.execute(
                    select(func.count(func.distinct(func.lower(Snapshot.username))))
                )
                return result.scalar() or 0
        except SQLAlchemyError as e:
            raise StoreError("count_distinct_players", str(e)) from e
    
    async def get_recently_added_players(self, limit: int = 5) -> List[SnapshotRecord]:
        """
        Get the most recently added players with their latest stats.
        
        Players are ordered by their first snapshot, newest first; each entry
        is that player's most recent snapshot.
        """
        try:
            async with self.get_session() as session:
                result = await session.execute(
                    select(Snapshot).order_by(Snapshot.created_at.asc(), Snapshot.id.asc())
                )
                snapshots = result.scalars().all()
        except SQLAlchemyError as e:
            raise StoreError("get_recently_added_players", str(e)) from e
        
        first_seen: Dict[str, Snapshot] = {}
        latest: Dict[str, Snapshot] = {}
        for snapshot in snapshots:
            key = snapshot.username.lower()
            first_seen.setdefault(key, snapshot)
            latest[key] = snapshot
        
        # Insertion order of first_seen is first-appearance order
        recent_keys = list(first_seen.keys())[::-1][:limit]
        return [self._to_record(latest[key]) for key in recent_keys]
