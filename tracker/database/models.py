from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

class Snapshot(Base):
    """One persisted sample of a player's stats. Rows are append-only."""
    __tablename__ = 'snapshots'
    
    id = Column(Integer, primary_key=True)
    username = Column(String(100), nullable=False, index=True)  # Display casing as observed
    
    # Assigned by the database on insert
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now(), index=True)
    
    # List of {type, level, rank, value} records
    stats = Column(JSON, nullable=False)
    
    def __repr__(self):
        return f"<Snapshot(id={self.id}, username='{self.username}', created_at={self.created_at})>"
