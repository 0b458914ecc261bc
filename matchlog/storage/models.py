"""
Database models for match record persistence.
"""
from datetime import datetime

from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class MatchRecord(Base):
    """
    One persisted value per key (the tracker uses a single 'match_state' key).
    """
    __tablename__ = "match_records"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<MatchRecord(key='{self.key}', updated_at={self.updated_at})>"
