from sqlalchemy import Column, String, Text, DateTime
from datetime import datetime
from database import Base


class Setting(Base):
    """
    Runtime setting stored as a key/value pair.

    Broadcast jobs are deliberately not persisted; this table only carries
    configuration (backend selection, binary paths, PM2 tagging, intervals).
    """
    __tablename__ = 'settings'

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
