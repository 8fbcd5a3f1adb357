from sqlalchemy import Boolean, Column, Integer, String, DateTime, Text, JSON
from datetime import datetime, timezone
from .database import Base

#the maintenance toggle is a single row pinned to this primary key
MAINTENANCE_STATE_ID = 1


def utcnow():
    return datetime.now(timezone.utc)

# ============= MAINTENANCE MODEL =============

class MaintenanceState(Base):
    __tablename__ = "maintenance_state"

    id = Column(Integer, primary_key=True, default=MAINTENANCE_STATE_ID)
    enabled = Column(Boolean, default=False, nullable=False)
    message = Column(Text, nullable=False)

    #opaque client payload, surfaced verbatim
    data = Column(JSON, nullable=True)

    #bumped by exactly one on every successful write (compare-and-set)
    revision = Column(Integer, default=0, nullable=False)

    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_by = Column(String(100), nullable=True)
