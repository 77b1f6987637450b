
# ============================================================================
# FILE: app/db/models/migration.py
# ============================================================================
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from app.db.base import Base

class MigrationEvent(Base):
    """Records that a client's local state was uploaded, keyed by its content hash"""
    __tablename__ = "migration_events"
    __table_args__ = (
        UniqueConstraint("user_id", "client_migration_key", name="uq_migration_events_user_key"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    client_migration_key = Column(String(256), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

class UserSettings(Base):
    """Per-user settings"""
    __tablename__ = "user_settings"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    local_migration_completed_at = Column(DateTime, nullable=True)
    
    # Relationships
    user = relationship("User", back_populates="settings")
