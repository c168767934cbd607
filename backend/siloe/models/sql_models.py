from datetime import datetime
from uuid import uuid4

from sqlalchemy import BigInteger, Column, DateTime, Index, String, Text
from sqlalchemy.orm import declarative_base

# Base class for SQLAlchemy models
Base = declarative_base()


def generate_uuid():
    return str(uuid4())


class Study(Base):
    """SQLAlchemy model for generated SOAP studies."""

    __tablename__ = "studies"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(128), nullable=True)
    scripture = Column(Text, nullable=False)
    reference = Column(String(255), nullable=False)
    observation = Column(Text, nullable=False)
    application = Column(Text, nullable=False)
    prayer = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    # Expiry as epoch seconds; rows past it are hidden and purged
    ttl = Column(BigInteger, nullable=False, index=True)

    __table_args__ = (
        # Owner history lookup, newest first
        Index("ix_studies_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<Study(id='{self.id}', reference='{self.reference}')>"


class JournalEntry(Base):
    """SQLAlchemy model for a user's journal note on a study."""

    __tablename__ = "journal_entries"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(128), nullable=False)
    study_id = Column(String(36), nullable=False)
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_journal_user_timestamp", "user_id", "timestamp"),
        Index("ix_journal_user_study", "user_id", "study_id"),
    )

    def __repr__(self):
        return f"<JournalEntry(id='{self.id}', user_id='{self.user_id}')>"


class DeviceStorageEntry(Base):
    """Key-value pairs scoped to one device install."""

    __tablename__ = "device_storage"

    device_id = Column(String(128), primary_key=True)
    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<DeviceStorageEntry(device_id='{self.device_id}', key='{self.key}')>"
