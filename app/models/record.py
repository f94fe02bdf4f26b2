from sqlalchemy import Column, Integer, String, DateTime, JSON, UniqueConstraint
from sqlalchemy.sql import func

from ..core.database import Base

class StoredRecord(Base):
    """One record of a named collection in the durable key-value store."""
    __tablename__ = "stored_records"
    __table_args__ = (
        UniqueConstraint("collection", "record_key", name="uq_stored_records_collection_key"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    collection = Column(String(100), nullable=False, index=True)
    record_key = Column(String(255), nullable=False)
    payload = Column(JSON, nullable=False)
    
    # Timestamps
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    
    def __repr__(self):
        return f"<StoredRecord(collection='{self.collection}', key='{self.record_key}')>"
