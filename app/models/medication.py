from sqlalchemy import Column, String, Float, DateTime
from sqlalchemy.sql import func

from ..core.database import Base

class Medication(Base):
    __tablename__ = "medications"
    
    id = Column(String(50), primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Float, nullable=False, default=0.0)
    
    created_at = Column(DateTime, server_default=func.now())
    
    def __repr__(self):
        return f"<Medication(id='{self.id}', name='{self.name}', price={self.price})>"
