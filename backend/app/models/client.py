"""
Client database model.

Clients are the payers that invoices, parcels and payments reference.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Client(Base):
    """
    Client model.
    
    Minimal payer record; the rest of the client profile lives in the
    CRUD layer outside the ledger.
    """
    __tablename__ = "clients"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(Integer, index=True, nullable=False)
    
    name = Column(String(200), nullable=False)
    phone = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Client(id={self.id}, name='{self.name}')>"
