"""
Audit Log Database Model.

Append-only trail of ledger actions, written in the same unit of work as
the action itself.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for ledger actions.
    
    Events logged:
    - ACCOUNT_CREATED / ACCOUNT_DEACTIVATED
    - TRANSACTION_CREATED / TRANSACTION_DELETED
    - PAYMENT_RECORDED / PAYMENT_DELETED
    - CLIENT_CREATED / PARCEL_CREATED
    - INVOICE_CREATED / INVOICE_TRANSITIONED / INVOICE_SENT
    - PENDING_CREATED / PENDING_CONFIRMED / PENDING_CANCELLED
    """
    __tablename__ = "audit_logs"
    __mapper_args__ = {"eager_defaults": True}
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    organization_id = Column(Integer, index=True, nullable=False)
    
    # Who performed the action (None for system/agent actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)
    
    # What action was performed, on what
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(Integer, nullable=True, index=True)
    
    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)
    
    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    
    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity={self.entity_type}:{self.entity_id})>"
