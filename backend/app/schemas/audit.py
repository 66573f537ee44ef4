"""
Audit trail schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Any, Dict, Optional


class AuditLogResponse(BaseModel):
    id: int
    actor_id: Optional[int]
    actor_username: Optional[str]
    action: str
    entity_type: Optional[str]
    entity_id: Optional[int]
    meta_data: Optional[Dict[str, Any]]
    timestamp: datetime
    
    class Config:
        from_attributes = True
