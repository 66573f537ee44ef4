"""
Tenant context.

Every ledger operation receives the already-authorized organization it
acts for; every query filters on it.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class TenantContext:
    organization_id: int
    actor_id: Optional[int] = None
    actor_username: Optional[str] = None
