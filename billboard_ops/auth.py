"""
Tenant context for core operations.

Authentication is handled by the upstream identity provider, which forwards
the verified company and user ids as headers. Core operations never read
tenant state from globals; they receive a TenantContext explicitly.
"""

import logging
from typing import Optional

from fastapi import Header, HTTPException
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class TenantContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    company_id: str
    user_id: Optional[str] = None


async def get_tenant_context(
    x_company_id: Optional[str] = Header(default=None),
    x_user_id: Optional[str] = Header(default=None),
) -> TenantContext:
    """Build the tenant context from identity-provider headers"""
    if not x_company_id or not x_company_id.strip():
        logger.warning("❌ Request without X-Company-Id header")
        raise HTTPException(status_code=401, detail="Missing company context")
    return TenantContext(company_id=x_company_id.strip(), user_id=(x_user_id or "").strip() or None)
