import hmac
import logging
from typing import Annotated

from fastapi import Depends, Security, HTTPException
from fastapi.security import APIKeyHeader
from sqlalchemy import select

from washq.api.deps import DbSession
from washq.db.models import Business
from washq.settings import settings

logger = logging.getLogger(__name__)

API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)
ADMIN_KEY_HEADER = APIKeyHeader(name="X-Admin-Key", auto_error=False)

async def get_current_business(
    session: DbSession,
    api_key: str = Security(API_KEY_HEADER)
) -> Business:
    """Resolves the calling shop from its API key. Every business route is scoped by it."""
    if not api_key:
        raise HTTPException(status_code=403, detail="Missing API Key")

    stmt = select(Business).where(Business.api_key == api_key)
    business = await session.scalar(stmt)

    if not business:
        raise HTTPException(status_code=403, detail="Invalid API Key")

    return business

async def require_platform_admin(admin_key: str = Security(ADMIN_KEY_HEADER)) -> None:
    if not admin_key or not hmac.compare_digest(admin_key, settings.ADMIN_API_KEY):
        logger.warning("Rejected platform admin request with missing or invalid key")
        raise HTTPException(status_code=403, detail="Invalid Admin Key")

CurrentBusiness = Annotated[Business, Depends(get_current_business)]
