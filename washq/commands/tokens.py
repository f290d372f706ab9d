from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from washq.db.models import Job
from washq.domain.scheduling import day_start, format_token
from washq.settings import settings


async def count_jobs_since(session: AsyncSession, business_id: str, since: datetime) -> int:
    stmt = select(func.count(Job.id)).where(
        Job.business_id == business_id,
        Job.created_at >= since
    )
    return (await session.execute(stmt)).scalar_one()


async def generate_token(session: AsyncSession, business_id: str, now: datetime) -> str:
    """
    Next YYYYMMDD-NNN token for `business_id` on `now`'s day.

    Counting based: two unserialized creates can see the same count. Job
    creation holds the per-business lock around this call to avoid that.
    """
    jobs_today = await count_jobs_since(session, business_id, day_start(now))
    return format_token(now, jobs_today, width=settings.TOKEN_SEQUENCE_WIDTH)
