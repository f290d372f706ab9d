from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from washq.db.models import Job
from washq.domain.scheduling import day_start
from washq.domain.states import JobStatus
from washq.domain.workflow import INACTIVE_STATUSES


async def business_dashboard(session: AsyncSession, business_id: str, now: datetime) -> dict[str, Any]:
    """Per-status counts plus today's intake and delivered revenue."""
    today = day_start(now)

    rows = await session.execute(
        select(Job.status, func.count(Job.id))
        .where(Job.business_id == business_id)
        .group_by(Job.status)
    )
    by_status = {s.value: 0 for s in JobStatus}
    for status, count in rows.all():
        by_status[status] = count

    jobs_today = await session.scalar(
        select(func.count(Job.id)).where(
            Job.business_id == business_id,
            Job.created_at >= today
        )
    )

    revenue_today = await session.scalar(
        select(func.coalesce(func.sum(Job.total_price), 0)).where(
            Job.business_id == business_id,
            Job.status == JobStatus.DELIVERED,
            Job.actual_delivery >= today
        )
    )

    active = sum(count for status, count in by_status.items() if JobStatus(status) not in INACTIVE_STATUSES)

    return {
        "by_status": by_status,
        "active_jobs": active,
        "jobs_today": jobs_today or 0,
        "revenue_today": Decimal(str(revenue_today or 0)),
    }
