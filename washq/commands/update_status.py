import logging
from datetime import datetime
from typing import Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from washq.db.models import Job, JobEventLog
from washq.domain.errors import JobNotFoundError, InvalidTransitionError
from washq.domain.states import JobStatus, JobEvent
from washq.domain.workflow import apply_transition, next_status, parse_status
from washq.api.v1.metrics import STATUS_TRANSITIONS, INVALID_TRANSITIONS

logger = logging.getLogger(__name__)

_EVENT_FOR_STATUS = {
    JobStatus.DELIVERED: JobEvent.DELIVERED,
    JobStatus.CANCELLED: JobEvent.CANCELLED,
}


async def get_job(session: AsyncSession, business_id: str, job_id: UUID, for_update: bool = False) -> Job:
    stmt = select(Job).where(Job.id == job_id, Job.business_id == business_id)
    if for_update:
        # Reload the row under the lock; an instance already in the identity
        # map may hold a status read before another transaction committed.
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    job = (await session.execute(stmt)).scalar_one_or_none()
    if not job:
        raise JobNotFoundError(job_id)
    return job


async def update_job_status(
    session: AsyncSession,
    business_id: str,
    job_id: UUID,
    target: Union[str, JobStatus],
    now: datetime,
) -> Job:
    """
    Moves a job to `target`.

    Raises UnknownStatusError for values outside JobStatus and
    InvalidTransitionError (job untouched) when the state machine refuses.
    Entering DELIVERED stamps actual_delivery. Does not commit.
    """
    target = parse_status(target)
    job = await get_job(session, business_id, job_id, for_update=True)
    previous = JobStatus(job.status)

    try:
        apply_transition(job, target, now)
    except InvalidTransitionError:
        INVALID_TRANSITIONS.labels(business_id=business_id).inc()
        logger.warning(f"Rejected transition for job {job_id}: {previous} -> {target}")
        raise

    if previous == target:
        await session.flush()
        return job

    session.add(JobEventLog(
        job_id=job.id,
        event_type=_EVENT_FOR_STATUS.get(target, JobEvent.STATUS_CHANGED),
        timestamp=now,
        meta={"from": previous.value, "to": target.value}
    ))
    STATUS_TRANSITIONS.labels(business_id=business_id, to_status=target.value).inc()
    logger.info(f"Job {job.id} ({job.token_number}): {previous} -> {target}")

    await session.flush()
    return job


async def advance_job(session: AsyncSession, business_id: str, job_id: UUID, now: datetime) -> Job:
    """Moves a job one stage forward along the wash flow."""
    job = await get_job(session, business_id, job_id, for_update=True)
    current = parse_status(job.status)
    successor = next_status(current)
    if successor is None:
        INVALID_TRANSITIONS.labels(business_id=business_id).inc()
        logger.warning(f"Rejected advance for job {job_id}: {current} has no next stage")
        raise InvalidTransitionError(current)
    return await update_job_status(session, business_id, job_id, successor, now)


async def cancel_job(session: AsyncSession, business_id: str, job_id: UUID, now: datetime) -> Job:
    return await update_job_status(session, business_id, job_id, JobStatus.CANCELLED, now)
