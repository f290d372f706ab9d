import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from washq.db.models import Business, Job
from washq.domain.admission import AdmissionDecision, Reject, decide_admission
from washq.domain.errors import BusinessNotFoundError
from washq.domain.workflow import INACTIVE_STATUSES
from washq.api.v1.metrics import ACTIVE_JOBS, ADMISSION_REJECTED

logger = logging.getLogger(__name__)


async def get_business(session: AsyncSession, business_id: str) -> Business:
    business = await session.get(Business, business_id)
    if not business:
        raise BusinessNotFoundError(business_id)
    return business


async def count_active_jobs(session: AsyncSession, business_id: str) -> int:
    """Jobs still occupying a bay. Always a fresh count, never cached."""
    stmt = select(func.count(Job.id)).where(
        Job.business_id == business_id,
        Job.status.not_in([s.value for s in INACTIVE_STATUSES])
    )
    return (await session.execute(stmt)).scalar_one()


async def evaluate_admission(session: AsyncSession, business_id: str) -> tuple[AdmissionDecision, int]:
    """
    Admission check for a new job of `business_id`, together with the active
    job count the decision was made on.

    Raises BusinessNotFoundError when the business does not exist.
    """
    business = await get_business(session, business_id)
    active_count = await count_active_jobs(session, business_id)
    ACTIVE_JOBS.labels(business_id=business_id).set(active_count)

    decision = decide_admission(
        business.car_handling_capacity,
        business.max_concurrent_jobs,
        active_count,
    )

    if isinstance(decision, Reject):
        ADMISSION_REJECTED.labels(
            business_id=business_id,
            capacity=business.car_handling_capacity
        ).inc()
        logger.info(f"Admission rejected for business {business_id} ({active_count} active): {decision.reason}")

    return decision, active_count


async def can_accept_new_job(session: AsyncSession, business_id: str) -> AdmissionDecision:
    """Returns Admit() or Reject(reason) for a new job of `business_id`."""
    decision, _ = await evaluate_admission(session, business_id)
    return decision
