import logging
from datetime import datetime
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from washq.db.models import Car, Customer, Job, JobEventLog, JobService, Service
from washq.domain.admission import Reject
from washq.domain.errors import (
    CapacityRejectedError, CarNotFoundError, CustomerNotFoundError,
    ServiceNotFoundError, ValidationError,
)
from washq.domain.models import ServiceSnapshot, total_price
from washq.domain.scheduling import compute_eta
from washq.domain.states import JobStatus, JobEvent
from washq.commands.admission import can_accept_new_job
from washq.commands.tokens import generate_token
from washq.api.v1.metrics import JOBS_CREATED
from washq.settings import settings
from washq.utils.locking import lock_business_for_job_creation

logger = logging.getLogger(__name__)


async def _load_services(session: AsyncSession, business_id: str, service_ids: Sequence[UUID]) -> list[Service]:
    stmt = select(Service).where(
        Service.business_id == business_id,
        Service.id.in_(service_ids)
    )
    found = {s.id: s for s in (await session.execute(stmt)).scalars().all()}

    # Keep the caller's ordering; it becomes the job's service order
    services = []
    for service_id in service_ids:
        service = found.get(service_id)
        if not service:
            raise ServiceNotFoundError(service_id)
        if not service.is_active:
            raise ValidationError(f"Service {service.name} is not active")
        services.append(service)
    return services


async def create_job(
    session: AsyncSession,
    business_id: str,
    customer_id: UUID,
    car_id: UUID,
    service_ids: Sequence[UUID],
    now: datetime,
    notes: Optional[str] = None,
) -> Job:
    """
    Admits and creates a new wash job in RECEIVED.

    Steps, all under the per-business creation lock:
        1. Capacity admission; a Reject raises CapacityRejectedError and
           nothing is written.
        2. Validate customer, car and services belong to the business.
        3. Token for `now`'s day, ETA from the services' max_time.
        4. Insert the job with price snapshots and a CREATED event.

    Does not commit.
    """
    if not service_ids:
        raise ValidationError("At least one service is required")
    if len(set(service_ids)) != len(service_ids):
        raise ValidationError("Duplicate services in request")

    await lock_business_for_job_creation(session, business_id)

    decision = await can_accept_new_job(session, business_id)
    if isinstance(decision, Reject):
        raise CapacityRejectedError(decision.reason)

    customer = await session.get(Customer, customer_id)
    if not customer or customer.business_id != business_id:
        raise CustomerNotFoundError(customer_id)

    car = await session.get(Car, car_id)
    if not car or car.business_id != business_id:
        raise CarNotFoundError(car_id)
    if car.customer_id != customer.id:
        raise ValidationError(f"Car {car.car_number} does not belong to customer {customer.name}")

    services = await _load_services(session, business_id, list(service_ids))
    snapshots = [ServiceSnapshot.from_service(s) for s in services]

    token = await generate_token(session, business_id, now)
    eta = compute_eta(snapshots, now, default_minutes=settings.DEFAULT_ETA_MINUTES)

    job = Job(
        business_id=business_id,
        customer=customer,
        car=car,
        token_number=token,
        status=JobStatus.RECEIVED,
        total_price=total_price(snapshots),
        estimated_delivery=eta,
        notes=notes,
        created_at=now,
        updated_at=now,
        services=[
            JobService(
                service_id=snap.service_id,
                position=position,
                name=snap.name,
                price=snap.price,
                max_time=snap.max_time,
            )
            for position, snap in enumerate(snapshots)
        ],
    )
    session.add(job)
    await session.flush()

    session.add(JobEventLog(
        job_id=job.id,
        event_type=JobEvent.CREATED,
        timestamp=now,
        meta={"token": token, "status": JobStatus.RECEIVED.value}
    ))

    JOBS_CREATED.labels(business_id=business_id).inc()
    logger.info(f"Job {job.id} created for business {business_id} with token {token}, ETA {eta.isoformat()}")

    await session.flush()
    return job
