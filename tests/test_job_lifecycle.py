"""Job creation and status updates against the database."""

from datetime import datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from washq.commands.create_job import create_job
from washq.commands.update_status import advance_job, cancel_job, get_job, update_job_status
from washq.db.models import Job, JobEventLog
from washq.domain.errors import (
    BusinessNotFoundError, CapacityRejectedError, CarNotFoundError,
    InvalidTransitionError, JobNotFoundError, ServiceNotFoundError,
    UnknownStatusError, ValidationError,
)
from washq.domain.states import JobEvent, JobStatus

from tests.conftest import SCENARIO_NOW, seed_catalog


async def _count_jobs(session, business_id):
    result = await session.execute(select(Job).where(Job.business_id == business_id))
    return len(result.scalars().all())


class TestCreateJob:

    async def test_single_bay_scenario(self, session, single_business):
        # rollback below expires loaded rows
        business_id = single_business.id
        customer, car, services = await seed_catalog(session, business_id, max_times=(30,))

        job = await create_job(
            session, business_id, customer.id, car.id,
            [services[0].id], now=SCENARIO_NOW,
        )
        await session.commit()

        assert job.token_number == "20241215-001"
        assert job.status == JobStatus.RECEIVED
        assert job.estimated_delivery == datetime(2024, 12, 15, 9, 30)
        assert job.actual_delivery is None

        with pytest.raises(CapacityRejectedError) as exc:
            await create_job(
                session, business_id, customer.id, car.id,
                [services[0].id], now=SCENARIO_NOW + timedelta(minutes=5),
            )
        assert exc.value.reason == "Another job is already in progress"
        await session.rollback()
        assert await _count_jobs(session, business_id) == 1

    async def test_delivery_frees_the_bay(self, session, single_business):
        customer, car, services = await seed_catalog(session, single_business.id)
        first = await create_job(session, single_business.id, customer.id, car.id, [services[0].id], now=SCENARIO_NOW)
        await update_job_status(session, single_business.id, first.id, JobStatus.DELIVERED, SCENARIO_NOW + timedelta(minutes=40))

        second = await create_job(
            session, single_business.id, customer.id, car.id,
            [services[0].id], now=SCENARIO_NOW + timedelta(minutes=45),
        )
        assert second.token_number == "20241215-002"

    async def test_snapshots_prices_and_sums_total(self, session, multi_business):
        customer, car, services = await seed_catalog(
            session, multi_business.id,
            max_times=(20, 35),
            prices=[Decimal("8.50"), Decimal("15.00")],
        )
        job = await create_job(
            session, multi_business.id, customer.id, car.id,
            [services[1].id, services[0].id], now=SCENARIO_NOW,
        )
        await session.commit()

        assert job.total_price == Decimal("23.50")
        assert job.estimated_delivery == SCENARIO_NOW + timedelta(minutes=55)
        assert [line.service_id for line in job.services] == [services[1].id, services[0].id]

        # A later catalog price change does not touch the existing job
        services[0].price = Decimal("99.00")
        await session.commit()
        refreshed = (await session.execute(select(Job).where(Job.id == job.id))).scalar_one()
        assert sum(line.price for line in refreshed.services) == Decimal("23.50")

    async def test_writes_created_event(self, session, single_business):
        customer, car, services = await seed_catalog(session, single_business.id)
        job = await create_job(session, single_business.id, customer.id, car.id, [services[0].id], now=SCENARIO_NOW)

        events = (await session.execute(select(JobEventLog).where(JobEventLog.job_id == job.id))).scalars().all()
        assert [e.event_type for e in events] == [JobEvent.CREATED]
        assert events[0].meta["token"] == "20241215-001"

    async def test_multiple_capacity_limit(self, session, multi_business):
        customer, car, services = await seed_catalog(session, multi_business.id)
        for minute in range(3):
            await create_job(
                session, multi_business.id, customer.id, car.id,
                [services[0].id], now=SCENARIO_NOW + timedelta(minutes=minute),
            )
        with pytest.raises(CapacityRejectedError) as exc:
            await create_job(session, multi_business.id, customer.id, car.id, [services[0].id], now=SCENARIO_NOW)
        assert "3" in exc.value.reason

    async def test_unknown_business(self, session):
        with pytest.raises(BusinessNotFoundError):
            await create_job(session, "ghost", uuid4(), uuid4(), [uuid4()], now=SCENARIO_NOW)

    async def test_requires_services(self, session, single_business):
        customer, car, _ = await seed_catalog(session, single_business.id)
        with pytest.raises(ValidationError):
            await create_job(session, single_business.id, customer.id, car.id, [], now=SCENARIO_NOW)

    async def test_unknown_service(self, session, single_business):
        customer, car, _ = await seed_catalog(session, single_business.id)
        with pytest.raises(ServiceNotFoundError):
            await create_job(session, single_business.id, customer.id, car.id, [uuid4()], now=SCENARIO_NOW)

    async def test_inactive_service(self, session, single_business):
        customer, car, services = await seed_catalog(session, single_business.id)
        services[0].is_active = False
        await session.commit()
        with pytest.raises(ValidationError):
            await create_job(session, single_business.id, customer.id, car.id, [services[0].id], now=SCENARIO_NOW)

    async def test_car_from_another_business(self, session, single_business, multi_business):
        customer, _, services = await seed_catalog(session, single_business.id)
        _, other_car, _ = await seed_catalog(session, multi_business.id)
        with pytest.raises(CarNotFoundError):
            await create_job(session, single_business.id, customer.id, other_car.id, [services[0].id], now=SCENARIO_NOW)


@pytest.fixture
async def job(session, multi_business):
    customer, car, services = await seed_catalog(session, multi_business.id)
    job = await create_job(session, multi_business.id, customer.id, car.id, [services[0].id], now=SCENARIO_NOW)
    await session.commit()
    return job


class TestUpdateStatus:

    async def test_walks_the_full_flow(self, session, multi_business, job):
        seen = []
        now = SCENARIO_NOW
        for _ in range(5):
            now += timedelta(minutes=10)
            updated = await advance_job(session, multi_business.id, job.id, now)
            seen.append(updated.status)

        assert seen == [
            JobStatus.IN_PROGRESS, JobStatus.WASHING, JobStatus.DRYING,
            JobStatus.COMPLETED, JobStatus.DELIVERED,
        ]
        assert updated.actual_delivery == now

        with pytest.raises(InvalidTransitionError) as exc:
            await advance_job(session, multi_business.id, job.id, now)
        assert exc.value.current == JobStatus.DELIVERED
        assert exc.value.requested is None
        assert str(exc.value) == "Job in DELIVERED has no next stage"

    async def test_backward_move_is_rejected_without_mutation(self, session, multi_business, job):
        await update_job_status(session, multi_business.id, job.id, "DRYING", SCENARIO_NOW)
        with pytest.raises(InvalidTransitionError):
            await update_job_status(session, multi_business.id, job.id, "WASHING", SCENARIO_NOW)
        assert job.status == JobStatus.DRYING

    async def test_unknown_status(self, session, multi_business, job):
        with pytest.raises(UnknownStatusError):
            await update_job_status(session, multi_business.id, job.id, "WAXING", SCENARIO_NOW)

    async def test_cancelled_is_final(self, session, multi_business, job):
        cancelled = await cancel_job(session, multi_business.id, job.id, SCENARIO_NOW)
        assert cancelled.status == JobStatus.CANCELLED
        assert cancelled.actual_delivery is None
        with pytest.raises(InvalidTransitionError):
            await update_job_status(session, multi_business.id, job.id, JobStatus.DELIVERED, SCENARIO_NOW)

    async def test_other_business_cannot_see_job(self, session, single_business, job):
        with pytest.raises(JobNotFoundError):
            await update_job_status(session, single_business.id, job.id, JobStatus.WASHING, SCENARIO_NOW)

    async def test_logs_transition_events(self, session, multi_business, job):
        await update_job_status(session, multi_business.id, job.id, JobStatus.WASHING, SCENARIO_NOW)
        await update_job_status(session, multi_business.id, job.id, JobStatus.WASHING, SCENARIO_NOW)
        await cancel_job(session, multi_business.id, job.id, SCENARIO_NOW)

        events = (await session.execute(
            select(JobEventLog).where(JobEventLog.job_id == job.id).order_by(JobEventLog.id)
        )).scalars().all()
        assert [e.event_type for e in events] == [JobEvent.CREATED, JobEvent.STATUS_CHANGED, JobEvent.CANCELLED]
        assert events[1].meta == {"from": "RECEIVED", "to": "WASHING"}

    async def test_same_status_keeps_updated_at(self, session, multi_business, job):
        washing = await update_job_status(session, multi_business.id, job.id, JobStatus.WASHING, SCENARIO_NOW)
        later = SCENARIO_NOW + timedelta(minutes=15)
        again = await update_job_status(session, multi_business.id, job.id, JobStatus.WASHING, later)
        assert again.status == JobStatus.WASHING
        assert again.updated_at == SCENARIO_NOW
        assert washing is again


class TestConcurrentUpdates:
    """Two sessions racing on the same job, as two requests would."""

    async def _complete(self, session_factory, business_id, job_id):
        async with session_factory() as s:
            await update_job_status(s, business_id, job_id, JobStatus.COMPLETED, SCENARIO_NOW)
            await s.commit()

    async def _cancel(self, session_factory, business_id, job_id):
        async with session_factory() as s:
            await cancel_job(s, business_id, job_id, SCENARIO_NOW + timedelta(minutes=1))
            await s.commit()

    async def _final_status(self, session_factory, business_id, job_id):
        async with session_factory() as s:
            return (await get_job(s, business_id, job_id)).status

    async def test_update_rereads_status_cancelled_meanwhile(self, session_factory, multi_business, job):
        business_id = multi_business.id
        await self._complete(session_factory, business_id, job.id)

        async with session_factory() as first:
            stale = await get_job(first, business_id, job.id)
            assert stale.status == JobStatus.COMPLETED

            await self._cancel(session_factory, business_id, job.id)

            with pytest.raises(InvalidTransitionError) as exc:
                await update_job_status(first, business_id, job.id, JobStatus.DELIVERED, SCENARIO_NOW + timedelta(minutes=2))
            assert exc.value.current == JobStatus.CANCELLED
            await first.rollback()

        assert await self._final_status(session_factory, business_id, job.id) == JobStatus.CANCELLED

    async def test_advance_rereads_status_cancelled_meanwhile(self, session_factory, multi_business, job):
        business_id = multi_business.id
        await self._complete(session_factory, business_id, job.id)

        async with session_factory() as first:
            await get_job(first, business_id, job.id)
            await self._cancel(session_factory, business_id, job.id)

            with pytest.raises(InvalidTransitionError) as exc:
                await advance_job(first, business_id, job.id, SCENARIO_NOW + timedelta(minutes=2))
            assert exc.value.current == JobStatus.CANCELLED
            await first.rollback()

        async with session_factory() as s:
            job_row = await get_job(s, business_id, job.id)
            assert job_row.status == JobStatus.CANCELLED
            assert job_row.actual_delivery is None
