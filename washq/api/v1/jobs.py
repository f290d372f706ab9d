from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select, func, or_

from washq.api.deps import DbSession
from washq.api.errors import to_http_exception
from washq.auth.security import CurrentBusiness
from washq.commands.create_job import create_job
from washq.commands.update_status import advance_job, cancel_job, get_job, update_job_status
from washq.db.models import Car, Customer, Job
from washq.domain.errors import WashQError
from washq.domain.states import JobStatus
from washq.domain.whatsapp import build_review_link, build_status_link
from washq.domain.workflow import next_status, parse_status

router = APIRouter()

class JobCreate(BaseModel):
    customer_id: UUID
    car_id: UUID
    service_ids: list[UUID] = Field(min_length=1)
    notes: Optional[str] = None

class StatusUpdate(BaseModel):
    # Plain str so unknown values reach the state machine and come back as UnknownStatus
    status: str

class JobServiceLine(BaseModel):
    service_id: UUID
    name: str
    price: Decimal
    max_time: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)

class CustomerRef(BaseModel):
    id: UUID
    name: str
    phone: Optional[str] = None
    whatsapp_number: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)

class CarRef(BaseModel):
    id: UUID
    car_number: str
    brand: Optional[str] = None
    model: Optional[str] = None
    color: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)

class JobResponse(BaseModel):
    id: UUID
    business_id: str
    token_number: str
    status: JobStatus
    next_status: Optional[JobStatus] = None
    customer: CustomerRef
    car: CarRef
    services: list[JobServiceLine]
    total_price: Decimal
    notes: Optional[str] = None
    estimated_delivery: datetime
    actual_delivery: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)

class JobPage(BaseModel):
    jobs: list[JobResponse]
    total: int
    page: int
    limit: int

class LinkResponse(BaseModel):
    url: str

def _to_response(job: Job) -> JobResponse:
    response = JobResponse.model_validate(job)
    response.next_status = next_status(job.status)
    return response

@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
async def create_job_endpoint(payload: JobCreate, business: CurrentBusiness, session: DbSession):
    try:
        job = await create_job(
            session,
            business_id=business.id,
            customer_id=payload.customer_id,
            car_id=payload.car_id,
            service_ids=payload.service_ids,
            now=datetime.now(),
            notes=payload.notes,
        )
    except WashQError as e:
        await session.rollback()
        raise to_http_exception(e)

    await session.commit()
    return _to_response(job)

@router.get("", response_model=JobPage)
async def list_jobs(
    business: CurrentBusiness,
    session: DbSession,
    status_filter: str = Query(default="ALL", alias="status"),
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
):
    stmt = (
        select(Job)
        .join(Customer, Job.customer_id == Customer.id)
        .join(Car, Job.car_id == Car.id)
        .where(Job.business_id == business.id)
    )
    if status_filter != "ALL":
        try:
            stmt = stmt.where(Job.status == parse_status(status_filter))
        except WashQError as e:
            raise to_http_exception(e)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(
            Job.token_number.ilike(pattern),
            Customer.name.ilike(pattern),
            Customer.phone.ilike(pattern),
            Car.car_number.ilike(pattern),
        ))

    total = await session.scalar(select(func.count()).select_from(stmt.subquery()))
    result = await session.execute(
        stmt.order_by(Job.created_at.desc()).offset((page - 1) * limit).limit(limit)
    )
    jobs = result.scalars().all()
    return JobPage(jobs=[_to_response(j) for j in jobs], total=total or 0, page=page, limit=limit)

@router.get("/{job_id}", response_model=JobResponse)
async def get_job_endpoint(job_id: UUID, business: CurrentBusiness, session: DbSession):
    try:
        job = await get_job(session, business.id, job_id)
    except WashQError as e:
        raise to_http_exception(e)
    return _to_response(job)

@router.patch("/{job_id}/status", response_model=JobResponse)
async def update_status_endpoint(job_id: UUID, body: StatusUpdate, business: CurrentBusiness, session: DbSession):
    try:
        job = await update_job_status(session, business.id, job_id, body.status, now=datetime.now())
    except WashQError as e:
        await session.rollback()
        raise to_http_exception(e)
    await session.commit()
    return _to_response(job)

@router.post("/{job_id}/advance", response_model=JobResponse)
async def advance_endpoint(job_id: UUID, business: CurrentBusiness, session: DbSession):
    try:
        job = await advance_job(session, business.id, job_id, now=datetime.now())
    except WashQError as e:
        await session.rollback()
        raise to_http_exception(e)
    await session.commit()
    return _to_response(job)

@router.post("/{job_id}/cancel", response_model=JobResponse)
async def cancel_endpoint(job_id: UUID, business: CurrentBusiness, session: DbSession):
    try:
        job = await cancel_job(session, business.id, job_id, now=datetime.now())
    except WashQError as e:
        await session.rollback()
        raise to_http_exception(e)
    await session.commit()
    return _to_response(job)

@router.get("/{job_id}/whatsapp-link", response_model=LinkResponse)
async def whatsapp_status_link(job_id: UUID, business: CurrentBusiness, session: DbSession):
    try:
        job = await get_job(session, business.id, job_id)
        if job.status == JobStatus.CANCELLED:
            raise HTTPException(status_code=409, detail="Job is cancelled")
        url = build_status_link(
            JobStatus(job.status),
            templates=business.whatsapp_templates,
            shop_number=business.shop_whatsapp_number,
            customer_phone=job.customer.whatsapp_number or job.customer.phone,
            customer_name=job.customer.name,
            vehicle_number=job.car.car_number,
            token=job.token_number,
        )
    except WashQError as e:
        raise to_http_exception(e)
    return LinkResponse(url=url)

@router.get("/{job_id}/review-link", response_model=LinkResponse)
async def whatsapp_review_link(job_id: UUID, business: CurrentBusiness, session: DbSession):
    try:
        job = await get_job(session, business.id, job_id)
        if job.status != JobStatus.DELIVERED:
            raise HTTPException(status_code=409, detail="Review requests are sent after delivery")
        url = build_review_link(business.google_review_link, job.customer.whatsapp_number or job.customer.phone)
    except WashQError as e:
        raise to_http_exception(e)
    return LinkResponse(url=url)
