import secrets
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from washq.api.deps import DbSession
from washq.auth.security import require_platform_admin
from washq.db.models import Business
from washq.domain.states import CapacityMode

router = APIRouter(dependencies=[Depends(require_platform_admin)])

class BusinessCreate(BaseModel):
    id: str
    name: str
    car_handling_capacity: CapacityMode = CapacityMode.SINGLE
    max_concurrent_jobs: int = Field(default=1, ge=1)
    currency: str = "USD"
    timezone: str = "UTC"
    api_key: Optional[str] = None

class BusinessSummary(BaseModel):
    id: str
    name: str
    car_handling_capacity: CapacityMode
    max_concurrent_jobs: int
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)

class BusinessCreated(BusinessSummary):
    api_key: str

@router.post("/businesses", response_model=BusinessCreated, status_code=status.HTTP_201_CREATED)
async def onboard_business(payload: BusinessCreate, session: DbSession):
    business = Business(
        id=payload.id,
        name=payload.name,
        car_handling_capacity=payload.car_handling_capacity,
        max_concurrent_jobs=payload.max_concurrent_jobs,
        currency=payload.currency,
        timezone=payload.timezone,
        api_key=payload.api_key or f"wq-{secrets.token_urlsafe(24)}",
        whatsapp_templates={},
    )
    session.add(business)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=409, detail="Business already exists")
    await session.refresh(business)
    return business

@router.get("/businesses", response_model=list[BusinessSummary])
async def list_businesses(session: DbSession):
    result = await session.execute(select(Business).order_by(Business.created_at.desc()))
    return result.scalars().all()

@router.get("/businesses/{business_id}", response_model=BusinessSummary)
async def get_business(business_id: str, session: DbSession):
    business = await session.get(Business, business_id)
    if not business:
        raise HTTPException(status_code=404, detail="Business not found")
    return business
