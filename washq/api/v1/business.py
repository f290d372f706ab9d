from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from washq.api.deps import DbSession
from washq.api.errors import to_http_exception
from washq.auth.security import CurrentBusiness
from washq.commands.admission import evaluate_admission
from washq.commands.dashboard import business_dashboard
from washq.domain.admission import Reject, effective_limit
from washq.domain.errors import WashQError
from washq.domain.states import CapacityMode

router = APIRouter()

class BusinessSettings(BaseModel):
    id: str
    name: str
    car_handling_capacity: CapacityMode
    max_concurrent_jobs: int
    currency: str
    timezone: str
    shop_whatsapp_number: Optional[str] = None
    whatsapp_templates: dict[str, str] = {}
    google_review_link: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)

class BusinessSettingsUpdate(BaseModel):
    name: Optional[str] = None
    car_handling_capacity: Optional[CapacityMode] = None
    max_concurrent_jobs: Optional[int] = Field(default=None, ge=1)
    currency: Optional[str] = None
    timezone: Optional[str] = None
    shop_whatsapp_number: Optional[str] = None
    whatsapp_templates: Optional[dict[str, str]] = None
    google_review_link: Optional[str] = None

class CapacityResponse(BaseModel):
    can_accept: bool
    reason: Optional[str] = None
    active_jobs: int
    limit: int
    car_handling_capacity: CapacityMode

class DashboardResponse(BaseModel):
    by_status: dict[str, int]
    active_jobs: int
    jobs_today: int
    revenue_today: Decimal

@router.get("/settings", response_model=BusinessSettings)
async def get_settings(business: CurrentBusiness):
    return business

@router.put("/settings", response_model=BusinessSettings)
async def update_settings(payload: BusinessSettingsUpdate, business: CurrentBusiness, session: DbSession):
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if value is None and field in ("name", "car_handling_capacity", "max_concurrent_jobs"):
            raise HTTPException(status_code=422, detail=f"{field} cannot be null")
        setattr(business, field, value)
    await session.commit()
    await session.refresh(business)
    return business

@router.get("/capacity", response_model=CapacityResponse)
async def get_capacity(business: CurrentBusiness, session: DbSession):
    try:
        decision, active = await evaluate_admission(session, business.id)
    except WashQError as e:
        raise to_http_exception(e)
    return CapacityResponse(
        can_accept=decision.accepted,
        reason=decision.reason if isinstance(decision, Reject) else None,
        active_jobs=active,
        limit=effective_limit(business.car_handling_capacity, business.max_concurrent_jobs),
        car_handling_capacity=business.car_handling_capacity,
    )

@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(business: CurrentBusiness, session: DbSession):
    return await business_dashboard(session, business.id, datetime.now())
