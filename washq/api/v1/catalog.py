from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy import select, or_

from washq.api.deps import DbSession
from washq.auth.security import CurrentBusiness
from washq.db.models import Car, Customer, Service

router = APIRouter()

# --- Services ---

class ServiceCreate(BaseModel):
    name: str
    description: Optional[str] = None
    price: Decimal = Field(ge=0)
    min_time: Optional[int] = Field(default=None, ge=0)
    max_time: Optional[int] = Field(default=None, ge=0)
    is_active: bool = True

    @model_validator(mode="after")
    def check_times(self):
        if self.min_time is not None and self.max_time is not None and self.min_time > self.max_time:
            raise ValueError("min_time cannot exceed max_time")
        return self

class ServiceUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    min_time: Optional[int] = Field(default=None, ge=0)
    max_time: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None

class ServiceResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    price: Decimal
    min_time: Optional[int] = None
    max_time: Optional[int] = None
    is_active: bool
    model_config = ConfigDict(from_attributes=True)

async def _get_service(session, business_id: str, service_id: UUID) -> Service:
    service = await session.get(Service, service_id)
    if not service or service.business_id != business_id:
        raise HTTPException(status_code=404, detail="Service not found")
    return service

@router.post("/services", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
async def create_service(payload: ServiceCreate, business: CurrentBusiness, session: DbSession):
    service = Service(business_id=business.id, **payload.model_dump())
    session.add(service)
    await session.commit()
    return service

@router.get("/services", response_model=list[ServiceResponse])
async def list_services(business: CurrentBusiness, session: DbSession, active: Optional[bool] = None):
    stmt = select(Service).where(Service.business_id == business.id)
    if active is not None:
        stmt = stmt.where(Service.is_active == active)
    result = await session.execute(stmt.order_by(Service.name))
    return result.scalars().all()

@router.put("/services/{service_id}", response_model=ServiceResponse)
async def update_service(service_id: UUID, payload: ServiceUpdate, business: CurrentBusiness, session: DbSession):
    # Existing jobs keep their snapshot; only future jobs see the new values
    service = await _get_service(session, business.id, service_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(service, field, value)
    if service.min_time is not None and service.max_time is not None and service.min_time > service.max_time:
        await session.rollback()
        raise HTTPException(status_code=422, detail="min_time cannot exceed max_time")
    await session.commit()
    return service

@router.delete("/services/{service_id}", response_model=ServiceResponse)
async def deactivate_service(service_id: UUID, business: CurrentBusiness, session: DbSession):
    # Soft delete: job snapshots still reference the row
    service = await _get_service(session, business.id, service_id)
    service.is_active = False
    await session.commit()
    return service

# --- Customers ---

class CustomerCreate(BaseModel):
    name: str
    phone: Optional[str] = None
    whatsapp_number: Optional[str] = None
    email: Optional[str] = None

class CustomerResponse(BaseModel):
    id: UUID
    name: str
    phone: Optional[str] = None
    whatsapp_number: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)

@router.post("/customers", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(payload: CustomerCreate, business: CurrentBusiness, session: DbSession):
    customer = Customer(business_id=business.id, **payload.model_dump())
    session.add(customer)
    await session.commit()
    await session.refresh(customer)
    return customer

@router.get("/customers", response_model=list[CustomerResponse])
async def list_customers(business: CurrentBusiness, session: DbSession, search: Optional[str] = None, limit: int = 100):
    stmt = select(Customer).where(Customer.business_id == business.id)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(or_(
            Customer.name.ilike(pattern),
            Customer.phone.ilike(pattern),
            Customer.whatsapp_number.ilike(pattern),
        ))
    result = await session.execute(stmt.order_by(Customer.name).limit(min(limit, 500)))
    return result.scalars().all()

@router.get("/customers/{customer_id}", response_model=CustomerResponse)
async def get_customer(customer_id: UUID, business: CurrentBusiness, session: DbSession):
    customer = await session.get(Customer, customer_id)
    if not customer or customer.business_id != business.id:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer

# --- Cars ---

class CarCreate(BaseModel):
    customer_id: UUID
    car_number: str
    brand: Optional[str] = None
    model: Optional[str] = None
    color: Optional[str] = None

class CarResponse(BaseModel):
    id: UUID
    customer_id: UUID
    car_number: str
    brand: Optional[str] = None
    model: Optional[str] = None
    color: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)

@router.post("/cars", response_model=CarResponse, status_code=status.HTTP_201_CREATED)
async def create_car(payload: CarCreate, business: CurrentBusiness, session: DbSession):
    customer = await session.get(Customer, payload.customer_id)
    if not customer or customer.business_id != business.id:
        raise HTTPException(status_code=404, detail="Customer not found")

    car = Car(
        business_id=business.id,
        customer_id=customer.id,
        car_number=payload.car_number.strip().upper(),
        brand=payload.brand,
        model=payload.model,
        color=payload.color,
    )
    session.add(car)
    await session.commit()
    return car

@router.get("/cars", response_model=list[CarResponse])
async def list_cars(business: CurrentBusiness, session: DbSession, customer_id: Optional[UUID] = None):
    stmt = select(Car).where(Car.business_id == business.id)
    if customer_id:
        stmt = stmt.where(Car.customer_id == customer_id)
    result = await session.execute(stmt.order_by(Car.car_number))
    return result.scalars().all()
