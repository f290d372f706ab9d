from datetime import datetime
from decimal import Decimal
from typing import Optional, Any
from uuid import UUID, uuid4

from sqlalchemy import String, Integer, Numeric, Boolean, DateTime, ForeignKey, Index, Text, Uuid, text, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import JSONB

from washq.db.session import Base
from washq.domain.states import JobStatus, JobEvent, CapacityMode

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JsonType = JSON().with_variant(JSONB(), "postgresql")


class Business(Base):
    __tablename__ = "businesses"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    api_key: Mapped[Optional[str]] = mapped_column(String, unique=True, nullable=True)

    # Admission policy
    car_handling_capacity: Mapped[CapacityMode] = mapped_column(String, default=CapacityMode.SINGLE)
    max_concurrent_jobs: Mapped[int] = mapped_column(Integer, default=1)

    # Shop settings
    currency: Mapped[str] = mapped_column(String, default="USD")
    timezone: Mapped[str] = mapped_column(String, default="UTC")
    shop_whatsapp_number: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    whatsapp_templates: Mapped[dict[str, Any]] = mapped_column(JsonType, default=dict)
    google_review_link: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # Tracking
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), onupdate=text("CURRENT_TIMESTAMP"))

    jobs: Mapped[list["Job"]] = relationship("Job", back_populates="business")
    services: Mapped[list["Service"]] = relationship("Service", back_populates="business")


class Service(Base):
    __tablename__ = "services"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    business_id: Mapped[str] = mapped_column(String, ForeignKey("businesses.id"), index=True, nullable=False)

    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    # Minutes
    min_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    business: Mapped["Business"] = relationship("Business", back_populates="services")


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    business_id: Mapped[str] = mapped_column(String, ForeignKey("businesses.id"), index=True, nullable=False)

    name: Mapped[str] = mapped_column(String, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    whatsapp_number: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    cars: Mapped[list["Car"]] = relationship("Car", back_populates="customer")


class Car(Base):
    __tablename__ = "cars"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    business_id: Mapped[str] = mapped_column(String, ForeignKey("businesses.id"), index=True, nullable=False)
    customer_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("customers.id"), index=True, nullable=False)

    car_number: Mapped[str] = mapped_column(String, nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    model: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    customer: Mapped["Customer"] = relationship("Customer", back_populates="cars")


class Job(Base):
    __tablename__ = "jobs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    business_id: Mapped[str] = mapped_column(String, ForeignKey("businesses.id"), index=True, nullable=False)
    customer_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("customers.id"), nullable=False)
    car_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("cars.id"), nullable=False)

    token_number: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[JobStatus] = mapped_column(String, default=JobStatus.RECEIVED, index=True)

    # Pricing snapshot, frozen at creation
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    estimated_delivery: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    actual_delivery: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Set by the create command from the caller's clock, not the DB clock, so
    # token counting and tests agree on what "today" is.
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    business: Mapped["Business"] = relationship("Business", back_populates="jobs")
    customer: Mapped["Customer"] = relationship("Customer", lazy="selectin")
    car: Mapped["Car"] = relationship("Car", lazy="selectin")
    services: Mapped[list["JobService"]] = relationship(
        "JobService", back_populates="job", cascade="all, delete-orphan",
        order_by="JobService.position", lazy="selectin",
    )
    events: Mapped[list["JobEventLog"]] = relationship("JobEventLog", back_populates="job", cascade="all, delete-orphan")

    __table_args__ = (
        # Active-job counting and per-day token counting both filter on business first
        Index("ix_jobs_business_status", "business_id", "status"),
        Index("ix_jobs_business_created", "business_id", "created_at"),
    )


class JobService(Base):
    __tablename__ = "job_services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("jobs.id", ondelete="CASCADE"), index=True)
    service_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("services.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0)

    # Catalog values at creation time; later catalog edits do not touch these
    name: Mapped[str] = mapped_column(String, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    max_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    job: Mapped["Job"] = relationship("Job", back_populates="services")


class JobEventLog(Base):
    __tablename__ = "job_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("jobs.id", ondelete="CASCADE"), index=True)

    event_type: Mapped[JobEvent] = mapped_column(String, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    # Context (e.g. from/to status, token)
    meta: Mapped[dict[str, Any]] = mapped_column(JsonType, default=dict)

    job: Mapped["Job"] = relationship("Job", back_populates="events")
