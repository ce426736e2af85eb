# infra/db/models.py
from __future__ import annotations
from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    false,
)
from sqlalchemy.orm import Mapped, mapped_column

from infra.db.base import Base
from core.models import (
    AllocationType,
    BookingSource,
    ConflictSeverity,
    UnitsType,
)


class ResourceORM(Base):
    __tablename__ = "resources"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    organization_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    workspace_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class ResourceAllocationORM(Base):
    __tablename__ = "resource_allocations"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    resource_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("resources.id"),
        nullable=False,
    )
    project_id: Mapped[str] = mapped_column(String, nullable=False)
    task_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    organization_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    allocation_percentage: Mapped[float] = mapped_column(Float, nullable=False)
    hours_per_day: Mapped[float] = mapped_column(Float, default=8.0, nullable=False)
    type: Mapped[AllocationType] = mapped_column(
        SAEnum(AllocationType), default=AllocationType.SOFT, nullable=False
    )
    booking_source: Mapped[BookingSource] = mapped_column(
        SAEnum(BookingSource), default=BookingSource.MANUAL, nullable=False
    )
    units_type: Mapped[UnitsType] = mapped_column(
        SAEnum(UnitsType), default=UnitsType.PERCENT, nullable=False
    )
    justification: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)


Index(
    "idx_resource_allocations_resource_range",
    ResourceAllocationORM.resource_id,
    ResourceAllocationORM.start_date,
    ResourceAllocationORM.end_date,
)
Index("idx_resource_allocations_project", ResourceAllocationORM.project_id)


class CapacityCalendarEntryORM(Base):
    __tablename__ = "capacity_calendar_entries"
    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", "date", name="ux_capacity_workspace_user_date"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    organization_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    workspace_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    capacity_hours: Mapped[float] = mapped_column(Float, default=8.0, nullable=False)


Index("idx_capacity_user_date", CapacityCalendarEntryORM.user_id, CapacityCalendarEntryORM.date)


class ResourceConflictORM(Base):
    __tablename__ = "resource_conflicts"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    resource_id: Mapped[str] = mapped_column(String, nullable=False)
    conflict_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_allocation: Mapped[float] = mapped_column(Float, nullable=False)
    capacity_percent: Mapped[float] = mapped_column(Float, default=100.0, nullable=False)
    affected_projects_json: Mapped[str] = mapped_column(Text, default="[]", nullable=False)
    severity: Mapped[ConflictSeverity] = mapped_column(SAEnum(ConflictSeverity), nullable=False)
    severity_rank: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    detected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by_user_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    resolution_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


Index("idx_resource_conflicts_resource_date", ResourceConflictORM.resource_id, ResourceConflictORM.conflict_date)
# storage backstop: one open row per resource and day
Index(
    "ux_resource_conflicts_open_day",
    ResourceConflictORM.resource_id,
    ResourceConflictORM.conflict_date,
    unique=True,
    sqlite_where=ResourceConflictORM.resolved == false(),
    postgresql_where=ResourceConflictORM.resolved == false(),
)
Index("idx_resource_conflicts_open", ResourceConflictORM.resolved, ResourceConflictORM.severity_rank)


class OrganizationCapacitySettingsORM(Base):
    __tablename__ = "organization_capacity_settings"

    organization_id: Mapped[str] = mapped_column(String, primary_key=True)
    severity_low_max: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    severity_medium_max: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    severity_high_max: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    soft_weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ghost_weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    hard_cap_percent: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    require_justification_above: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    justification_required_types: Mapped[Optional[str]] = mapped_column(String, nullable=True)


class ResourceLockORM(Base):
    __tablename__ = "resource_locks"

    resource_key: Mapped[str] = mapped_column(String, primary_key=True)
    owner_token: Mapped[str] = mapped_column(String, nullable=False)
    acquired_at: Mapped[float] = mapped_column(Float, nullable=False)
    expires_at: Mapped[float] = mapped_column(Float, nullable=False)
