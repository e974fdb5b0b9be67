"""
MODULE: PROJECTS & CLIENTS
Client companies, their contacts, projects (incl. variation orders and structures)
and per-project engineer rate overrides.
"""

from __future__ import annotations

import enum
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.models.common import HasCreatedAt, HasId, HasTenant, HasUpdatedAt

__all__ = [
    "ProjectStatus", "BillingType", "ProjectType",
    "Company", "Contact", "Project", "ProjectHourlyRate",
]


class ProjectStatus(str, enum.Enum):
    PRE_LIM = "pre-lim"
    ONGOING = "ongoing"
    COMPLETED = "completed"


class BillingType(str, enum.Enum):
    HOURLY = "hourly"
    LUMP_SUM = "lump_sum"


class ProjectType(str, enum.Enum):
    STANDARD = "standard"
    VARIATION_ORDER = "variation_order"
    STRUCTURE_CONTAINER = "structure_container"
    STRUCTURE_CHILD = "structure_child"


# ============= CLIENTS =============

class Company(Base, HasId, HasCreatedAt, HasTenant):
    """Client organisation"""
    __tablename__ = "company"

    name: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    registration_no: Mapped[str | None] = mapped_column(String(64), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Contact(Base, HasId, HasCreatedAt, HasTenant):
    """Person at a client company"""
    __tablename__ = "contact"

    company_id: Mapped[str] = mapped_column(ForeignKey("company.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    email: Mapped[str | None] = mapped_column(String(256), nullable=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    position: Mapped[str | None] = mapped_column(String(128), nullable=True)

    company: Mapped[Company] = relationship()


# ============= PROJECTS =============

class Project(Base, HasId, HasCreatedAt, HasUpdatedAt, HasTenant):
    """Engineering job.

    Codes are J + 5 digits (J25001); variation orders and structure children
    use <parent_code>_<n>.
    """
    __tablename__ = "project"

    project_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)

    company_id: Mapped[str | None] = mapped_column(ForeignKey("company.id"), nullable=True, index=True)
    contact_id: Mapped[str | None] = mapped_column(ForeignKey("contact.id"), nullable=True)

    status: Mapped[str] = mapped_column(String(16), default=ProjectStatus.PRE_LIM.value, nullable=False, index=True)
    billing_type: Mapped[str] = mapped_column(String(16), default=BillingType.HOURLY.value, nullable=False)
    project_type: Mapped[str] = mapped_column(String(32), default=ProjectType.STANDARD.value, nullable=False, index=True)

    # Variation orders / structures
    parent_project_id: Mapped[str | None] = mapped_column(ForeignKey("project.id", ondelete="RESTRICT"), nullable=True, index=True)
    is_variation_order: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    vo_number: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Hours
    planned_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, nullable=False)
    actual_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0, nullable=False)

    # People (user ids)
    lead_engineer_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    manager_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)

    # Dates
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    po_received_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completion_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    company: Mapped[Optional[Company]] = relationship()
    parent: Mapped[Optional["Project"]] = relationship(remote_side="Project.id", uselist=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "project_code", name="uq_project_tenant_code"),
        Index("ix_project_parent_type", "parent_project_id", "project_type"),
    )

    @property
    def client_name(self) -> str | None:
        return self.company.name if self.company else None


class ProjectHourlyRate(Base, HasId, HasCreatedAt, HasUpdatedAt, HasTenant):
    """Per-project override of an engineer's hourly rate (profitability view only)"""
    __tablename__ = "project_hourly_rate"

    project_id: Mapped[str] = mapped_column(ForeignKey("project.id"), nullable=False, index=True)
    team_member_id: Mapped[str] = mapped_column(ForeignKey("team_member.id"), nullable=False, index=True)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    __table_args__ = (
        UniqueConstraint("project_id", "team_member_id", name="uq_project_hourly_rate_member"),
    )
