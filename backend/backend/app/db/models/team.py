from __future__ import annotations

import datetime as dt
from decimal import Decimal

from sqlalchemy import Boolean, Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.models.common import HasCreatedAt, HasId, HasTenant

__all__ = ["TeamMember", "Timesheet"]


class TeamMember(Base, HasId, HasCreatedAt, HasTenant):
    __tablename__ = "team_member"

    # Timesheets reference the user id, not the team member id
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    email: Mapped[str | None] = mapped_column(String(256), nullable=True, index=True)
    role: Mapped[str] = mapped_column(String(64), default="engineer", nullable=False)
    department: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Personal rate used by the profitability view when no project override exists
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Timesheet(Base, HasId, HasCreatedAt, HasTenant):
    __tablename__ = "timesheet"

    engineer_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    project_id: Mapped[str] = mapped_column(ForeignKey("project.id"), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    work_category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


Index("ix_timesheet_project_engineer", Timesheet.project_id, Timesheet.engineer_id)
