from __future__ import annotations
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.tenant import scoped
from app.db.models.projects import Project
from app.db.models.team import TeamMember, Timesheet
from app.db.session import get_db
from services._crud import commit_refresh, dec, f, get_or_404, parse_date, req

router = APIRouter(tags=["team"])

MAX_HOURS_PER_ENTRY = Decimal("24")


def member_out(m: TeamMember) -> dict:
    return {
        "id": m.id,
        "user_id": m.user_id,
        "name": m.name,
        "email": m.email,
        "role": m.role,
        "department": m.department,
        "hourly_rate": f(m.hourly_rate),
        "is_active": m.is_active,
    }


def timesheet_out(t: Timesheet) -> dict:
    return {
        "id": t.id,
        "engineer_id": t.engineer_id,
        "project_id": t.project_id,
        "date": t.date,
        "hours": float(t.hours),
        "work_category": t.work_category,
        "description": t.description,
    }


@router.get("/team")
def list_team(db: Session = Depends(get_db), include_inactive: bool = False):
    q = scoped(db.query(TeamMember), TeamMember)
    if not include_inactive:
        q = q.filter(TeamMember.is_active == True)  # noqa: E712
    return [member_out(m) for m in q.order_by(TeamMember.name.asc()).all()]


@router.post("/team", status_code=201)
def create_member(payload: dict, db: Session = Depends(get_db)):
    rate = dec(payload.get("hourly_rate"), "hourly_rate")
    if rate is not None and rate < 0:
        raise HTTPException(400, "hourly_rate must not be negative")
    m = TeamMember(
        user_id=req(payload, "user_id"),
        name=req(payload, "name"),
        email=payload.get("email"),
        role=payload.get("role") or "engineer",
        department=payload.get("department"),
        hourly_rate=rate,
        is_active=True,
    )
    return member_out(commit_refresh(db, m))


@router.get("/timesheets")
def list_timesheets(
    db: Session = Depends(get_db),
    project_id: str | None = None,
    engineer_id: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
):
    q = scoped(db.query(Timesheet), Timesheet)
    if project_id:
        q = q.filter(Timesheet.project_id == project_id)
    if engineer_id:
        q = q.filter(Timesheet.engineer_id == engineer_id)
    if date_from:
        q = q.filter(Timesheet.date >= date_from)
    if date_to:
        q = q.filter(Timesheet.date <= date_to)
    return [timesheet_out(t) for t in q.order_by(Timesheet.date.desc()).all()]


@router.post("/timesheets", status_code=201)
def create_timesheet(payload: dict, db: Session = Depends(get_db)):
    project = get_or_404(db, Project, req(payload, "project_id"), "Project")
    hours = dec(req(payload, "hours"), "hours")
    if hours <= 0 or hours > MAX_HOURS_PER_ENTRY:
        raise HTTPException(400, "hours must be between 0 and 24")
    t = Timesheet(
        engineer_id=req(payload, "engineer_id"),
        project_id=project.id,
        date=parse_date(payload.get("date"), "date") or date.today(),
        hours=hours,
        work_category=payload.get("work_category"),
        description=payload.get("description"),
    )
    commit_refresh(db, t)

    project.actual_hours = (project.actual_hours or 0) + hours
    db.commit()
    return timesheet_out(t)
