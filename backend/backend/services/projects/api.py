from __future__ import annotations
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.audit import audit, current_actor
from app.core.tenant import get_tenant_id, scoped
from app.db.models.projects import (
    BillingType,
    Company,
    Project,
    ProjectHourlyRate,
    ProjectStatus,
    ProjectType,
)
from app.db.models.team import TeamMember
from app.db.session import get_db
from services._crud import commit_refresh, dec, f, get_or_404, parse_date, req
from services.projects.structure import (
    apply_status_dates,
    children_of,
    container_stats,
    is_valid_project_code,
    next_child_number,
    sync_container_status,
    taken_child_codes,
)

router = APIRouter(prefix="/projects", tags=["projects"])

UPDATABLE = ("title", "planned_hours", "remarks", "lead_engineer_id", "manager_id", "billing_type", "contact_id", "company_id")
DATE_FIELDS = ("start_date", "po_received_date", "completion_date")


class HourlyRateIn(BaseModel):
    team_member_id: str
    hourly_rate: Decimal = Field(..., ge=0)


class HourlyRatesIn(BaseModel):
    rates: list[HourlyRateIn] = []


def project_out(p: Project) -> dict:
    return {
        "id": p.id,
        "project_code": p.project_code,
        "title": p.title,
        "company_id": p.company_id,
        "client_name": p.client_name,
        "status": p.status,
        "billing_type": p.billing_type,
        "project_type": p.project_type,
        "parent_project_id": p.parent_project_id,
        "is_variation_order": p.is_variation_order,
        "vo_number": p.vo_number,
        "planned_hours": f(p.planned_hours),
        "actual_hours": f(p.actual_hours),
        "lead_engineer_id": p.lead_engineer_id,
        "manager_id": p.manager_id,
        "start_date": p.start_date,
        "po_received_date": p.po_received_date,
        "completion_date": p.completion_date,
        "remarks": p.remarks,
    }


def _code_taken(db: Session, code: str) -> bool:
    return scoped(db.query(Project), Project).filter(Project.project_code == code).first() is not None


@router.get("")
def list_projects(
    db: Session = Depends(get_db),
    status: str | None = None,
    project_type: str | None = None,
    parent_id: str | None = None,
    limit: int | None = None,
):
    q = scoped(db.query(Project), Project)
    if status:
        q = q.filter(Project.status == status)
    if project_type:
        q = q.filter(Project.project_type == project_type)
    if parent_id:
        q = q.filter(Project.parent_project_id == parent_id)
    return [project_out(p) for p in q.order_by(Project.project_code).limit(limit).all()]


@router.get("/{project_id}")
def get_project(project_id: str, db: Session = Depends(get_db)):
    return project_out(get_or_404(db, Project, project_id, "Project"))


@router.post("", status_code=201)
def create_project(payload: dict, request: Request, db: Session = Depends(get_db)):
    code = (payload.get("project_code") or "").strip()
    if not is_valid_project_code(code):
        raise HTTPException(400, "Project Code must be in format J2XXXX (e.g., J25001)")
    title = req(payload, "title")
    if _code_taken(db, code):
        raise HTTPException(409, f"Project code {code} already exists")

    project_type = payload.get("project_type") or ProjectType.STANDARD.value
    if project_type not in (ProjectType.STANDARD.value, ProjectType.STRUCTURE_CONTAINER.value):
        raise HTTPException(400, "Use the variation-orders or structures endpoints for child projects")
    billing_type = payload.get("billing_type") or BillingType.HOURLY.value
    if billing_type not in {b.value for b in BillingType}:
        raise HTTPException(400, f"Unknown billing_type: {billing_type}")

    company_id = payload.get("company_id")
    if company_id:
        get_or_404(db, Company, company_id, "Company")

    p = Project(
        project_code=code,
        title=title,
        company_id=company_id,
        contact_id=payload.get("contact_id"),
        status=ProjectStatus.PRE_LIM.value,
        billing_type=billing_type,
        project_type=project_type,
        planned_hours=dec(payload.get("planned_hours"), "planned_hours") or Decimal("0"),
        lead_engineer_id=payload.get("lead_engineer_id"),
        manager_id=payload.get("manager_id"),
        start_date=parse_date(payload.get("start_date"), "start_date"),
        remarks=payload.get("remarks"),
    )
    commit_refresh(db, p)
    audit(db, actor=current_actor(request), action="project.create", entity_type="project", entity_id=p.id,
          payload={"project_code": code})
    return project_out(p)


@router.put("/{project_id}")
def update_project(project_id: str, payload: dict, request: Request, db: Session = Depends(get_db)):
    p = get_or_404(db, Project, project_id, "Project")
    if "billing_type" in payload and payload["billing_type"] not in {b.value for b in BillingType}:
        raise HTTPException(400, f"Unknown billing_type: {payload['billing_type']}")

    for key in UPDATABLE:
        if key in payload:
            value = payload[key]
            if key == "planned_hours":
                value = dec(value, key) or Decimal("0")
            setattr(p, key, value)
    for key in DATE_FIELDS:
        if key in payload:
            setattr(p, key, parse_date(payload[key], key))

    status = payload.get("status")
    if status and status != p.status:
        if p.project_type == ProjectType.STRUCTURE_CONTAINER.value:
            raise HTTPException(400, "Structure container status is derived from its structures")
        if status not in {s.value for s in ProjectStatus}:
            raise HTTPException(400, f"Unknown status: {status}")
        p.status = status
        apply_status_dates(p, status)

    db.commit()
    if p.project_type == ProjectType.STRUCTURE_CHILD.value and p.parent_project_id:
        if sync_container_status(db, p.parent_project_id):
            db.commit()
    db.refresh(p)
    audit(db, actor=current_actor(request), action="project.update", entity_type="project", entity_id=p.id, payload=payload)
    return project_out(p)


# ============= VARIATION ORDERS =============

@router.get("/{project_id}/variation-orders")
def list_variation_orders(project_id: str, db: Session = Depends(get_db)):
    parent = get_or_404(db, Project, project_id, "Project")
    return [project_out(vo) for vo in children_of(db, parent.id, ProjectType.VARIATION_ORDER.value)]


@router.post("/{project_id}/variation-orders", status_code=201)
def create_variation_order(project_id: str, payload: dict, request: Request, db: Session = Depends(get_db)):
    parent = get_or_404(db, Project, project_id, "Project")
    if parent.is_variation_order:
        raise HTTPException(400, "A variation order cannot have its own variation orders")

    n = next_child_number(parent.project_code, taken_child_codes(db, parent))
    vo = Project(
        project_code=f"{parent.project_code}_{n}",
        title=payload.get("title") or f"{parent.title} VO{n}",
        company_id=parent.company_id,
        contact_id=parent.contact_id,
        status=ProjectStatus.PRE_LIM.value,
        billing_type=payload.get("billing_type") or parent.billing_type,
        project_type=ProjectType.VARIATION_ORDER.value,
        parent_project_id=parent.id,
        is_variation_order=True,
        vo_number=n,
        planned_hours=dec(payload.get("planned_hours"), "planned_hours") or Decimal("0"),
        lead_engineer_id=parent.lead_engineer_id,
        manager_id=parent.manager_id,
        remarks=payload.get("remarks"),
    )
    commit_refresh(db, vo)
    audit(db, actor=current_actor(request), action="project.vo.create", entity_type="project", entity_id=vo.id,
          payload={"parent": parent.project_code, "project_code": vo.project_code})
    return project_out(vo)


# ============= STRUCTURES =============

def _container(db: Session, project_id: str) -> Project:
    c = get_or_404(db, Project, project_id, "Project")
    if c.project_type != ProjectType.STRUCTURE_CONTAINER.value:
        raise HTTPException(400, "Project is not a structure container")
    return c


@router.get("/{project_id}/structures")
def list_structures(project_id: str, db: Session = Depends(get_db)):
    c = _container(db, project_id)
    children = children_of(db, c.id, ProjectType.STRUCTURE_CHILD.value)
    return {"stats": container_stats(c, children), "structures": [project_out(s) for s in children]}


@router.post("/{project_id}/structures", status_code=201)
def create_structure(project_id: str, payload: dict, request: Request, db: Session = Depends(get_db)):
    c = _container(db, project_id)
    n = next_child_number(c.project_code, taken_child_codes(db, c))
    s = Project(
        project_code=f"{c.project_code}_{n}",
        title=req(payload, "title"),
        company_id=c.company_id,
        contact_id=c.contact_id,
        status=ProjectStatus.PRE_LIM.value,
        billing_type=payload.get("billing_type") or c.billing_type,
        project_type=ProjectType.STRUCTURE_CHILD.value,
        parent_project_id=c.id,
        planned_hours=dec(payload.get("planned_hours"), "planned_hours") or Decimal("0"),
        lead_engineer_id=c.lead_engineer_id,
        manager_id=c.manager_id,
    )
    commit_refresh(db, s)
    if sync_container_status(db, c.id):
        db.commit()
    audit(db, actor=current_actor(request), action="project.structure.create", entity_type="project", entity_id=s.id,
          payload={"container": c.project_code, "project_code": s.project_code})
    return project_out(s)


# ============= HOURLY RATE OVERRIDES =============

def _rates(db: Session, project_id: str) -> list[ProjectHourlyRate]:
    q = db.query(ProjectHourlyRate).filter(ProjectHourlyRate.project_id == project_id)
    return scoped(q, ProjectHourlyRate).all()


@router.get("/{project_id}/hourly-rates")
def get_hourly_rates(project_id: str, db: Session = Depends(get_db)):
    get_or_404(db, Project, project_id, "Project")
    return [{"team_member_id": r.team_member_id, "hourly_rate": float(r.hourly_rate)} for r in _rates(db, project_id)]


@router.put("/{project_id}/hourly-rates")
def set_hourly_rates(project_id: str, payload: HourlyRatesIn, request: Request, db: Session = Depends(get_db)):
    get_or_404(db, Project, project_id, "Project")
    current = {r.team_member_id: r for r in _rates(db, project_id)}

    for item in payload.rates:
        member_id, rate = item.team_member_id, item.hourly_rate
        get_or_404(db, TeamMember, member_id, "Team member")
        row = current.get(member_id)
        if row is None:
            row = ProjectHourlyRate(tenant_id=get_tenant_id(), project_id=project_id, team_member_id=member_id, hourly_rate=rate)
            db.add(row)
            current[member_id] = row
        else:
            row.hourly_rate = rate
    db.commit()
    audit(db, actor=current_actor(request), action="project.rates.set", entity_type="project", entity_id=project_id, payload=payload.model_dump())
    return get_hourly_rates(project_id, db)


@router.delete("/{project_id}/hourly-rates/{team_member_id}")
def delete_hourly_rate(project_id: str, team_member_id: str, db: Session = Depends(get_db)):
    row = next((r for r in _rates(db, project_id) if r.team_member_id == team_member_id), None)
    if not row:
        raise HTTPException(404, "Hourly rate not found")
    db.delete(row)
    db.commit()
    return {"ok": True}
